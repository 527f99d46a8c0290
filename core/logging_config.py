import logging
import json
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


# attributes every LogRecord has; anything else came in through `extra=`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JSONLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(log_dir=None, level=logging.INFO):
    """Configure root logging: human readable console, JSON lines on disk.

    ``log_dir=None`` keeps logging on the console only.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    # if already configured, replace existing handlers
    for h in list(root.handlers):
        root.removeHandler(h)

    root.setLevel(level)

    # console handler (human readable)
    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
    root.addHandler(ch)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # file handler with daily rotation
        file_path = log_dir / "chatwrap.log"
        fh = TimedRotatingFileHandler(str(file_path), when="midnight", backupCount=14, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(JSONLineFormatter())
        root.addHandler(fh)

    return root
