import time


class UsageTracker:
    def __init__(self):
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.start_time = time.time()

    def add_prompt(self, count):
        self.prompt_tokens += count or 0

    def add_completion(self, count):
        self.completion_tokens += count or 0

    def add_usage(self, usage):
        """Accumulate an OpenAI-style usage block."""
        if not usage:
            return
        self.add_prompt(usage.get("prompt_tokens"))
        self.add_completion(usage.get("completion_tokens"))

    def to_dict(self):
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.prompt_tokens + self.completion_tokens
        }
