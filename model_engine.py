import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from core.errors import ProviderUnavailable, SummarizationUnavailable
from core import settings

logger = logging.getLogger(__name__)


SUMMARY_INSTRUCTION = (
    "Summarize the conversation concisely. Preserve facts, names, decisions "
    "and open questions. Reply with the summary only."
)


class Completion(BaseModel):
    reply: Optional[str] = None
    model: Optional[str] = None
    usage: Dict[str, int] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)


def _reply_text(content):
    # some compatible servers return content as a list of typed parts
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part["text"] for part in content if part.get("type") == "text")
    raise TypeError(f"unexpected completion content: {type(content).__name__}")


def _usage_counters(usage):
    usage = usage or {}
    prompt = int(usage.get("prompt_tokens") or 0)
    completion = int(usage.get("completion_tokens") or 0)
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": int(usage.get("total_tokens") or prompt + completion),
    }


class OpenAICompletionProvider:
    """Chat completions over any OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(self, api_key=None, base_url=settings.OPENAI_BASE_URL, model=settings.CHAT_MODEL,
                 timeout=settings.PROVIDER_TIMEOUT, transport=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def complete(self, messages: List[Dict[str, str]], temperature: float = settings.DEFAULT_TEMPERATURE,
                       max_tokens: int = settings.DEFAULT_MAX_TOKENS, model: Optional[str] = None) -> Completion:
        model = model or self.model
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers()
                )
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"provider timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"provider unreachable: {e}") from e

        if not response.is_success:
            logger.error(f"Provider returned HTTP {response.status_code}: {response.text[:500]}")
            raise ProviderUnavailable(
                f"provider returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        try:
            data = response.json()
            return Completion(
                reply=_reply_text(data["choices"][0]["message"].get("content")),
                model=data.get("model", model),
                usage=_usage_counters(data.get("usage")),
                raw=data
            )
        except (ValidationError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error(f"Provider returned a malformed completion: {response.text[:500]}")
            raise ProviderUnavailable("provider returned a malformed completion") from e


class ProviderSummarizer:
    """A completion provider pinned to the summarization instruction."""

    def __init__(self, provider, model=None, max_tokens=300, temperature=0.2):
        self.provider = provider
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def summarize(self, messages: Sequence) -> str:
        transcript = "\n\n".join(f"{m.role.upper()}: {m.content}" for m in messages)
        prompt = [
            {"role": "system", "content": SUMMARY_INSTRUCTION},
            {"role": "user", "content": transcript}
        ]

        try:
            completion = await self.provider.complete(
                prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                model=self.model
            )
        except ProviderUnavailable as e:
            raise SummarizationUnavailable(str(e)) from e

        text = (completion.reply or "").strip()
        if not text:
            raise SummarizationUnavailable("summarizer returned an empty result")
        return text
