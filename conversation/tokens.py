"""
Token counters used to price messages against a context budget.

Counters only need a ``count(text) -> int`` method; any plain callable
taking text works as well wherever a counter is accepted.
"""
from functools import lru_cache

import tiktoken

from core.capabilities import get_capabilities


FALLBACK_ENCODING = "cl100k_base"


class TokenCounter:
    name = "base"

    def count(self, text: str) -> int:
        raise NotImplementedError

    def __call__(self, text: str) -> int:
        return self.count(text)


class ApproxTokenCounter(TokenCounter):
    """~4 characters per token. Slightly overcounts, which is the safe side."""
    name = "approx"

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(text) // 4 + 1


class TiktokenCounter(TokenCounter):
    name = "tiktoken"

    def __init__(self, model: str = "gpt-4o-mini"):
        self.model = model
        self._encoder = None

    @property
    def encoder(self):
        # resolved on first use, loading an encoding may hit the network
        if self._encoder is None:
            try:
                self._encoder = tiktoken.encoding_for_model(self.model)
            except KeyError:
                self._encoder = tiktoken.get_encoding(FALLBACK_ENCODING)
        return self._encoder

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoder.encode(text))


@lru_cache(maxsize=None)
def get_token_counter(model_name: str) -> TokenCounter:
    if get_capabilities(model_name)["tokenizer"] == "tiktoken":
        return TiktokenCounter(model_name)
    return ApproxTokenCounter()
