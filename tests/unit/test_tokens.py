import tiktoken

from conversation import tokens
from conversation.tokens import ApproxTokenCounter, TiktokenCounter, get_token_counter


class FakeEncoding:
    def __init__(self, name):
        self.name = name

    def encode(self, text):
        return text.split()


def test_approx_counter():
    counter = ApproxTokenCounter()
    assert counter.count("") == 0
    assert counter.count("abcd") == 2
    assert counter("x" * 40) == 11


def test_tiktoken_counter_uses_model_encoding(monkeypatch):
    monkeypatch.setattr(tiktoken, "encoding_for_model", lambda model: FakeEncoding(model))

    counter = TiktokenCounter("gpt-4o-mini")
    assert counter.count("one two three") == 3
    assert counter.count("") == 0
    assert counter.encoder.name == "gpt-4o-mini"


def test_tiktoken_counter_falls_back_for_unknown_models(monkeypatch):
    def unknown(model):
        raise KeyError(model)

    monkeypatch.setattr(tiktoken, "encoding_for_model", unknown)
    monkeypatch.setattr(tiktoken, "get_encoding", lambda name: FakeEncoding(name))

    counter = TiktokenCounter("my-local-model")
    assert counter.count("a b") == 2
    assert counter.encoder.name == tokens.FALLBACK_ENCODING


def test_counter_selection_per_model():
    assert isinstance(get_token_counter("gpt-4o-mini"), TiktokenCounter)
    assert isinstance(get_token_counter("llama-3-8b"), ApproxTokenCounter)
