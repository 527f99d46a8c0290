import asyncio

import pytest

from chat_runtime import ChatRuntime
from context_manager import ContextManager
from conversation.models import Budget
from conversation.store import InMemoryConversationStore
from core.errors import InvalidMessage, ProviderUnavailable
from model_engine import Completion


def words(text):
    return len(text.split())


class MockProvider:
    def __init__(self, reply="Hello world", error=None, gate=None):
        self.reply = reply
        self.error = error
        self.gate = gate
        self.calls = []

    async def complete(self, messages, temperature=0.7, max_tokens=256, model=None):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens, "model": model})
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        reply = self.reply if isinstance(self.reply, str) else self.reply(messages)
        return Completion(reply=reply, usage={"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12})


def runtime_with(provider, budget=None):
    manager = ContextManager(token_counter=words)
    return ChatRuntime(manager, provider, InMemoryConversationStore(),
                       budget=budget or Budget(max_tokens=1000, recent_keep=2), model="mock")


def test_turn_is_stored():
    provider = MockProvider()
    runtime = runtime_with(provider)

    async def scenario():
        await runtime.run_turn("c1", "Say hi", temperature=0.2, max_tokens=32)
        result = await runtime.run_turn("c1", "Again")
        return result, await runtime.store.get("c1")

    result, stored = asyncio.run(scenario())

    assert stored == [
        {"role": "user", "content": "Say hi"},
        {"role": "assistant", "content": "Hello world"},
        {"role": "user", "content": "Again"},
        {"role": "assistant", "content": "Hello world"},
    ]
    assert provider.calls[0] == {
        "messages": [{"role": "user", "content": "Say hi"}],
        "temperature": 0.2,
        "max_tokens": 32,
        "model": "mock",
    }
    assert len(provider.calls[1]["messages"]) == 3
    assert result.usage.to_dict() == {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12}
    assert len(result.conversation) == 4


def test_reduced_history_is_sent():
    provider = MockProvider(reply="one two three four five")
    runtime = runtime_with(provider, budget=Budget(max_tokens=12, recent_keep=0))

    async def scenario():
        for i in range(4):
            await runtime.run_turn("c1", f"question number {i}")
        return await runtime.store.get("c1")

    stored = asyncio.run(scenario())

    assert len(stored) == 8
    sent = provider.calls[-1]["messages"]
    assert sent[-1] == {"role": "user", "content": "question number 3"}
    assert sum(words(m["content"]) for m in sent) <= 12


def test_failed_provider_leaves_store_untouched():
    runtime = runtime_with(MockProvider(error=ProviderUnavailable("down")))

    with pytest.raises(ProviderUnavailable):
        asyncio.run(runtime.run_turn("c1", "hi"))

    assert asyncio.run(runtime.store.get("c1")) is None


def test_empty_reply_is_not_committed():
    runtime = runtime_with(MockProvider(reply=""))

    with pytest.raises(ProviderUnavailable):
        asyncio.run(runtime.run_turn("c1", "hi"))

    assert asyncio.run(runtime.store.get("c1")) is None


def test_invalid_message_never_reaches_provider():
    provider = MockProvider()
    runtime = runtime_with(provider)

    with pytest.raises(InvalidMessage):
        asyncio.run(runtime.run_turn("c1", "   "))

    assert provider.calls == []


def test_turns_on_one_conversation_are_serialized():
    provider = MockProvider(reply=lambda messages: f"seen {len(messages)}")
    runtime = runtime_with(provider)

    async def scenario():
        await asyncio.gather(runtime.run_turn("c1", "first"), runtime.run_turn("c1", "second"))
        return await runtime.store.get("c1")

    stored = asyncio.run(scenario())

    assert [m["content"] for m in stored] == ["first", "seen 1", "second", "seen 3"]
    assert runtime._locks == {}


def test_cancelled_turn_is_not_committed():
    async def scenario():
        gate = asyncio.Event()
        runtime = runtime_with(MockProvider(gate=gate))
        task = asyncio.create_task(runtime.run_turn("c1", "hi"))
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return await runtime.store.get("c1"), runtime._locks

    stored, locks = asyncio.run(scenario())
    assert stored is None
    assert locks == {}


def test_complete_messages_does_not_store():
    provider = MockProvider()
    runtime = runtime_with(provider)

    result = asyncio.run(runtime.complete_messages(
        [{"role": "system", "content": "be terse"}, {"role": "user", "content": "hi"}],
        budget=Budget(max_tokens=50)
    ))

    assert result.completion.reply == "Hello world"
    assert result.reduction.to_wire()[0] == {"role": "system", "content": "be terse"}
    assert len(runtime.store) == 0
