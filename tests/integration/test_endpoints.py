from fastapi.testclient import TestClient

import main
from chat_runtime import ChatRuntime
from context_manager import ContextManager
from conversation.models import Budget
from conversation.store import InMemoryConversationStore
from core.errors import ProviderUnavailable
from model_engine import Completion


def words(text):
    return len(text.split())


class MockLLM:
    def __init__(self, reply="Hello world", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, messages, temperature=0.7, max_tokens=256, model=None):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens, "model": model})
        if self.error:
            raise self.error
        return Completion(
            reply=self.reply,
            model=model,
            usage={"prompt_tokens": 7, "completion_tokens": 2, "total_tokens": 9},
            raw={"id": "chatcmpl-mock"}
        )


def client_for(llm, budget=None):
    manager = ContextManager(token_counter=words)
    runtime = ChatRuntime(
        manager, llm, InMemoryConversationStore(),
        budget=budget or Budget(max_tokens=1000, recent_keep=2),
        model="mock"
    )
    return TestClient(main.create_app(runtime=runtime))


def test_root_and_health():
    client = client_for(MockLLM())

    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "Chat wrapper is running"}

    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["model"] == "mock"


def test_chat():
    llm = MockLLM()
    client = client_for(llm)

    payload = {
        "messages": [
            {"role": "system", "content": "You are a helpful assistant."},
            {"role": "user", "content": "Say hello in one short sentence."}
        ],
        "temperature": 0.3,
        "max_tokens": 50
    }
    r = client.post("/chat", json=payload)

    assert r.status_code == 200
    data = r.json()
    assert data["reply"] == "Hello world"
    assert data["usage"] == {"prompt_tokens": 7, "completion_tokens": 2, "total_tokens": 9}
    assert data["raw"] == {"id": "chatcmpl-mock"}
    assert data["context"]["dropped"] == 0
    assert r.headers["cache-control"] == "no-store"
    assert llm.calls[0]["messages"] == payload["messages"]
    assert llm.calls[0]["temperature"] == 0.3
    assert llm.calls[0]["max_tokens"] == 50


def test_chat_reduces_long_history():
    llm = MockLLM()
    client = client_for(llm)

    messages = [{"role": "system", "content": "be terse"}]
    for i in range(30):
        messages.append({"role": "user" if i % 2 == 0 else "assistant", "content": f"message number {i}"})

    r = client.post("/chat", json={"messages": messages, "max_context_tokens": 20, "recent_keep": 0})

    assert r.status_code == 200
    sent = llm.calls[0]["messages"]
    assert sent[0] == {"role": "system", "content": "be terse"}
    assert sent[-1] == messages[-1]
    assert len(sent) == 7
    assert r.json()["context"]["dropped"] == 24
    assert r.headers["x-chatwrap-context-tokens"] == "20"


def test_chat_latest_message_over_budget():
    llm = MockLLM()
    client = client_for(llm)

    r = client.post("/chat", json={
        "messages": [{"role": "user", "content": "word " * 50}],
        "max_context_tokens": 10
    })

    assert r.status_code == 200
    assert r.json()["context"]["warning"] is not None
    assert r.headers["x-chatwrap-warning"] == "budget-exceeded-by-latest-message"


def test_chat_requires_messages():
    client = client_for(MockLLM())

    for body in ({}, {"messages": []}):
        r = client.post("/chat", json=body)
        assert r.status_code == 400
        assert r.json() == {"error": "messages array is required and must not be empty"}


def test_chat_rejects_non_list_messages():
    llm = MockLLM()
    client = client_for(llm)

    r = client.post("/chat", json={"messages": "hello"})
    assert r.status_code == 400
    assert r.json() == {"error": "messages array is required and must not be empty"}
    assert llm.calls == []


def test_malformed_body_is_a_400():
    client = client_for(MockLLM())

    r = client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}], "temperature": "hot"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid payload"

    r = client.post("/v1/conversations/c1/messages", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid payload"


def test_chat_rejects_bad_input():
    client = client_for(MockLLM())

    r = client.post("/chat", json={"messages": [{"role": "tool", "content": "x"}]})
    assert r.status_code == 400
    assert "unknown role" in r.json()["error"]

    r = client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}], "temperature": 5})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid 'temperature' value"}


def test_chat_provider_down():
    client = client_for(MockLLM(error=ProviderUnavailable("connection refused")))

    r = client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 502
    assert r.json()["error"] == "Completion provider unavailable"


def test_conversation_turns():
    llm = MockLLM()
    client = client_for(llm)

    conversation_id = client.post("/v1/conversations").json()["conversation_id"]

    r = client.post(f"/v1/conversations/{conversation_id}/messages", json={"content": "Say hi"})
    assert r.status_code == 200
    assert r.json()["reply"] == "Hello world"
    assert r.json()["messages"] == 2

    r = client.post(f"/v1/conversations/{conversation_id}/messages", json={"content": "Again", "max_tokens": 32})
    assert r.status_code == 200
    assert llm.calls[1]["max_tokens"] == 32

    r = client.get(f"/v1/conversations/{conversation_id}")
    assert r.status_code == 200
    assert r.json()["messages"] == [
        {"role": "user", "content": "Say hi"},
        {"role": "assistant", "content": "Hello world"},
        {"role": "user", "content": "Again"},
        {"role": "assistant", "content": "Hello world"},
    ]


def test_failed_turn_is_not_committed():
    client = client_for(MockLLM(error=ProviderUnavailable("timeout")))

    r = client.post("/v1/conversations/c1/messages", json={"content": "hi"})
    assert r.status_code == 502

    r = client.get("/v1/conversations/c1")
    assert r.status_code == 404
    assert r.json() == {"error": "Conversation 'c1' not found"}


def test_empty_turn_rejected():
    client = client_for(MockLLM())

    r = client.post("/v1/conversations/c1/messages", json={"content": ""})
    assert r.status_code == 400
    assert client.get("/v1/conversations/c1").status_code == 404
