"""
Conversation stores.

A store persists the wire form of a conversation, an ordered list of
``{"role", "content"}`` dicts, under its conversation id. Stores are passed
explicitly to whatever runs turns; there is no process-wide registry.
Expiry is the store's business, never the context manager's.
"""
import copy
import json
import logging
from typing import Dict, List, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

WireMessages = List[Dict[str, str]]


class ConversationStore:

    async def connect(self):
        pass

    async def close(self):
        pass

    async def get(self, conversation_id: str) -> Optional[WireMessages]:
        raise NotImplementedError

    async def put(self, conversation_id: str, messages: WireMessages) -> None:
        raise NotImplementedError


class InMemoryConversationStore(ConversationStore):

    def __init__(self):
        self._conversations: Dict[str, WireMessages] = {}

    async def get(self, conversation_id):
        messages = self._conversations.get(conversation_id)
        return copy.deepcopy(messages) if messages is not None else None

    async def put(self, conversation_id, messages):
        self._conversations[conversation_id] = copy.deepcopy(list(messages))

    def __len__(self):
        return len(self._conversations)


class RedisConversationStore(ConversationStore):
    KEY_PREFIX = "chatwrap:conversation:"

    def __init__(self, url: Optional[str] = None, ttl: Optional[int] = None, client=None):
        self.url = url
        self.ttl = ttl
        self.client = client

    def key(self, conversation_id):
        return f"{self.KEY_PREFIX}{conversation_id}"

    async def connect(self):
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
            await self.client.ping()
            logger.info(f"Redis conversation store connected: {self.url}")

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def get(self, conversation_id):
        raw = await self.client.get(self.key(conversation_id))
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, conversation_id, messages):
        payload = json.dumps(list(messages), ensure_ascii=False)
        await self.client.set(self.key(conversation_id), payload, ex=self.ttl)
