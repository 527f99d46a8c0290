import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from core import settings
from core.errors import ProviderUnavailable
from core.usage import UsageTracker
from conversation.models import Budget, Conversation, ReducedConversation
from model_engine import Completion

logger = logging.getLogger(__name__)


class TurnResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    conversation: Conversation
    reduction: ReducedConversation
    completion: Completion
    usage: UsageTracker


class ChatRuntime:
    """
    Drives turns: append the user message, reduce, complete, append the reply.

    A stored conversation is only written once the completion has fully
    succeeded, so failed or cancelled turns leave the store untouched. Turns
    on the same conversation id run one at a time.
    """

    def __init__(self, manager, provider, store, budget: Optional[Budget] = None, model: Optional[str] = None):
        self.manager = manager
        self.provider = provider
        self.store = store
        self.budget = budget or manager.default_budget
        self.model = model
        self._locks: Dict[str, list] = {}

    @asynccontextmanager
    async def _turn_lock(self, conversation_id):
        entry = self._locks.setdefault(conversation_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[conversation_id]

    async def load(self, conversation_id: str) -> Conversation:
        messages = await self.store.get(conversation_id)
        if messages is None:
            return Conversation(conversation_id=conversation_id)
        return self.manager.from_wire(conversation_id, messages)

    async def _complete(self, conversation, temperature, max_tokens, model, budget):
        reduction = await self.manager.reduce(conversation, budget or self.budget)
        completion = await self.provider.complete(
            reduction.to_wire(),
            temperature=temperature,
            max_tokens=max_tokens,
            model=model or self.model
        )
        usage = UsageTracker()
        usage.add_usage(completion.usage)
        return reduction, completion, usage

    async def complete_messages(self, messages: List[Dict[str, Any]],
                                temperature: float = settings.DEFAULT_TEMPERATURE,
                                max_tokens: int = settings.DEFAULT_MAX_TOKENS,
                                model: Optional[str] = None,
                                budget: Optional[Budget] = None) -> TurnResult:
        """One-shot completion over a caller-owned history; nothing is stored."""
        conversation = self.manager.from_wire("", messages)
        reduction, completion, usage = await self._complete(conversation, temperature, max_tokens, model, budget)
        return TurnResult(conversation=conversation, reduction=reduction, completion=completion, usage=usage)

    async def run_turn(self, conversation_id: str, content: str,
                       temperature: float = settings.DEFAULT_TEMPERATURE,
                       max_tokens: int = settings.DEFAULT_MAX_TOKENS,
                       model: Optional[str] = None,
                       budget: Optional[Budget] = None) -> TurnResult:
        async with self._turn_lock(conversation_id):
            conversation = await self.load(conversation_id)
            conversation = self.manager.append(conversation, {"role": "user", "content": content})

            reduction, completion, usage = await self._complete(conversation, temperature, max_tokens, model, budget)

            if not (completion.reply or "").strip():
                raise ProviderUnavailable("provider returned an empty reply")

            conversation = self.manager.append(conversation, {"role": "assistant", "content": completion.reply})
            await self.store.put(conversation_id, conversation.to_wire())

            logger.info(
                f"Turn committed for {conversation_id}: {len(conversation)} messages, "
                f"{usage.to_dict()['total_tokens']} tokens used"
            )
            return TurnResult(conversation=conversation, reduction=reduction, completion=completion, usage=usage)
