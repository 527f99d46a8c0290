import logging
from typing import Any, Dict, Iterable, Optional, Sequence, Union

from core.errors import InvalidMessage, ProviderUnavailable, SummarizationUnavailable
from conversation.models import ROLES, Budget, Conversation, Message, ReducedConversation
from conversation.policies import Hybrid, ReductionPolicy
from conversation.tokens import ApproxTokenCounter

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "Conversation summary:"


class ContextManager:
    """
    Keeps conversations inside a token budget.

    Stateless between calls: every conversation goes in and comes back out as
    an immutable value. The token counter prices a message once, when it is
    created; the summarizer is only awaited while reducing.
    """

    def __init__(self, token_counter=None, summarizer=None, policy: Optional[ReductionPolicy] = None,
                 default_budget: Optional[Budget] = None):
        counter = token_counter or ApproxTokenCounter()
        self.count_tokens = getattr(counter, "count", counter)
        self.summarizer = getattr(summarizer, "summarize", summarizer)
        self.policy = policy or Hybrid()
        self.default_budget = default_budget or Budget(max_tokens=3000, recent_keep=6)

    # --------------------------------------------------------
    # messages
    # --------------------------------------------------------

    def create_message(self, role: Any, content: Any) -> Message:
        if role not in ROLES:
            raise InvalidMessage(f"unknown role {role!r}, expected one of {', '.join(ROLES)}")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise InvalidMessage(f"content of a {role} message must be text")
        return Message(role=role, content=content, approx_tokens=self.count_tokens(content))

    def append(self, conversation: Conversation, message: Union[Message, Dict[str, Any]]) -> Conversation:
        """Return ``conversation`` with ``message`` added at the end.

        Dict messages are validated and priced here. Message instances are
        taken as they are, their token count included.
        """
        if isinstance(message, Message):
            role, content = message.role, message.content
        elif isinstance(message, dict):
            role, content = message.get("role"), message.get("content")
            message = self.create_message(role, content)
            content = message.content
        else:
            raise InvalidMessage(f"expected a message, got {type(message).__name__}")

        if not content.strip():
            if role != "system":
                raise InvalidMessage(f"{role} message content must not be empty")
            if conversation.pinned is not None:
                raise InvalidMessage("system message content must not be empty once a system message is pinned")

        return Conversation(
            conversation_id=conversation.conversation_id,
            messages=conversation.messages + (message,)
        )

    def from_wire(self, conversation_id: str, messages: Iterable[Dict[str, Any]]) -> Conversation:
        if not isinstance(messages, (list, tuple)):
            raise InvalidMessage("messages must be a list of {role, content} objects")
        conversation = Conversation(conversation_id=conversation_id)
        for message in messages:
            if not isinstance(message, dict):
                raise InvalidMessage("each message must be an object with 'role' and 'content'")
            conversation = self.append(conversation, message)
        return conversation

    # --------------------------------------------------------
    # reduction
    # --------------------------------------------------------

    async def summarize(self, messages: Sequence[Message]) -> Message:
        if not messages:
            raise ValueError("nothing to summarize")
        if self.summarizer is None:
            raise SummarizationUnavailable("no summarizer configured")

        try:
            text = await self.summarizer(messages)
        except ProviderUnavailable as e:
            raise SummarizationUnavailable(str(e)) from e

        text = (text or "").strip()
        if not text:
            raise SummarizationUnavailable("summarizer returned an empty result")

        logger.info(f"Summarized {len(messages)} messages")
        return self.create_message("system", f"{SUMMARY_PREFIX}\n{text}")

    async def reduce(self, conversation: Conversation, budget: Optional[Budget] = None,
                     policy: Optional[ReductionPolicy] = None) -> ReducedConversation:
        budget = budget or self.default_budget
        policy = policy or self.policy
        summarize = self.summarize if self.summarizer is not None else None

        reduced = await policy.reduce(conversation, budget, summarize)

        if reduced.dropped or reduced.summarized:
            logger.info(
                f"Reduced conversation {conversation.conversation_id or '-'} with {reduced.policy}: "
                f"{conversation.total_tokens} -> {reduced.total_tokens} tokens, "
                f"{reduced.dropped} dropped, {reduced.summarized} summarized"
            )
        return reduced
