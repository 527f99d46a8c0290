from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from core.errors import BudgetExceededByLatestMessage


ROLES = ("system", "user", "assistant")


# ============================================================
# MESSAGES
# ============================================================

class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
    approx_tokens: int = Field(default=0, ge=0)

    def to_wire(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    """
    Ordered, immutable message history for one conversation id.

    The first message is the pinned one when its role is ``system``.
    """
    model_config = ConfigDict(frozen=True)

    conversation_id: str = ""
    messages: Tuple[Message, ...] = ()

    @property
    def pinned(self) -> Optional[Message]:
        if self.messages and self.messages[0].role == "system":
            return self.messages[0]
        return None

    @property
    def body(self) -> Tuple[Message, ...]:
        """Every message except the pinned one."""
        return self.messages[1:] if self.pinned is not None else self.messages

    @property
    def total_tokens(self) -> int:
        return sum(m.approx_tokens for m in self.messages)

    def to_wire(self) -> List[Dict[str, str]]:
        return [m.to_wire() for m in self.messages]

    def __len__(self):
        return len(self.messages)


# ============================================================
# BUDGET + REDUCTION OUTPUT
# ============================================================

class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(gt=0)
    recent_keep: int = Field(default=0, ge=0)


class ReducedConversation(BaseModel):
    """
    The messages to send, plus how they were obtained.

    ``dropped`` and ``summarized`` count against the conversation that was
    reduced, so reducing this result again yields the same messages with
    both counts at zero.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    messages: Tuple[Message, ...]
    policy: str
    max_tokens: int
    dropped: int = 0
    summarized: int = 0
    warning: Optional[BudgetExceededByLatestMessage] = None

    @property
    def total_tokens(self) -> int:
        return sum(m.approx_tokens for m in self.messages)

    @property
    def over_budget(self) -> bool:
        return self.total_tokens > self.max_tokens

    def as_conversation(self, conversation_id: str = "") -> Conversation:
        return Conversation(conversation_id=conversation_id, messages=self.messages)

    def to_wire(self) -> List[Dict[str, str]]:
        return [m.to_wire() for m in self.messages]

    def stats(self) -> Dict[str, Any]:
        return {
            "policy": self.policy,
            "total_tokens": self.total_tokens,
            "max_tokens": self.max_tokens,
            "messages": len(self.messages),
            "dropped": self.dropped,
            "summarized": self.summarized,
            "warning": str(self.warning) if self.warning is not None else None,
        }
