from .models import ROLES, Budget, Conversation, Message, ReducedConversation
from .policies import (
    POLICIES,
    Hybrid,
    KeepAll,
    ReductionPolicy,
    SlidingWindow,
    Summarize,
    get_policy,
    sliding_window,
)
from .store import ConversationStore, InMemoryConversationStore, RedisConversationStore
from .tokens import ApproxTokenCounter, TiktokenCounter, TokenCounter, get_token_counter

__all__ = [
    "ROLES",
    "Budget",
    "Conversation",
    "Message",
    "ReducedConversation",
    "POLICIES",
    "Hybrid",
    "KeepAll",
    "ReductionPolicy",
    "SlidingWindow",
    "Summarize",
    "get_policy",
    "sliding_window",
    "ConversationStore",
    "InMemoryConversationStore",
    "RedisConversationStore",
    "ApproxTokenCounter",
    "TiktokenCounter",
    "TokenCounter",
    "get_token_counter",
]
