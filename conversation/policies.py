"""
Reduction policies: how a conversation is brought under a token budget.

Every policy keeps the pinned system message first and the newest message
last. ``KeepAll`` never drops anything, ``SlidingWindow`` drops the oldest
messages, ``Summarize`` folds everything older than the recent window into a
single system summary, and ``Hybrid`` summarizes when it can and slides the
window when it cannot.
"""
import logging
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from core.errors import BudgetExceededByLatestMessage, SummarizationUnavailable
from .models import Budget, Conversation, Message, ReducedConversation

logger = logging.getLogger(__name__)

Summarizer = Callable[[Sequence[Message]], Awaitable[Message]]


def sliding_window(pinned: Optional[Message], body: Sequence[Message], max_tokens: int) -> Tuple[Message, ...]:
    """Keep the longest run of newest messages that fits next to ``pinned``.

    Walks newest to oldest and stops at the first message that would push the
    total over ``max_tokens``; landing exactly on the limit still fits. The
    newest message is kept even when it does not fit on its own.
    """
    used = pinned.approx_tokens if pinned is not None else 0
    kept = []
    for message in reversed(body):
        if kept and used + message.approx_tokens > max_tokens:
            break
        kept.append(message)
        used += message.approx_tokens
    kept.reverse()
    return tuple(kept)


def build_result(conversation, budget, policy, kept, summary=None, summarized=0):
    pinned = conversation.pinned
    messages = ((pinned,) if pinned is not None else ()) + ((summary,) if summary is not None else ()) + tuple(kept)

    warning = None
    total = sum(m.approx_tokens for m in messages)
    if policy != KeepAll.name and total > budget.max_tokens and kept:
        latest = kept[-1]
        warning = BudgetExceededByLatestMessage(latest.approx_tokens, budget.max_tokens, total_tokens=total)
        logger.warning(
            f"Conversation {conversation.conversation_id or '-'} over budget after reduction: "
            f"{total} > {budget.max_tokens} tokens"
        )

    return ReducedConversation(
        messages=messages,
        policy=policy,
        max_tokens=budget.max_tokens,
        dropped=len(conversation.body) - len(kept) - summarized,
        summarized=summarized,
        warning=warning,
    )


# ============================================================
# POLICIES
# ============================================================

class ReductionPolicy:
    name = "base"

    async def reduce(self, conversation: Conversation, budget: Budget,
                     summarize: Optional[Summarizer] = None) -> ReducedConversation:
        if conversation.total_tokens <= budget.max_tokens:
            return build_result(conversation, budget, self.name, conversation.body)
        return await self.shrink(conversation, budget, summarize)

    async def shrink(self, conversation, budget, summarize):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class KeepAll(ReductionPolicy):
    name = "keep_all"

    async def shrink(self, conversation, budget, summarize):
        logger.info(
            f"Conversation {conversation.conversation_id or '-'} sent over budget "
            f"({conversation.total_tokens} > {budget.max_tokens} tokens)"
        )
        return build_result(conversation, budget, self.name, conversation.body)


class SlidingWindow(ReductionPolicy):
    name = "sliding_window"

    async def shrink(self, conversation, budget, summarize):
        kept = sliding_window(conversation.pinned, conversation.body, budget.max_tokens)
        return build_result(conversation, budget, self.name, kept)


class Summarize(ReductionPolicy):
    """
    Summarize everything older than the last ``recent_keep`` messages.

    Raises SummarizationUnavailable when no summarizer is configured or the
    summarizer fails; falls back to a sliding window only when the recent
    window itself, or the summarized result, cannot fit the budget.

    System messages that are not pinned, such as an earlier summary, are
    passed to the summarizer with the rest of the old segment so their
    content is folded into the new summary instead of being lost.
    """
    name = "summarize"

    def window(self, budget):
        # the newest message always survives, so never summarize it away
        return max(budget.recent_keep, 1)

    async def shrink(self, conversation, budget, summarize):
        if summarize is None:
            raise SummarizationUnavailable("no summarizer configured")

        pinned = conversation.pinned
        body = conversation.body
        keep = self.window(budget)
        recent = body[-keep:]
        old = body[:-keep]

        pinned_tokens = pinned.approx_tokens if pinned is not None else 0
        recent_tokens = sum(m.approx_tokens for m in recent)

        if not old or pinned_tokens + recent_tokens > budget.max_tokens:
            kept = sliding_window(pinned, body, budget.max_tokens)
            return build_result(conversation, budget, self.name, kept)

        summary = await summarize(old)

        if pinned_tokens + summary.approx_tokens + recent_tokens > budget.max_tokens:
            logger.info(
                f"Summary of {len(old)} messages does not fit the budget, "
                f"sliding the window instead"
            )
            kept = sliding_window(pinned, body, budget.max_tokens)
            return build_result(conversation, budget, self.name, kept)

        return build_result(conversation, budget, self.name, recent, summary=summary, summarized=len(old))


class Hybrid(Summarize):
    name = "hybrid"

    async def shrink(self, conversation, budget, summarize):
        if summarize is None or budget.recent_keep == 0:
            kept = sliding_window(conversation.pinned, conversation.body, budget.max_tokens)
            return build_result(conversation, budget, self.name, kept)

        try:
            return await super().shrink(conversation, budget, summarize)
        except SummarizationUnavailable as e:
            logger.warning(f"Summarization unavailable, truncating instead: {e}")
            kept = sliding_window(conversation.pinned, conversation.body, budget.max_tokens)
            return build_result(conversation, budget, self.name, kept)


POLICIES = {
    policy.name: policy
    for policy in (KeepAll, SlidingWindow, Summarize, Hybrid)
}


def get_policy(name: str) -> ReductionPolicy:
    if name not in POLICIES:
        raise ValueError(f"Reduction policy '{name}' not found")
    return POLICIES[name]()
