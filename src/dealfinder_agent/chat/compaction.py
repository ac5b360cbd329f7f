"""
Conversation Compaction - Token-aware history reduction.

Keeps a multi-turn shopping conversation within the model's token budget
while preserving the context needed for follow-up questions.

Strategy:
- The first message (the user's original intent) is always kept verbatim
- The tail, from the previous user turn onward, is always kept verbatim so
  the last turn's product URLs and prices stay available
- Messages in between are walked newest-first; their tool calls are
  replaced with short summaries and they are accepted until the budget runs
  out. Older messages are dropped.

Compaction is lossy: dropped messages are not recoverable.
"""

from dataclasses import dataclass

import structlog

from .parts import Message
from .tokens import estimate_history_tokens, estimate_message_tokens
from .tool_summaries import summarize_tool_parts

logger = structlog.get_logger()

DEFAULT_MAX_TOKENS = 6000

# Histories this short have nothing between the first message and the tail
MIN_COMPACTABLE_MESSAGES = 4


@dataclass
class CompactionConfig:
    """Configuration for conversation compaction."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    enabled: bool = True


@dataclass
class CompactionResult:
    """Result of a compaction operation."""

    original_message_count: int
    compacted_message_count: int
    summarized_messages: int = 0
    dropped_messages: int = 0
    tokens_before: float = 0.0
    tokens_after: float = 0.0

    @property
    def compacted(self) -> bool:
        return self.compacted_message_count < self.original_message_count or self.summarized_messages > 0


def find_tail_start(messages: list[Message]) -> int:
    """Index where the protected tail begins.

    The tail starts at the earlier of the two most recent user messages. With
    fewer than two user messages it is just the final message.
    """
    user_indexes = [i for i, m in enumerate(messages) if m.role == "user"]
    if len(user_indexes) >= 2:
        return user_indexes[-2]
    return max(len(messages) - 1, 0)


def _select_middle(
    middle: list[Message],
    budget_used: float,
    max_tokens: float,
) -> tuple[list[Message], int]:
    kept: list[Message] = []
    summarized = 0

    for message in reversed(middle):
        reduced = summarize_tool_parts(message)
        if not reduced.parts:
            continue
        cost = estimate_message_tokens(reduced)
        if budget_used + cost > max_tokens:
            break
        budget_used += cost
        if reduced != message:
            summarized += 1
        kept.append(reduced)

    kept.reverse()
    return kept, summarized


def compact_history(messages: list[Message], max_tokens: float = DEFAULT_MAX_TOKENS) -> list[Message]:
    """Reduce a message history to fit an estimated token budget.

    The first message and the tail are returned byte-for-byte. The budget is a
    soft target: if the protected messages alone exceed it they are still
    returned whole, never truncated.
    """
    compacted, _ = _compact(list(messages), max_tokens)
    return compacted


def _compact(messages: list[Message], max_tokens: float) -> tuple[list[Message], int]:
    if len(messages) < MIN_COMPACTABLE_MESSAGES:
        return messages, 0

    tail_start = find_tail_start(messages)
    if tail_start == 0:
        return messages, 0

    first = messages[0]
    middle = messages[1:tail_start]
    tail = messages[tail_start:]

    budget_used = estimate_message_tokens(first) + estimate_history_tokens(tail)
    kept, summarized = _select_middle(middle, budget_used, max_tokens)

    return [first, *kept, *tail], summarized


def compact_conversation(
    messages: list[Message],
    config: CompactionConfig | None = None,
) -> tuple[list[Message], CompactionResult]:
    """Compact a conversation and report what happened.

    Args:
        messages: Full message history, oldest first
        config: Compaction configuration

    Returns:
        Tuple of (compacted messages, compaction result)
    """
    config = config or CompactionConfig()
    messages = list(messages)
    tokens_before = estimate_history_tokens(messages)

    if not config.enabled:
        return messages, CompactionResult(
            original_message_count=len(messages),
            compacted_message_count=len(messages),
            tokens_before=tokens_before,
            tokens_after=tokens_before,
        )

    compacted, summarized = _compact(messages, config.max_tokens)

    result = CompactionResult(
        original_message_count=len(messages),
        compacted_message_count=len(compacted),
        summarized_messages=summarized,
        dropped_messages=len(messages) - len(compacted),
        tokens_before=tokens_before,
        tokens_after=estimate_history_tokens(compacted),
    )

    if result.compacted:
        logger.info(
            "Compaction complete",
            original=result.original_message_count,
            compacted=result.compacted_message_count,
            summarized=result.summarized_messages,
            tokens_before=round(result.tokens_before),
            tokens_after=round(result.tokens_after),
        )

    return compacted, result
