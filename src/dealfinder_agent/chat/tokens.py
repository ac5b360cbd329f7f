"""Token estimation for chat messages."""

import json

from .parts import Message, OpaquePart, TextPart, ToolCallPart

# Approximate characters per token. Compaction budgets are tuned against
# this heuristic, not against a real tokenizer.
CHARS_PER_TOKEN = 4


def _serialized_length(part: ToolCallPart | OpaquePart) -> int:
    try:
        return len(json.dumps(part.to_dict(), separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        return len(repr(part))


def estimate_message_tokens(message: Message) -> float:
    """Estimate the token cost of a single message."""
    total = 0.0
    for part in message.parts:
        if isinstance(part, TextPart):
            total += len(part.text) / CHARS_PER_TOKEN
        else:
            total += _serialized_length(part) / CHARS_PER_TOKEN
    return total


def estimate_history_tokens(messages: list[Message]) -> float:
    """Estimate total tokens for a list of messages."""
    return sum(estimate_message_tokens(m) for m in messages)
