"""
Chat module - keeps conversation history within the model's budget.

Includes:
- Message / Part model
- Token estimation
- Tool result summaries
- Compaction: first message + recent turns verbatim, summarized middle
- Turn preparation: persona injection, background learning, compaction
"""

from .compaction import CompactionConfig, CompactionResult, compact_conversation, compact_history
from .parts import Message, OpaquePart, TextPart, ToolCallPart, ToolCallState
from .tokens import estimate_history_tokens, estimate_message_tokens
from .tool_summaries import summarize_tool_parts, summarize_tool_result
from .turn import PreparedTurn, prepare_chat_turn

__all__ = [
    "CompactionConfig",
    "CompactionResult",
    "compact_conversation",
    "compact_history",
    "Message",
    "OpaquePart",
    "TextPart",
    "ToolCallPart",
    "ToolCallState",
    "estimate_history_tokens",
    "estimate_message_tokens",
    "summarize_tool_parts",
    "summarize_tool_result",
    "PreparedTurn",
    "prepare_chat_turn",
]
