"""
Tests for conversation compaction module.
"""

from dealfinder_agent.chat.compaction import (
    CompactionConfig,
    compact_conversation,
    compact_history,
    find_tail_start,
)
from dealfinder_agent.chat.parts import Message, TextPart, ToolCallPart, ToolCallState
from dealfinder_agent.chat.tokens import estimate_history_tokens, estimate_message_tokens


def _text(id: str, role: str, text: str) -> Message:
    return Message(id=id, role=role, parts=(TextPart(text),))


def _search_turn(index: int) -> list[Message]:
    """A user question followed by an assistant search with a large result."""
    products = [
        {"title": f"Lamp {index}-{i}", "price": 20 + i, "retailerUrl": f"https://shop.example/{index}/{i}"}
        for i in range(10)
    ]
    return [
        _text(f"u{index}", "user", f"Show me lamps, round {index}"),
        Message(id=f"a{index}", role="assistant", parts=(
            ToolCallPart(
                tool_name="search_products",
                call_id=f"c{index}",
                state=ToolCallState.OUTPUT_AVAILABLE,
                input={"query": f"lamp {index}"},
                output={"products": products, "raw": "x" * 2000},
            ),
            TextPart(f"Here are lamps for round {index}."),
        )),
    ]


def _conversation(turns: int) -> list[Message]:
    messages: list[Message] = []
    for i in range(turns):
        messages.extend(_search_turn(i))
    messages.append(_text("final", "user", "Which of those was cheapest?"))
    return messages


def test_short_history_unchanged():
    """Test that histories of three or fewer messages are returned as-is."""
    messages = [
        _text("1", "user", "Hello"),
        _text("2", "assistant", "Hi there!"),
        _text("3", "user", "x" * 10_000),
    ]

    assert compact_history(messages, max_tokens=1) == messages


def test_find_tail_start_previous_user_turn():
    """Test that the tail starts at the second most recent user message."""
    messages = _conversation(3)
    # u0 a0 u1 a1 u2 a2 final
    assert find_tail_start(messages) == 4
    assert messages[4].id == "u2"


def test_find_tail_start_single_user_message():
    """Test that with one user message the tail is just the final message."""
    messages = [
        _text("u", "user", "Find me a lamp"),
        _text("a1", "assistant", "Searching"),
        _text("a2", "assistant", "Still searching"),
        _text("a3", "assistant", "Done"),
    ]

    assert find_tail_start(messages) == 3


def test_first_and_tail_preserved_verbatim():
    """Test that first message and tail are kept exactly."""
    messages = _conversation(6)
    compacted = compact_history(messages, max_tokens=200)
    tail_start = find_tail_start(messages)

    assert compacted[0] is messages[0]
    assert compacted[-(len(messages) - tail_start):] == messages[tail_start:]
    for original, kept in zip(messages[tail_start:], compacted[-(len(messages) - tail_start):]):
        assert original is kept


def test_middle_tool_calls_are_summarized():
    """Test that accepted middle messages carry summaries, not raw payloads."""
    messages = _conversation(4)
    compacted = compact_history(messages, max_tokens=100_000)

    assert len(compacted) == len(messages)
    middle_assistant = next(m for m in compacted if m.id == "a1")
    assert not middle_assistant.tool_calls
    assert middle_assistant.parts[0].text.startswith('[Previous search for "lamp 1" found: Lamp 1-0')
    assert "x" * 100 not in middle_assistant.text


def _protected_cost(messages: list[Message]) -> float:
    tail_start = find_tail_start(messages)
    return estimate_message_tokens(messages[0]) + estimate_history_tokens(messages[tail_start:])


def test_respects_budget():
    """Test that the kept middle never exceeds the budget left after first + tail."""
    messages = _conversation(10)
    max_tokens = _protected_cost(messages) + 200
    compacted = compact_history(messages, max_tokens=max_tokens)
    tail_len = len(messages) - find_tail_start(messages)
    middle = compacted[1:len(compacted) - tail_len]

    assert 0 < len(middle) < len(messages) - tail_len - 1
    assert estimate_history_tokens(middle) <= 200
    assert estimate_history_tokens(middle) <= max_tokens


def test_keeps_most_recent_middle_messages():
    """Test that under a tight budget, older messages go first."""
    messages = _conversation(10)
    compacted = compact_history(messages, max_tokens=_protected_cost(messages) + 200)
    ids = [m.id for m in compacted]

    assert "a8" in ids
    assert "u8" in ids
    assert "u1" not in ids
    assert "a0" not in ids


def test_never_reorders():
    """Test that output order is a subsequence of input order."""
    messages = _conversation(8)
    compacted = compact_history(messages, max_tokens=_protected_cost(messages) + 300)
    order = [m.id for m in messages]
    positions = [order.index(m.id) for m in compacted]

    assert positions == sorted(positions)
    assert len(set(positions)) == len(positions)


def test_messages_empty_after_summary_are_dropped():
    """Test that a message with only an unsummarizable tool call disappears."""
    messages = [
        _text("u0", "user", "Buy the lamp"),
        Message(id="a0", role="assistant", parts=(
            ToolCallPart(
                tool_name="purchase",
                call_id="p1",
                state=ToolCallState.OUTPUT_AVAILABLE,
                output={"success": True},
            ),
        )),
        _text("a1", "assistant", "Bought it."),
        _text("u1", "user", "Thanks"),
        _text("a2", "assistant", "Anything else?"),
        _text("u2", "user", "No"),
    ]

    ids = [m.id for m in compact_history(messages, max_tokens=10_000)]

    assert ids == ["u0", "a1", "u1", "a2", "u2"]


def test_oversized_protected_messages_pass_through():
    """Test that a huge tail is returned whole rather than truncated."""
    messages = _conversation(3)
    messages.append(_text("huge", "user", "y" * 100_000))
    compacted = compact_history(messages, max_tokens=100)

    assert compacted[-1] is messages[-1]
    assert compacted[0] is messages[0]


def test_compact_conversation_reports_result():
    """Test compaction result bookkeeping."""
    messages = _conversation(10)
    compacted, result = compact_conversation(messages, CompactionConfig(max_tokens=400))

    assert result.original_message_count == len(messages)
    assert result.compacted_message_count == len(compacted)
    assert result.dropped_messages == len(messages) - len(compacted)
    assert result.tokens_after < result.tokens_before
    assert result.compacted


def test_compact_conversation_disabled():
    """Test that compaction can be disabled."""
    messages = _conversation(10)
    compacted, result = compact_conversation(messages, CompactionConfig(enabled=False))

    assert compacted == messages
    assert not result.compacted


def test_compaction_config_defaults():
    """Test CompactionConfig default values."""
    config = CompactionConfig()
    assert config.max_tokens == 6000
    assert config.enabled is True
