"""
Chat turn preparation.

Builds everything the model call needs for one turn: the system prompt with
the user's persona block, and the compacted history. Persona learning from
the latest user message is scheduled in the background and never delays
the turn.
"""

from dataclasses import dataclass

import structlog

from ..config import Settings, get_settings
from ..persona.engine import PersonaEngine
from ..persona.store import PersonaError
from .compaction import CompactionConfig, CompactionResult, compact_conversation
from .parts import Message

logger = structlog.get_logger()

DEFAULT_SYSTEM_PROMPT = (
    "You are a shopping assistant that helps users find the best deals across retailers. "
    "Always use your tools to fetch real data and never make up prices or product details."
)

PERSONA_SEPARATOR = "\n\n---\n\n"


@dataclass
class PreparedTurn:
    """Inputs for one model call."""

    system_prompt: str
    messages: list[Message]
    compaction: CompactionResult


async def build_system_prompt(
    user_id: str | None,
    engine: PersonaEngine | None,
    base_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> str:
    """Append the user's persona block to the base prompt, when there is one."""
    if not user_id or engine is None:
        return base_prompt

    try:
        persona_context = await engine.render_context(user_id)
    except PersonaError as e:
        logger.warning("Persona unavailable, continuing without it", user_id=user_id, error=str(e))
        return base_prompt

    if not persona_context:
        return base_prompt
    return f"{base_prompt}{PERSONA_SEPARATOR}{persona_context}"


async def prepare_chat_turn(
    messages: list[Message],
    user_id: str | None = None,
    engine: PersonaEngine | None = None,
    settings: Settings | None = None,
    base_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> PreparedTurn:
    """Prepare the system prompt and history for the next model call."""
    settings = settings or get_settings()

    if settings.persona_injection_enabled:
        system_prompt = await build_system_prompt(user_id, engine, base_prompt)
    else:
        system_prompt = base_prompt

    last_message = messages[-1] if messages else None
    if (
        settings.persona_learning_enabled
        and user_id
        and engine is not None
        and last_message is not None
        and last_message.role == "user"
    ):
        engine.learn_from_chat(user_id, last_message.text)

    compacted, result = compact_conversation(
        messages,
        CompactionConfig(
            max_tokens=settings.compaction_max_tokens,
            enabled=settings.compaction_enabled,
        ),
    )

    return PreparedTurn(system_prompt=system_prompt, messages=compacted, compaction=result)
