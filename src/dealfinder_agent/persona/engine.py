"""
Persona engine - atomic, per-user persona updates.

Every read-modify-write of a user's persona runs under that user's lock, so
concurrent merges for one user cannot lose each other's updates while
merges for different users proceed independently. Locks live in a weak
value map and disappear once no coroutine holds them.

Chat-driven learning is fire-and-forget: schedule_interaction() returns
immediately and failures are logged, never raised to the chat path.
"""

import asyncio
import weakref
from typing import Any

import structlog

from .merger import apply_user_edits, merge_signals, new_persona
from .render import render_persona
from .signals import extract_chat_signals
from .store import PersonaNotFoundError, PersonaStore
from .types import InteractionRecord, InteractionType, PersonaRecord, PersonaSignal

logger = structlog.get_logger()


class PersonaEngine:
    """Loads, updates and renders user personas."""

    def __init__(self, store: PersonaStore):
        self.store = store
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._background: set[asyncio.Task] = set()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def get_persona(self, user_id: str) -> PersonaRecord | None:
        return await self.store.load(user_id)

    async def initialize_persona(
        self,
        user_id: str,
        initial: dict[str, Any] | None = None,
    ) -> PersonaRecord:
        """Create (or re-seed from onboarding) a user's persona.

        Re-seeding an existing persona overwrites its profile fields but never
        lowers its confidence. Without seed data an existing persona is
        returned untouched; use reset_persona() to clear it.
        """
        async with self._lock_for(user_id):
            existing = await self.store.load(user_id)
            if existing is not None and not initial:
                return existing
            record = new_persona(initial)
            if existing is not None:
                record.confidence_score = max(record.confidence_score, existing.confidence_score)
            await self.store.upsert(user_id, record)

        logger.info("Persona initialized", user_id=user_id, seeded=bool(initial))
        return record

    async def apply_signals(self, user_id: str, signals: list[PersonaSignal]) -> PersonaRecord:
        """Merge signals into a user's persona, creating it if needed."""
        async with self._lock_for(user_id):
            record = await self.store.load(user_id)
            if record is None:
                record = new_persona()
                logger.info("Persona created from first signals", user_id=user_id)

            result = merge_signals(record, signals)
            await self.store.upsert(user_id, result.record)

        logger.debug(
            "Persona signals applied",
            user_id=user_id,
            signals=len(signals),
            confidence=round(result.record.confidence_score, 3),
            confidence_delta=round(result.confidence_delta, 3),
        )
        return result.record

    async def log_interaction(self, interaction: InteractionRecord) -> PersonaRecord | None:
        """Log an interaction and apply its signals, if it has any."""
        await self.store.log_interaction(interaction)
        if not interaction.signals:
            return None
        return await self.apply_signals(interaction.user_id, interaction.signals)

    async def update_persona(self, user_id: str, updates: dict[str, Any]) -> PersonaRecord:
        """Apply explicit profile edits made by the user."""
        async with self._lock_for(user_id):
            record = await self.store.load(user_id)
            if record is None:
                raise PersonaNotFoundError(f"No persona found for {user_id}")
            record = apply_user_edits(record, updates)
            await self.store.upsert(user_id, record)
        return record

    async def reset_persona(self, user_id: str) -> PersonaRecord:
        """Replace a persona with neutral defaults and zero confidence."""
        async with self._lock_for(user_id):
            record = new_persona()
            await self.store.upsert(user_id, record)
        logger.info("Persona reset", user_id=user_id)
        return record

    async def render_context(self, user_id: str) -> str | None:
        """The persona prompt block for a user, or None if they have no persona."""
        record = await self.store.load(user_id)
        if record is None:
            return None
        return render_persona(record)

    async def _run_interaction(self, interaction: InteractionRecord) -> None:
        try:
            await self.log_interaction(interaction)
        except Exception as e:
            logger.warning(
                "persona_update_failed",
                user_id=interaction.user_id,
                interaction=interaction.type.value,
                error=str(e),
            )

    def schedule_interaction(self, interaction: InteractionRecord) -> asyncio.Task:
        """Log an interaction in the background without blocking the caller."""
        task = asyncio.create_task(self._run_interaction(interaction))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def learn_from_chat(self, user_id: str, text: str) -> asyncio.Task | None:
        """Schedule persona learning from a user's chat message.

        Returns None when the message carries no signals.
        """
        signals = extract_chat_signals(text)
        if not signals:
            return None
        return self.schedule_interaction(InteractionRecord(
            user_id=user_id,
            type=InteractionType.CHAT_STATEMENT,
            payload={"message": text},
            signals=signals,
        ))

    async def drain(self) -> None:
        """Wait for all scheduled background updates to finish."""
        if self._background:
            await asyncio.gather(*list(self._background))
