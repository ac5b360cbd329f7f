"""
Persona persistence.

The engine only needs load and upsert-by-user semantics, so storage is
pluggable. SQLPersonaStore persists to any SQLAlchemy async database;
InMemoryPersonaStore keeps everything in a dict.
"""

import copy
from abc import ABC, abstractmethod

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import UserInteraction, UserPersona
from .types import InteractionRecord, PersonaRecord

logger = structlog.get_logger()

UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


class PersonaError(Exception):
    """Base class for persona errors."""


class PersonaStoreError(PersonaError):
    """Raised when the persona store cannot be read or written."""


class PersonaNotFoundError(PersonaError):
    """Raised when an operation needs a persona that does not exist."""


class PersonaStore(ABC):
    """Storage boundary for persona records."""

    @abstractmethod
    async def load(self, user_id: str) -> PersonaRecord | None:
        """Load a user's persona, or None if they have none yet."""

    @abstractmethod
    async def upsert(self, user_id: str, record: PersonaRecord) -> None:
        """Insert or replace a user's persona."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Delete a user's persona. Returns False if there was none."""

    @abstractmethod
    async def log_interaction(self, interaction: InteractionRecord) -> None:
        """Record a user action and its signals."""


class InMemoryPersonaStore(PersonaStore):
    """Dict-backed store."""

    def __init__(self):
        self._records: dict[str, PersonaRecord] = {}
        self.interactions: list[InteractionRecord] = []

    async def load(self, user_id: str) -> PersonaRecord | None:
        record = self._records.get(user_id)
        return copy.deepcopy(record) if record else None

    async def upsert(self, user_id: str, record: PersonaRecord) -> None:
        self._records[user_id] = copy.deepcopy(record)

    async def delete(self, user_id: str) -> bool:
        return self._records.pop(user_id, None) is not None

    async def log_interaction(self, interaction: InteractionRecord) -> None:
        self.interactions.append(interaction)


class SQLPersonaStore(PersonaStore):
    """Store backed by the user_personas and user_interactions tables."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    @staticmethod
    def _to_record(row: UserPersona) -> PersonaRecord:
        return PersonaRecord.from_dict({
            **(row.persona or {}),
            "confidenceScore": row.confidence_score or 0.0,
            "lastRefreshedAt": row.last_refreshed_at,
        })

    async def load(self, user_id: str) -> PersonaRecord | None:
        try:
            async with self.session_maker() as db:
                result = await db.execute(select(UserPersona).where(UserPersona.user_id == user_id))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Error fetching persona", user_id=user_id, error=str(e))
            raise PersonaStoreError(f"Failed to load persona for {user_id}") from e

        return self._to_record(row) if row else None

    async def upsert(self, user_id: str, record: PersonaRecord) -> None:
        """Insert or replace a persona in one statement.

        SQLite and PostgreSQL use INSERT ... ON CONFLICT (user_id) DO UPDATE,
        so concurrent writers never collide on the unique key. Other
        dialects fall back to read-then-write and assume a single writer.
        """
        values = {
            "persona": record.profile_dict(),
            "confidence_score": record.confidence_score,
            "last_refreshed_at": record.last_refreshed_at,
        }
        try:
            async with self.session_maker() as db:
                insert = UPSERT_INSERTS.get(db.bind.dialect.name)
                if insert is not None:
                    statement = insert(UserPersona).values(user_id=user_id, **values)
                    await db.execute(statement.on_conflict_do_update(
                        index_elements=[UserPersona.user_id],
                        set_={**values, "updated_at": func.now()},
                    ))
                else:
                    result = await db.execute(select(UserPersona).where(UserPersona.user_id == user_id))
                    row = result.scalar_one_or_none()
                    if row is None:
                        row = UserPersona(user_id=user_id)
                        db.add(row)
                    for key, value in values.items():
                        setattr(row, key, value)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Error saving persona", user_id=user_id, error=str(e))
            raise PersonaStoreError(f"Failed to save persona for {user_id}") from e

    async def delete(self, user_id: str) -> bool:
        try:
            async with self.session_maker() as db:
                result = await db.execute(delete(UserPersona).where(UserPersona.user_id == user_id))
                await db.commit()
        except SQLAlchemyError as e:
            raise PersonaStoreError(f"Failed to delete persona for {user_id}") from e

        return result.rowcount > 0

    async def log_interaction(self, interaction: InteractionRecord) -> None:
        try:
            async with self.session_maker() as db:
                db.add(UserInteraction(
                    user_id=interaction.user_id,
                    type=interaction.type.value,
                    payload=interaction.payload,
                    persona_signals=[s.to_dict() for s in interaction.signals] or None,
                ))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Error logging interaction", user_id=interaction.user_id, error=str(e))
            raise PersonaStoreError(f"Failed to log interaction for {interaction.user_id}") from e
