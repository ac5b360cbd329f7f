"""
Tests for SQL persona storage.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dealfinder_agent.models import UserInteraction, UserPersona, init_database
from dealfinder_agent.persona.engine import PersonaEngine
from dealfinder_agent.persona.merger import new_persona
from dealfinder_agent.persona.signals import extract_purchase_signals
from dealfinder_agent.persona.store import PersonaStoreError, SQLPersonaStore
from dealfinder_agent.persona.types import BudgetRange, InteractionRecord, InteractionType


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    maker = await init_database(f"sqlite+aiosqlite:///{tmp_path / 'personas.db'}")
    yield maker
    await maker.kw["bind"].dispose()


@pytest.mark.asyncio
async def test_load_missing_persona(session_maker):
    """Test loading a user with no persona."""
    store = SQLPersonaStore(session_maker)
    assert await store.load("nobody") is None


@pytest.mark.asyncio
async def test_upsert_and_load(session_maker):
    """Test a persona survives a round trip through the database."""
    store = SQLPersonaStore(session_maker)
    record = new_persona({"country": "MX", "budgetRanges": {"home": {"min": 10, "max": 90, "currency": "MXN"}}})
    record.confidence_score = 0.35

    await store.upsert("u1", record)
    loaded = await store.load("u1")

    assert loaded.country == "MX"
    assert loaded.budget_ranges == {"home": BudgetRange(min=10, max=90, currency="MXN")}
    assert loaded.confidence_score == pytest.approx(0.35)
    assert loaded.last_refreshed_at is not None
    assert loaded.last_refreshed_at.tzinfo is not None


@pytest.mark.asyncio
async def test_upsert_replaces_existing(session_maker):
    """Test a second upsert updates the same row."""
    store = SQLPersonaStore(session_maker)
    await store.upsert("u1", new_persona({"hobbies": ["golf"]}))
    await store.upsert("u1", new_persona({"hobbies": ["chess"]}))

    assert (await store.load("u1")).hobbies == ["chess"]


@pytest.mark.asyncio
async def test_upsert_keeps_row_identity(session_maker):
    """Test upserting an existing user updates its row in place."""
    store = SQLPersonaStore(session_maker)
    await store.upsert("u1", new_persona({"hobbies": ["golf"]}))
    async with session_maker() as db:
        first = (await db.execute(select(UserPersona))).scalar_one()

    await store.upsert("u1", new_persona({"hobbies": ["chess"]}))
    async with session_maker() as db:
        rows = (await db.execute(select(UserPersona))).scalars().all()

    assert [row.id for row in rows] == [first.id]
    assert rows[0].persona["hobbies"] == ["chess"]


@pytest.mark.asyncio
async def test_concurrent_first_upserts_from_separate_stores(session_maker):
    """Test two writers creating the same persona do not collide on user_id."""
    records = [new_persona({"hobbies": [hobby]}) for hobby in ("golf", "chess", "tennis", "yoga")]

    await asyncio.gather(*(SQLPersonaStore(session_maker).upsert("u1", record) for record in records))

    async with session_maker() as db:
        rows = (await db.execute(select(UserPersona).where(UserPersona.user_id == "u1"))).scalars().all()
    assert len(rows) == 1
    assert rows[0].persona["hobbies"][0] in {"golf", "chess", "tennis", "yoga"}


@pytest.mark.asyncio
async def test_delete(session_maker):
    """Test deleting a persona."""
    store = SQLPersonaStore(session_maker)
    await store.upsert("u1", new_persona())

    assert await store.delete("u1") is True
    assert await store.delete("u1") is False
    assert await store.load("u1") is None


@pytest.mark.asyncio
async def test_engine_logs_purchase_interaction(session_maker):
    """Test a purchase interaction is logged with its signals and merged."""
    engine = PersonaEngine(SQLPersonaStore(session_maker))
    product = {"brand": "Sony", "category": "electronics", "price": 300, "source": "amazon"}

    record = await engine.log_interaction(InteractionRecord(
        user_id="u1",
        type=InteractionType.PURCHASE,
        payload=product,
        signals=extract_purchase_signals(product),
    ))

    assert record.average_order_value == pytest.approx(300)
    assert record.preferred_retailers == ["amazon"]

    async with session_maker() as db:
        rows = (await db.execute(select(UserInteraction))).scalars().all()
    assert len(rows) == 1
    assert rows[0].type == "purchase"
    assert {s["type"] for s in rows[0].persona_signals} == {
        "brand_preference", "category_interest", "budget_signal", "retailer_preference",
    }


@pytest.mark.asyncio
async def test_database_errors_become_store_errors():
    """Test SQLAlchemy errors surface as PersonaStoreError."""
    broken = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")))
    store = SQLPersonaStore(broken)

    with pytest.raises(PersonaStoreError):
        await store.load("u1")
    with pytest.raises(PersonaStoreError):
        await store.upsert("u1", new_persona())
