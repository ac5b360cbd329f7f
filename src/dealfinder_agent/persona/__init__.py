"""
Persona module - learns and renders a durable shopping profile per user.

Includes:
- Signal extraction from chat, searches and purchases
- Confidence-weighted merging into a PersonaRecord
- Rendering for system prompt injection
- PersonaEngine: serialized per-user updates over a pluggable store
"""

from .engine import PersonaEngine
from .merger import OnboardingAnswers, apply_user_edits, merge_signals, new_persona, onboarding_persona
from .render import render_persona
from .signals import extract_chat_signals, extract_purchase_signals, extract_search_signals
from .store import (
    InMemoryPersonaStore,
    PersonaError,
    PersonaNotFoundError,
    PersonaStore,
    PersonaStoreError,
    SQLPersonaStore,
)
from .types import PersonaRecord, PersonaSignal, SignalSource, SignalType

__all__ = [
    "PersonaEngine",
    "OnboardingAnswers",
    "apply_user_edits",
    "merge_signals",
    "new_persona",
    "onboarding_persona",
    "render_persona",
    "extract_chat_signals",
    "extract_purchase_signals",
    "extract_search_signals",
    "InMemoryPersonaStore",
    "PersonaError",
    "PersonaNotFoundError",
    "PersonaStore",
    "PersonaStoreError",
    "SQLPersonaStore",
    "PersonaRecord",
    "PersonaSignal",
    "SignalSource",
    "SignalType",
]
