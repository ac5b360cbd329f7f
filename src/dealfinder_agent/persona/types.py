"""
Persona data types.

A PersonaSignal is a small unit of evidence about a user's shopping
preferences. Signals are produced per user action and consumed immediately
by the merger; only the PersonaRecord they are merged into is durable.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

PRICE_QUALITY_RANGE = (-1.0, 1.0)
BRAND_AFFINITY_RANGE = (-1.0, 1.0)


class SignalType(str, Enum):
    """Kinds of persona evidence."""
    BRAND_PREFERENCE = "brand_preference"
    BUDGET_SIGNAL = "budget_signal"
    CATEGORY_INTEREST = "category_interest"
    LIFESTYLE = "lifestyle"
    QUALITY_PREFERENCE = "quality_preference"
    RETAILER_PREFERENCE = "retailer_preference"


class SignalSource(str, Enum):
    """Where a signal came from."""
    CHAT = "chat"
    SEARCH = "search"
    PURCHASE = "purchase"
    CLICK = "click"
    FEEDBACK = "feedback"
    ONBOARDING = "onboarding"


class InteractionType(str, Enum):
    """User actions that are logged alongside their signals."""
    SEARCH = "search"
    CLICK = "click"
    PURCHASE = "purchase"
    DISMISS = "dismiss"
    FEEDBACK = "feedback"
    CHAT_STATEMENT = "chat_statement"


@dataclass(frozen=True)
class PersonaSignal:
    """A typed piece of evidence about user preference."""

    type: SignalType
    key: str
    value: float | str
    confidence: float
    source: SignalSource

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "key": self.key,
            "value": self.value,
            "confidence": self.confidence,
            "source": self.source.value,
        }


@dataclass
class InteractionRecord:
    """A logged user action and the signals extracted from it."""

    user_id: str
    type: InteractionType
    payload: dict[str, Any] = field(default_factory=dict)
    signals: list[PersonaSignal] = field(default_factory=list)


@dataclass
class BudgetRange:
    min: float
    max: float
    currency: str = "USD"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_key(key: Any) -> str:
    return str(key).strip().lower()


# camelCase wire names for the persisted persona document
_FIELD_ALIASES = {
    "household_size": "householdSize",
    "life_stage": "lifeStage",
    "price_quality_spectrum": "priceQualitySpectrum",
    "average_order_value": "averageOrderValue",
    "promotion_responsiveness": "promotionResponsiveness",
    "brand_affinities": "brandAffinities",
    "category_interests": "categoryInterests",
    "budget_ranges": "budgetRanges",
    "size_data": "sizeData",
    "preferred_retailers": "preferredRetailers",
    "dietary_restrictions": "dietaryRestrictions",
    "upcoming_needs": "upcomingNeeds",
    "search_patterns": "searchPatterns",
}
_ALIAS_TO_FIELD = {v: k for k, v in _FIELD_ALIASES.items()}

SCALAR_FIELDS = (
    "locale",
    "currency",
    "country",
    "household_size",
    "life_stage",
    "price_quality_spectrum",
    "average_order_value",
    "promotion_responsiveness",
)
MAP_FIELDS = ("brand_affinities", "category_interests", "budget_ranges", "size_data")
SEQUENCE_FIELDS = (
    "preferred_retailers",
    "dietary_restrictions",
    "hobbies",
    "upcoming_needs",
    "search_patterns",
)


def field_name(name: str) -> str:
    """Map a camelCase wire name to its attribute name."""
    return _ALIAS_TO_FIELD.get(name, name)


@dataclass
class PersonaRecord:
    """Durable per-user shopping profile."""

    # Identity
    locale: str | None = None
    currency: str | None = None
    country: str | None = None
    household_size: int | None = None
    life_stage: str | None = None

    # Shopping DNA
    price_quality_spectrum: float | None = None
    average_order_value: float | None = None
    promotion_responsiveness: float | None = None
    brand_affinities: dict[str, float] = field(default_factory=dict)
    category_interests: dict[str, float] = field(default_factory=dict)
    budget_ranges: dict[str, BudgetRange] = field(default_factory=dict)
    size_data: dict[str, str] = field(default_factory=dict)

    # Accumulated behavior and lifestyle
    preferred_retailers: list[str] = field(default_factory=list)
    dietary_restrictions: list[str] = field(default_factory=list)
    hobbies: list[str] = field(default_factory=list)
    upcoming_needs: list[str] = field(default_factory=list)
    search_patterns: list[str] = field(default_factory=list)

    # Meta
    confidence_score: float = 0.0
    last_refreshed_at: datetime | None = None

    def profile_dict(self) -> dict[str, Any]:
        """The persona document without meta fields, camelCased."""
        data = asdict(self)
        data.pop("confidence_score")
        data.pop("last_refreshed_at")
        return {_FIELD_ALIASES.get(k, k): v for k, v in data.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        data = self.profile_dict()
        data["confidenceScore"] = self.confidence_score
        data["lastRefreshedAt"] = self.last_refreshed_at.isoformat() if self.last_refreshed_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersonaRecord":
        record = cls()
        for raw_key, value in data.items():
            name = field_name(raw_key)
            if name in SCALAR_FIELDS:
                setattr(record, name, value)
            elif name == "budget_ranges" and isinstance(value, dict):
                record.budget_ranges = {
                    normalize_key(k): r if isinstance(r, BudgetRange) else BudgetRange(**r)
                    for k, r in value.items()
                    if r is not None
                }
            elif name in MAP_FIELDS and isinstance(value, dict):
                setattr(record, name, {normalize_key(k): v for k, v in value.items() if v is not None})
            elif name in SEQUENCE_FIELDS and isinstance(value, (list, tuple)):
                setattr(record, name, list(value))

        if "confidenceScore" in data or "confidence_score" in data:
            record.confidence_score = float(data.get("confidenceScore", data.get("confidence_score")) or 0.0)
        refreshed = data.get("lastRefreshedAt", data.get("last_refreshed_at"))
        if isinstance(refreshed, str):
            refreshed = datetime.fromisoformat(refreshed)
        if isinstance(refreshed, datetime) and refreshed.tzinfo is None:
            refreshed = refreshed.replace(tzinfo=timezone.utc)
        record.last_refreshed_at = refreshed if isinstance(refreshed, datetime) else None
        return record
