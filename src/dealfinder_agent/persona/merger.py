"""
Persona merging.

Applies batches of signals and explicit user edits to a PersonaRecord. All
functions here are pure: they return a new record and leave the input
untouched. Persistence and per-user serialization live in the engine.
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .types import (
    BRAND_AFFINITY_RANGE,
    MAP_FIELDS,
    PRICE_QUALITY_RANGE,
    SCALAR_FIELDS,
    SEQUENCE_FIELDS,
    BudgetRange,
    PersonaRecord,
    PersonaSignal,
    SignalType,
    clamp,
    field_name,
    normalize_key,
)

ONBOARDING_CONFIDENCE = 0.2

# Confidence gained per applied signal, by kind
BRAND_BOOST = 0.02
SPEND_BOOST = 0.05
CATEGORY_BOOST = 0.01
QUALITY_BOOST = 0.03
RETAILER_BOOST = 0.01
DIETARY_BOOST = 0.05

QUALITY_SHIFT = 0.2
SPEND_SMOOTHING = 0.3


@dataclass
class MergeResult:
    """A merged record and how much confidence the batch added."""

    record: PersonaRecord
    confidence_delta: float


def new_persona(initial: dict[str, Any] | None = None) -> PersonaRecord:
    """Create a persona with neutral defaults, optionally seeded by onboarding."""
    record = PersonaRecord(
        locale="en",
        currency="USD",
        price_quality_spectrum=0.0,
        confidence_score=ONBOARDING_CONFIDENCE if initial else 0.0,
        last_refreshed_at=datetime.now(timezone.utc),
    )
    if initial:
        record = apply_user_edits(record, initial)
    return record


def _apply_signal(persona: PersonaRecord, signal: PersonaSignal) -> float:
    """Apply one signal in place and return its confidence boost."""
    if signal.type is SignalType.BRAND_PREFERENCE:
        key = normalize_key(signal.key)
        current = persona.brand_affinities.get(key, 0.0)
        blended = current * (1 - signal.confidence) + float(signal.value) * signal.confidence
        persona.brand_affinities[key] = clamp(blended, *BRAND_AFFINITY_RANGE)
        return BRAND_BOOST

    if signal.type is SignalType.BUDGET_SIGNAL:
        if signal.key != "actual_spend":
            return 0.0
        spend = float(signal.value)
        previous = persona.average_order_value if persona.average_order_value is not None else spend
        persona.average_order_value = previous * (1 - SPEND_SMOOTHING) + spend * SPEND_SMOOTHING
        return SPEND_BOOST

    if signal.type is SignalType.CATEGORY_INTEREST:
        key = normalize_key(signal.key)
        current = persona.category_interests.get(key, 0.0)
        persona.category_interests[key] = max(0.0, current + float(signal.value) * signal.confidence)
        return CATEGORY_BOOST

    if signal.type is SignalType.QUALITY_PREFERENCE:
        shift = QUALITY_SHIFT if signal.value == "quality_focused" else -QUALITY_SHIFT
        current = persona.price_quality_spectrum or 0.0
        persona.price_quality_spectrum = clamp(current + shift * signal.confidence, *PRICE_QUALITY_RANGE)
        return QUALITY_BOOST

    if signal.type is SignalType.RETAILER_PREFERENCE:
        retailer = normalize_key(signal.key)
        if retailer not in persona.preferred_retailers:
            persona.preferred_retailers.append(retailer)
        return RETAILER_BOOST

    if signal.type is SignalType.LIFESTYLE:
        if signal.key != "dietary":
            return 0.0
        restriction = normalize_key(signal.value)
        if restriction not in persona.dietary_restrictions:
            persona.dietary_restrictions.append(restriction)
        return DIETARY_BOOST

    raise ValueError(f"Unknown signal type: {signal.type!r}")


def merge_signals(
    record: PersonaRecord,
    signals: list[PersonaSignal],
    now: Optional[datetime] = None,
) -> MergeResult:
    """Apply a batch of signals to a persona.

    Confidence only ever grows here and is capped at 1. Brand affinities and
    the price/quality spectrum stay within [-1, 1].
    """
    persona = copy.deepcopy(record)
    boost = sum(_apply_signal(persona, signal) for signal in signals)

    before = record.confidence_score
    persona.confidence_score = max(before, min(1.0, before + boost))
    persona.last_refreshed_at = now or datetime.now(timezone.utc)

    return MergeResult(record=persona, confidence_delta=persona.confidence_score - before)


def _normalize_map(name: str, values: dict[str, Any]) -> dict[str, Any]:
    if name == "budget_ranges":
        return {
            k: v if isinstance(v, BudgetRange) else BudgetRange(**v)
            for k, v in values.items()
        }
    if name == "brand_affinities":
        return {k: clamp(float(v), *BRAND_AFFINITY_RANGE) for k, v in values.items()}
    if name == "category_interests":
        return {k: max(0.0, float(v)) for k, v in values.items()}
    return values


def apply_user_edits(record: PersonaRecord, updates: dict[str, Any]) -> PersonaRecord:
    """Merge explicit profile edits into a persona.

    - Scalars are overwritten
    - Maps are shallow-merged; a None value deletes the key
    - Sequences are replaced wholesale

    Accepts camelCase or snake_case field names; unknown fields are ignored.
    Confidence is left alone.
    """
    persona = copy.deepcopy(record)

    for raw_key, value in updates.items():
        name = field_name(raw_key)

        if name in SCALAR_FIELDS:
            if name == "price_quality_spectrum" and value is not None:
                value = clamp(float(value), *PRICE_QUALITY_RANGE)
            setattr(persona, name, value)

        elif name in MAP_FIELDS:
            if not isinstance(value, dict):
                continue
            merged = dict(getattr(persona, name))
            for key, item in value.items():
                key = normalize_key(key)
                if item is None:
                    merged.pop(key, None)
                else:
                    merged[key] = item
            setattr(persona, name, _normalize_map(name, merged))

        elif name in SEQUENCE_FIELDS:
            setattr(persona, name, list(value or []))

    return persona


class OnboardingAnswers(BaseModel):
    """Answers submitted through the onboarding questionnaire."""

    budget_range: Optional[Literal["under-50", "50-200", "200-500", "500+"]] = Field(default=None, alias="budgetRange")
    categories: list[str] = Field(default_factory=list)
    brands: str = ""
    quality_vs_price: Optional[int] = Field(default=None, alias="qualityVsPrice", ge=1, le=5)
    household: Optional[str] = None
    shopping_frequency: Optional[str] = Field(default=None, alias="shoppingFrequency")
    retailers: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


HOUSEHOLD_SIZES = {
    "living-alone": 1,
    "couple": 2,
    "shared": 3,
    "family": 4,
}

BUDGET_RANGE_ORDER_VALUES = {
    "under-50": 30.0,
    "50-200": 125.0,
    "200-500": 350.0,
    "500+": 750.0,
}


def onboarding_persona(answers: OnboardingAnswers) -> dict[str, Any]:
    """Translate onboarding answers into initial persona fields."""
    brands = [b.strip() for b in answers.brands.split(",") if b.strip()]
    spectrum = (answers.quality_vs_price - 3) / 2 if answers.quality_vs_price else 0.0

    initial: dict[str, Any] = {
        "currency": "USD",
        "locale": "en",
        "householdSize": HOUSEHOLD_SIZES.get(answers.household or "", 1),
        "priceQualitySpectrum": spectrum,
        "preferredRetailers": [normalize_key(r) for r in answers.retailers],
        "brandAffinities": {brand: 0.8 for brand in brands},
        "categoryInterests": {category: 1.0 for category in answers.categories},
    }
    if answers.budget_range:
        initial["averageOrderValue"] = BUDGET_RANGE_ORDER_VALUES[answers.budget_range]
    return initial


def confidence_label(score: float) -> str:
    """Human-readable label for a confidence score."""
    if score < 0.2:
        return "Just getting to know you"
    if score < 0.4:
        return "Learning your preferences"
    if score < 0.6:
        return "Getting a good sense of your style"
    if score < 0.8:
        return "Know your preferences well"
    return "Highly personalized"
