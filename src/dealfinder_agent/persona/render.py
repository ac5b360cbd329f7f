"""
Persona rendering for prompt injection.
"""

from typing import Any, Literal

from .merger import confidence_label
from .types import PersonaRecord

MAX_TOP_INTERESTS = 5
PREFERRED_BRAND_THRESHOLD = 0.3
AVOIDED_BRAND_THRESHOLD = -0.3


def price_quality_label(spectrum: float) -> str:
    if spectrum < -0.5:
        return "Strongly price-focused"
    if spectrum < -0.1:
        return "Leans toward value"
    if spectrum < 0.1:
        return "Balanced price/quality"
    if spectrum < 0.5:
        return "Leans toward quality"
    return "Strongly quality-focused"


def _clean(value: Any) -> str:
    # Drop control characters so user-edited fields cannot break the prompt
    return "".join(ch for ch in str(value) if ch.isprintable())


def _join(values: list[Any]) -> str:
    return ", ".join(_clean(v) for v in values)


def render_persona(record: PersonaRecord) -> str:
    """Format a persona as a context block for the system prompt.

    Only populated fields are emitted. The output depends on nothing but the
    record.
    """
    confidence = record.confidence_score
    sections = [
        f"## User Profile (Confidence: {round(confidence * 100)}% — {confidence_label(confidence)})",
    ]

    location = [v for v in (record.country, record.locale, record.currency) if v]
    if location:
        sections.append(f"**Location & Currency:** {_join(location)}")

    if record.average_order_value:
        sections.append(
            f"**Average spend:** {_clean(record.currency or 'USD')} {record.average_order_value:.0f}"
        )
    if record.budget_ranges:
        ranges = ", ".join(
            f"{_clean(category)}: {_clean(r.currency)} {r.min:g}-{r.max:g}"
            for category, r in record.budget_ranges.items()
        )
        sections.append(f"**Budget ranges:** {ranges}")

    if record.price_quality_spectrum is not None:
        sections.append(f"**Price/Quality preference:** {price_quality_label(record.price_quality_spectrum)}")

    if record.brand_affinities:
        liked = [b for b, s in record.brand_affinities.items() if s > PREFERRED_BRAND_THRESHOLD]
        disliked = [b for b, s in record.brand_affinities.items() if s < AVOIDED_BRAND_THRESHOLD]
        if liked:
            sections.append(f"**Preferred brands:** {_join(liked)}")
        if disliked:
            sections.append(f"**Avoided brands:** {_join(disliked)}")

    if record.category_interests:
        top = sorted(record.category_interests.items(), key=lambda item: item[1], reverse=True)
        sections.append(f"**Top interests:** {_join([c for c, _ in top[:MAX_TOP_INTERESTS]])}")

    if record.preferred_retailers:
        sections.append(f"**Preferred stores:** {_join(record.preferred_retailers)}")
    if record.dietary_restrictions:
        sections.append(f"**Dietary:** {_join(record.dietary_restrictions)}")
    if record.hobbies:
        sections.append(f"**Hobbies:** {_join(record.hobbies)}")

    return "\n".join(sections)


def persona_slice(
    record: PersonaRecord,
    worker: Literal["search", "compare", "buy", "recommend"],
) -> dict[str, Any]:
    """The subset of the persona a given worker needs.

    The recommender gets the full profile.
    """
    profile = record.profile_dict()
    keys = {
        "search": ("brandAffinities", "budgetRanges", "categoryInterests", "currency", "country"),
        "compare": ("priceQualitySpectrum", "preferredRetailers", "currency"),
        "buy": ("sizeData", "currency", "country"),
    }.get(worker)
    if keys is None:
        return profile
    return {k: profile[k] for k in keys if k in profile}
