"""
Persona signal extraction.

Chat signals come from pattern rules over the user's own words. Each rule is
a small pure function over the lowercased text and returns at most one
signal (lifestyle may return several). Rules are deliberately literal: they
match what the user wrote, not what they meant.

Confidence reflects how much a source is trusted: purchases are committed
behavior, chat statements are explicit but cheap, searches are exploratory.
"""

import re
from typing import Any, Callable, Optional

from .types import PersonaSignal, SignalSource, SignalType

BUDGET_PATTERN = re.compile(
    r"(?:budget|spend|afford|under|less than|max|no more than)"
    r"(?:\s+(?:of|is|around|about))?\s*\$?\s*(\d+(?:\.\d+)?)"
)
PRICE_FOCUSED_PATTERN = re.compile(r"\b(?:cheap|cheapest|affordable|budget|bargain)\b")
QUALITY_FOCUSED_PATTERN = re.compile(r"\b(?:premium|luxury|best quality|high[- ]end|top[- ]tier)\b")
POSITIVE_BRAND_PATTERN = re.compile(
    r"\b(?<!don't )(?<!not )(?:like|love|prefer|want|use|fan of|loyal to)\s+(\w+(?:\s+\w+)?)\b"
)
NEGATIVE_BRAND_PATTERN = re.compile(r"\b(?:not|don't like|hate|avoid)\s+(\w+(?:\s+\w+)?)\b")

DIETARY_KEYWORDS = (
    "vegan",
    "vegetarian",
    "gluten-free",
    "organic",
    "kosher",
    "halal",
    "dairy-free",
    "keto",
)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "electronics": ("phone", "laptop", "tablet", "headphone", "speaker", "camera", "tv",
                    "monitor", "iphone", "samsung", "macbook"),
    "clothing": ("shirt", "pants", "dress", "shoes", "jacket", "sneaker", "boot", "hat", "hoodie"),
    "home": ("furniture", "lamp", "chair", "table", "sofa", "bed", "pillow", "blanket", "kitchen"),
    "sports": ("fitness", "gym", "yoga", "running", "bike", "bicycle", "ball", "racket"),
    "beauty": ("skincare", "makeup", "perfume", "shampoo", "cream", "serum"),
    "toys": ("toy", "lego", "game", "puzzle", "doll", "action figure"),
    "grocery": ("food", "snack", "coffee", "tea", "organic", "milk", "bread"),
}
DEFAULT_CATEGORY = "general"

# Typographic apostrophes folded to ASCII before matching
APOSTROPHES = str.maketrans({"\u2019": "'", "\u2018": "'", "\u02bc": "'"})

ChatRule = Callable[[str], Optional[PersonaSignal]]


def _chat_signal(signal_type: SignalType, key: str, value: float | str, confidence: float) -> PersonaSignal:
    return PersonaSignal(type=signal_type, key=key, value=value, confidence=confidence, source=SignalSource.CHAT)


def budget_rule(text: str) -> Optional[PersonaSignal]:
    match = BUDGET_PATTERN.search(text)
    if not match:
        return None
    return _chat_signal(SignalType.BUDGET_SIGNAL, "stated_budget", float(match.group(1)), 0.9)


def price_focused_rule(text: str) -> Optional[PersonaSignal]:
    if not PRICE_FOCUSED_PATTERN.search(text):
        return None
    return _chat_signal(SignalType.QUALITY_PREFERENCE, "price_sensitivity", "price_focused", 0.7)


def quality_focused_rule(text: str) -> Optional[PersonaSignal]:
    if not QUALITY_FOCUSED_PATTERN.search(text):
        return None
    return _chat_signal(SignalType.QUALITY_PREFERENCE, "price_sensitivity", "quality_focused", 0.7)


def positive_brand_rule(text: str) -> Optional[PersonaSignal]:
    match = POSITIVE_BRAND_PATTERN.search(text)
    if not match:
        return None
    return _chat_signal(SignalType.BRAND_PREFERENCE, match.group(1).strip(), 1.0, 0.8)


def negative_brand_rule(text: str) -> Optional[PersonaSignal]:
    match = NEGATIVE_BRAND_PATTERN.search(text)
    if not match:
        return None
    return _chat_signal(SignalType.BRAND_PREFERENCE, match.group(1).strip(), -1.0, 0.6)


def lifestyle_signals(text: str) -> list[PersonaSignal]:
    return [
        _chat_signal(SignalType.LIFESTYLE, "dietary", keyword, 0.95)
        for keyword in DIETARY_KEYWORDS
        if keyword in text
    ]


CHAT_SIGNAL_RULES: tuple[ChatRule, ...] = (
    budget_rule,
    price_focused_rule,
    quality_focused_rule,
    positive_brand_rule,
    negative_brand_rule,
)


def extract_chat_signals(message: Any) -> list[PersonaSignal]:
    """Extract persona signals from a user's chat message.

    Never raises; anything that is not a non-empty string yields no signals.
    """
    if not isinstance(message, str) or not message.strip():
        return []

    lower = message.lower().translate(APOSTROPHES)
    signals = [signal for rule in CHAT_SIGNAL_RULES if (signal := rule(lower)) is not None]
    signals.extend(lifestyle_signals(lower))
    return signals


def infer_categories(query: str) -> list[str]:
    """Simple category inference from search query keywords."""
    lower = query.lower()
    categories = [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(keyword in lower for keyword in keywords)
    ]
    return categories or [DEFAULT_CATEGORY]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_search_signals(query: Any, filters: dict[str, Any] | None = None) -> list[PersonaSignal]:
    """Extract persona signals from a search action."""
    if not isinstance(query, str) or not query.strip():
        return []

    signals = [
        PersonaSignal(
            type=SignalType.CATEGORY_INTEREST,
            key=category,
            value=1.0,
            confidence=0.5,
            source=SignalSource.SEARCH,
        )
        for category in infer_categories(query)
    ]

    max_price = _number((filters or {}).get("maxPrice"))
    if max_price:
        signals.append(PersonaSignal(
            type=SignalType.BUDGET_SIGNAL,
            key="search_price_ceiling",
            value=max_price,
            confidence=0.6,
            source=SignalSource.SEARCH,
        ))

    return signals


def extract_purchase_signals(product: Any) -> list[PersonaSignal]:
    """Extract persona signals from a completed purchase.

    Purchases are the highest-confidence source.

    Args:
        product: Mapping with ``price`` and ``source`` (retailer) and
            optional ``brand`` and ``category``
    """
    if not isinstance(product, dict):
        return []

    signals: list[PersonaSignal] = []

    if product.get("brand"):
        signals.append(PersonaSignal(
            type=SignalType.BRAND_PREFERENCE,
            key=str(product["brand"]),
            value=1.0,
            confidence=0.95,
            source=SignalSource.PURCHASE,
        ))

    if product.get("category"):
        signals.append(PersonaSignal(
            type=SignalType.CATEGORY_INTEREST,
            key=str(product["category"]),
            value=2.0,  # purchases weigh more than searches
            confidence=0.9,
            source=SignalSource.PURCHASE,
        ))

    price = _number(product.get("price"))
    if price is not None:
        signals.append(PersonaSignal(
            type=SignalType.BUDGET_SIGNAL,
            key="actual_spend",
            value=price,
            confidence=1.0,
            source=SignalSource.PURCHASE,
        ))

    if product.get("source"):
        signals.append(PersonaSignal(
            type=SignalType.RETAILER_PREFERENCE,
            key=str(product["source"]),
            value=1.0,
            confidence=0.8,
            source=SignalSource.PURCHASE,
        ))

    return signals
