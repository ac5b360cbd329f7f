"""
Tool result summaries.

When older messages are compacted, completed tool calls are replaced with a
one-line digest so the model keeps the product names, prices and URLs it
needs for follow-up questions without the full JSON payload. Tools whose
results have no follow-up value (price tracking, purchases) produce no
summary and are dropped.
"""

from typing import Any, Callable, Optional

import structlog

from .parts import Message, OpaquePart, Part, TextPart, ToolCallPart

logger = structlog.get_logger()

ToolSummaryRule = Callable[[dict[str, Any], Any], Optional[str]]

MAX_SUMMARY_ITEMS = 5


def _format_price(price: Any) -> str:
    if isinstance(price, float) and price.is_integer():
        price = int(price)
    return f"${price}"


def _as_list(output: Any, *keys: str) -> list[Any]:
    if not isinstance(output, dict):
        return []
    for key in keys:
        value = output.get(key)
        if value is not None:
            return value if isinstance(value, list) else []
    return []


def summarize_search_products(args: dict[str, Any], output: Any) -> Optional[str]:
    query = args.get("query", "unknown")
    products = _as_list(output, "products", "results")
    if not products:
        return f'[Previous search for "{query}" returned no results]'

    items = []
    for product in products[:MAX_SUMMARY_ITEMS]:
        fields = [str(product.get("title") or "Unknown")]
        if product.get("price"):
            fields.append(_format_price(product["price"]))
        url = product.get("retailerUrl") or product.get("productUrl") or product.get("url")
        if url:
            fields.append(str(url))
        items.append(" — ".join(fields))

    return f'[Previous search for "{query}" found: {"; ".join(items)}]'


def summarize_product_details(args: dict[str, Any], output: Any) -> Optional[str]:
    product = output.get("product") if isinstance(output, dict) else None
    if not product:
        return f"[Product details lookup failed for {args.get('url')}]"

    fields = [str(product.get("title") or "Unknown product")]
    if product.get("price"):
        fields.append(_format_price(product["price"]))
    if product.get("url"):
        fields.append(str(product["url"]))
    return f"[Product details: {' — '.join(fields)}]"


def summarize_recommendations(args: dict[str, Any], output: Any) -> Optional[str]:
    recommendations = _as_list(output, "recommendations", "products")
    if not recommendations:
        return None

    items = []
    for rec in recommendations[:MAX_SUMMARY_ITEMS]:
        title = rec.get("title")
        if not title:
            items.append("item")
        elif rec.get("price"):
            items.append(f"{title} ({_format_price(rec['price'])})")
        else:
            items.append(str(title))
    return f"[Recommendations: {', '.join(items)}]"


# track_price, compare_prices and purchase are one-shot actions; no rule.
TOOL_SUMMARY_RULES: dict[str, ToolSummaryRule] = {
    "search_products": summarize_search_products,
    "get_product_details": summarize_product_details,
    "get_recommendations": summarize_recommendations,
}


def summarize_tool_result(tool_name: str, args: dict[str, Any], output: Any) -> Optional[str]:
    """Build a compact text digest of a completed tool call.

    Returns None when the tool has no useful follow-up context or when the
    output cannot be summarized.
    """
    rule = TOOL_SUMMARY_RULES.get(tool_name)
    if rule is None:
        return None
    try:
        return rule(args or {}, output)
    except Exception as e:
        logger.debug("Tool summary failed", tool=tool_name, error=str(e))
        return None


def summarize_tool_parts(message: Message) -> Message:
    """Replace the tool call parts of a message with text summaries.

    Text and opaque parts are kept as-is. Pending or failed tool calls are
    removed so no partial result leaks into the history.
    """
    new_parts: list[Part] = []

    for part in message.parts:
        if isinstance(part, (TextPart, OpaquePart)):
            new_parts.append(part)
        elif isinstance(part, ToolCallPart):
            if not part.is_complete:
                continue
            summary = summarize_tool_result(part.tool_name, part.input, part.output)
            if summary:
                new_parts.append(TextPart(text=summary))
        else:
            raise TypeError(f"Unsupported message part: {type(part).__name__}")

    return message.with_parts(new_parts)
