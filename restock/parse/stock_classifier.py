"""Classify supplier stock-status text."""
import logging
import re
from datetime import datetime
from typing import NamedTuple, Optional

from restock.models import StockSample, StockStatus

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 50


class StockRule(NamedTuple):
    pattern: str
    status: StockStatus
    confidence: int


# Checked in order against the lowercased text; first match wins.
# Limited phrases come first so "Finns i lager, begränsat antal" is not read as plain available.
LIMITED_RULES = [
    StockRule("finns i lager, begränsat antal", StockStatus.LIMITED, 95),
    StockRule("begränsat antal", StockStatus.LIMITED, 90),
    StockRule("limited quantity", StockStatus.LIMITED, 90),
    StockRule("limited stock", StockStatus.LIMITED, 90),
]

UNAVAILABLE_RULES = [
    StockRule(keyword, StockStatus.UNAVAILABLE, 95)
    for keyword in (
        "tillfälligt slut",
        "slut",
        "inte tillgänglig",
        "ej tillgänglig",
        "ej i lager",
        "restorder",
        "inte på lager",
        "out of stock",
        "unavailable",
        "sold out",
    )
]

AVAILABLE_RULES = [
    StockRule(keyword, StockStatus.AVAILABLE, 90)
    for keyword in (
        "tillgänglig",
        "i lager",
        "finns",
        "leverans",
        "available",
        "in stock",
        "ready",
    )
]

# A mentioned delivery time overrides the tables above (except limited) and forces available
DELIVERY_TIME_PATTERNS = ("leveranstid", "delivery")
DELIVERY_TIME_CONFIDENCE = 80

STOCK_RULES = LIMITED_RULES + UNAVAILABLE_RULES + AVAILABLE_RULES


class Classification(NamedTuple):
    status: StockStatus
    confidence: int
    matched: Optional[str] = None


def classify(raw_text: str | None, rules: list[StockRule] = STOCK_RULES) -> Classification:
    """Map raw stock-status text to a status and a 0-100 confidence."""
    if not raw_text:
        return Classification(StockStatus.UNKNOWN, DEFAULT_CONFIDENCE)

    text = " ".join(raw_text.lower().split())
    result = Classification(StockStatus.UNKNOWN, DEFAULT_CONFIDENCE)
    for rule in rules:
        if rule.pattern in text:
            result = Classification(rule.status, rule.confidence, rule.pattern)
            break

    if result.status == StockStatus.LIMITED:
        return result

    for pattern in DELIVERY_TIME_PATTERNS:
        if pattern in text:
            return Classification(
                StockStatus.AVAILABLE, max(result.confidence, DELIVERY_TIME_CONFIDENCE), pattern
            )

    return result


def parse_price(text: str | None) -> Optional[float]:
    """Extract a unit price from Swedish-formatted text ("1 250,00 SEK" -> 1250.0)."""
    if not text:
        return None
    # Drop thousands separators (regular and non-breaking spaces)
    cleaned = re.sub(r"[\s ]", "", text).replace(",", ".")
    match = re.search(r"\d+(?:\.\d+)?", cleaned)
    if not match:
        return None
    try:
        value = float(match.group())
    except ValueError:
        return None
    return value if value > 0 else None


def build_sample(
    product_id: str,
    raw_text: str | None,
    observed_at: datetime,
    price_text: str | None = None,
) -> StockSample:
    """Classify text and wrap it into a StockSample."""
    result = classify(raw_text)
    sample = StockSample(
        product_id=product_id,
        raw_text=raw_text or "",
        status=result.status,
        confidence=result.confidence,
        price=parse_price(price_text),
        observed_at=observed_at,
    )
    logger.debug(
        f"{product_id}: {raw_text!r} -> {result.status.value} "
        f"({result.confidence}%, matched={result.matched!r})"
    )
    return sample
