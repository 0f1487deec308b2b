"""Detect supplier-side order rejections from page text."""
import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

CREDIT_LIMIT = "credit-limit"

# Any one of these in the error banner means the account limit refused the order
CREDIT_LIMIT_INDICATORS = [
    r"credit",
    r"limit",
    r"kreditgräns",
    r"kreditlimit",
    r"beloppsgräns",
    r"orderspärr",
    r"spärr",
]

# Signs that we were bounced back to the login form mid-checkout
LOGGED_OUT_INDICATORS = [
    r"logga in",
    r"log in",
    r"sessionen har gått ut",
    r"session expired",
]


def is_credit_limit_rejection(error_text: str | None) -> bool:
    """Whether an error banner signals a credit/order-limit rejection."""
    if not error_text:
        return False
    text = error_text.lower()
    return any(re.search(pattern, text) for pattern in CREDIT_LIMIT_INDICATORS)


def is_logged_out(page_text: str | None) -> bool:
    """Whether page text looks like the login form (needs at least 2 indicators)."""
    if not page_text:
        return False
    text = page_text.lower()
    matches = sum(1 for pattern in LOGGED_OUT_INDICATORS if re.search(pattern, text))
    return matches >= 2


def rejection_reason(error_text: str | None) -> Optional[str]:
    """Tagged rejection reason for an error banner, or None if it is not a business rejection."""
    if is_credit_limit_rejection(error_text):
        logger.debug(f"Credit-limit rejection detected: {error_text!r}")
        return CREDIT_LIMIT
    return None
