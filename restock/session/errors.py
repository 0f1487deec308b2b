"""Failure kinds raised by web session operations."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    BUSINESS_REJECTED = "business_rejected"
    FATAL = "fatal"


class SessionError(Exception):
    """Base class; callers branch on ``kind``."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class TransientSessionError(SessionError):
    """Navigation or wait timed out; retry on the next poll cycle."""

    kind = ErrorKind.TRANSIENT


class SelectorNotFoundError(SessionError):
    """None of the candidate selectors matched."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, selectors: Optional[list[str]] = None):
        super().__init__(message, reason="selector-not-found")
        self.selectors = selectors or []


class OrderRejectedError(SessionError):
    """Supplier refused the order (e.g. reason="credit-limit")."""

    kind = ErrorKind.BUSINESS_REJECTED


class FatalSessionError(SessionError):
    """Login or session is dead; the monitor loop must stop."""

    kind = ErrorKind.FATAL
