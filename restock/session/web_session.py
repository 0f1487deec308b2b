"""WebSession capability and selector fallback helpers."""
import logging
from typing import Optional, Protocol

from restock.parse.order_feedback import is_logged_out
from restock.session.errors import ErrorKind, FatalSessionError, SelectorNotFoundError, SessionError

logger = logging.getLogger(__name__)


class WebSession(Protocol):
    """Browser capability consumed by the order engine.

    Every method is a bounded wait and raises a ``SessionError`` subclass on
    failure: ``TransientSessionError`` for timeouts/navigation problems,
    ``SelectorNotFoundError`` when an element is missing and
    ``FatalSessionError`` when the session is no longer usable.
    """

    async def goto(self, url: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def wait_for_selector(self, selector: str, timeout: float) -> None: ...

    async def wait_for_navigation(self, timeout: float) -> None: ...

    async def text_content(self, selector: str) -> str: ...

    async def screenshot(self, path: str) -> None: ...


def _is_fallback_error(error: SessionError) -> bool:
    """Errors that let the next selector in a fallback list be tried."""
    return error.kind in (ErrorKind.NOT_FOUND, ErrorKind.TRANSIENT)


async def fill_first(session: WebSession, selectors: list[str], value: str, timeout: float) -> str:
    """Fill the first selector that appears; returns the selector used."""
    for selector in selectors:
        try:
            await session.wait_for_selector(selector, timeout)
            await session.fill(selector, value)
            logger.debug(f"Filled {selector} with {value!r}")
            return selector
        except SessionError as e:
            if not _is_fallback_error(e):
                raise
            logger.debug(f"Fill selector failed: {selector} ({e})")
    raise SelectorNotFoundError(f"No fillable field among {selectors}", selectors)


async def click_first(session: WebSession, selectors: list[str], timeout: float) -> str:
    """Click the first selector that appears; returns the selector used."""
    for selector in selectors:
        try:
            await session.wait_for_selector(selector, timeout)
            await session.click(selector)
            logger.debug(f"Clicked {selector}")
            return selector
        except SessionError as e:
            if not _is_fallback_error(e):
                raise
            logger.debug(f"Click selector failed: {selector} ({e})")
    raise SelectorNotFoundError(f"No clickable element among {selectors}", selectors)


async def wait_for_first(session: WebSession, selectors: list[str], timeout: float) -> str:
    """Wait until one of the selectors appears; returns the selector that did."""
    for selector in selectors:
        try:
            await session.wait_for_selector(selector, timeout)
            return selector
        except SessionError as e:
            if not _is_fallback_error(e):
                raise
    raise SelectorNotFoundError(f"None of {selectors} appeared", selectors)


async def read_first_text(session: WebSession, selectors: list[str]) -> Optional[str]:
    """Text of the first selector that has any; None when none do."""
    for selector in selectors:
        try:
            text = await session.text_content(selector)
        except SessionError as e:
            if not _is_fallback_error(e):
                raise
            continue
        if text and text.strip():
            return text.strip()
    return None


async def raise_if_logged_out(session: WebSession, context: str) -> None:
    """Raise ``FatalSessionError`` when the current page is the login form."""
    page_text = await read_first_text(session, ["body"])
    if is_logged_out(page_text):
        raise FatalSessionError(f"Session expired during {context}", reason="logged-out")
