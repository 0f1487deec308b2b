"""Drive one order through the supplier checkout, shrinking on credit-limit rejections."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from restock.config import SCREENSHOT_DIR, config
from restock.models import OrderAttempt, ProductConfig, SelectorSet
from restock.orders.planner import reduction_ladder
from restock.parse.order_feedback import CREDIT_LIMIT, rejection_reason
from restock.schedule.work_hours import WorkScheduleGate
from restock.session.errors import (
    ErrorKind,
    FatalSessionError,
    OrderRejectedError,
    SelectorNotFoundError,
    SessionError,
    TransientSessionError,
)
from restock.session.web_session import (
    WebSession,
    click_first,
    fill_first,
    raise_if_logged_out,
    read_first_text,
    wait_for_first,
)
from restock.store.daily_state import DailyStateStore

logger = logging.getLogger(__name__)

NO_CONFIRMATION = "no-confirmation"


class OrderExecutor:
    """Places orders through a WebSession and records every attempt in the daily state."""

    def __init__(
        self,
        session: WebSession,
        store: DailyStateStore,
        gate: WorkScheduleGate,
        selectors: Optional[SelectorSet] = None,
        screenshot_dir: Path = SCREENSHOT_DIR,
        selector_timeout: float = config.SELECTOR_TIMEOUT,
        navigation_timeout: float = config.NAVIGATION_TIMEOUT,
        confirmation_timeout: float = config.CONFIRMATION_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.store = store
        self.gate = gate
        self.selectors = selectors or SelectorSet()
        self.screenshot_dir = Path(screenshot_dir)
        self.selector_timeout = selector_timeout
        self.navigation_timeout = navigation_timeout
        self.confirmation_timeout = confirmation_timeout
        self._clock = clock or gate.now

    async def execute(self, product: ProductConfig, quantity: int) -> OrderAttempt:
        """Order ``quantity`` units, walking the reduction ladder on credit-limit rejections.

        Returns the last attempt made. A product whose minimum-quantity attempt is
        also rejected is stopped for the rest of the day. ``FatalSessionError``
        propagates after the attempt is recorded.
        """
        attempt = await self._attempt(product, quantity, quantity, in_cart=False)
        if attempt.success:
            return attempt
        if attempt.failure_reason != CREDIT_LIMIT:
            await self._capture_screenshot(product)
            return attempt

        for reduced in reduction_ladder(quantity, product.min_quantity, product.reduction_divisor):
            logger.warning(f"{product.id}: credit limit hit at {attempt.final_quantity}, retrying with {reduced}")
            attempt = await self._attempt(product, quantity, reduced, in_cart=True)
            if attempt.success:
                return attempt
            if attempt.failure_reason != CREDIT_LIMIT:
                await self._capture_screenshot(product)
                return attempt

        logger.error(f"{product.id}: minimum quantity {attempt.final_quantity} rejected, stopping for today")
        await self.store.mark_stopped(product.id, self._clock())
        await self._capture_screenshot(product)
        return attempt

    async def _attempt(self, product: ProductConfig, requested: int, quantity: int, in_cart: bool) -> OrderAttempt:
        now = self._clock()
        reference = await self.store.next_reference(now)
        failure_reason: Optional[str] = None
        fatal: Optional[FatalSessionError] = None

        try:
            if in_cart:
                await self._update_cart_quantity(quantity)
            else:
                await self._add_to_cart(product, quantity)
            await self._checkout(reference, now)
            await self._await_confirmation()
        except FatalSessionError as e:
            failure_reason, fatal = e.reason or ErrorKind.FATAL.value, e
        except SessionError as e:
            failure_reason = e.reason or e.kind.value
            logger.warning(f"{product.id}: order {reference} for {quantity} failed ({e.kind.value}): {e}")

        attempt = OrderAttempt(
            product_id=product.id,
            product_name=product.name,
            requested_quantity=requested,
            final_quantity=quantity,
            reference=reference,
            success=failure_reason is None,
            failure_reason=failure_reason,
            timestamp=now,
        )
        await self.store.record_attempt(attempt, now)

        if fatal is not None:
            raise fatal
        if attempt.success:
            logger.info(f"{product.id}: order {reference} placed for {quantity} units")
        return attempt

    async def _add_to_cart(self, product: ProductConfig, quantity: int) -> None:
        await self.session.goto(product.url)
        try:
            await fill_first(self.session, self.selectors.quantity, str(quantity), self.selector_timeout)
            await click_first(self.session, self.selectors.add_to_cart, self.selector_timeout)
        except SelectorNotFoundError:
            await raise_if_logged_out(self.session, f"{product.id} add to cart")
            raise
        await click_first(self.session, self.selectors.open_cart, self.selector_timeout)
        await self.session.wait_for_navigation(self.navigation_timeout)

    async def _update_cart_quantity(self, quantity: int) -> None:
        """Change the quantity of the line already in the cart."""
        await click_first(self.session, self.selectors.open_cart, self.selector_timeout)
        await self.session.wait_for_navigation(self.navigation_timeout)
        await fill_first(self.session, self.selectors.cart_quantity, str(quantity), self.selector_timeout)
        await click_first(self.session, self.selectors.update_cart, self.selector_timeout)
        await self.session.wait_for_navigation(self.navigation_timeout)

    async def _fill_optional(self, selectors: list[str], value: str, field: str) -> None:
        try:
            await fill_first(self.session, selectors, value, self.selector_timeout)
        except SelectorNotFoundError:
            logger.debug(f"No {field} field on checkout page, skipping")

    async def _checkout(self, reference: str, now: datetime) -> None:
        await click_first(self.session, self.selectors.checkout, self.selector_timeout)
        await self.session.wait_for_navigation(self.navigation_timeout)

        delivery_date = self.gate.next_business_day(now).isoformat()
        await self._fill_optional(self.selectors.delivery_date, delivery_date, "delivery date")
        await fill_first(self.session, self.selectors.reference, reference, self.selector_timeout)
        await self._fill_optional(self.selectors.order_number, reference, "order number")

        try:
            await click_first(self.session, self.selectors.accept_terms, self.selector_timeout)
        except SelectorNotFoundError:
            logger.debug("No terms checkbox on checkout page, skipping")

        await click_first(self.session, self.selectors.submit, self.selector_timeout)

    async def _await_confirmation(self) -> None:
        """Wait for the confirmation marker; classify the page when it does not appear."""
        try:
            await wait_for_first(self.session, self.selectors.confirmation, self.confirmation_timeout)
            return
        except SelectorNotFoundError:
            pass

        error_text = await read_first_text(self.session, self.selectors.error_message)
        reason = rejection_reason(error_text)
        if reason:
            raise OrderRejectedError(f"Order rejected: {error_text}", reason=reason)

        await raise_if_logged_out(self.session, "checkout")

        raise TransientSessionError(
            f"No confirmation within {self.confirmation_timeout}s: {error_text or 'no error shown'}",
            reason=NO_CONFIRMATION,
        )

    async def _capture_screenshot(self, product: ProductConfig) -> Optional[Path]:
        """Best-effort diagnostic screenshot; never raises."""
        timestamp = self._clock().strftime("%Y%m%dT%H%M%S")
        path = self.screenshot_dir / f"order-error-{product.id}-{timestamp}.png"
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            await self.session.screenshot(str(path))
        except (SessionError, OSError) as e:
            logger.warning(f"{product.id}: could not save screenshot {path}: {e}")
            return None
        logger.info(f"{product.id}: saved screenshot {path}")
        return path
