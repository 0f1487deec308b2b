"""Monitor loop orchestrating stock checks and orders across products."""
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from restock.config import config
from restock.jobs.metrics import Metrics
from restock.jobs.metrics_exporter import MetricsExporter
from restock.jobs.run_control import RunControl
from restock.models import DailyState, ProductConfig, StockSample
from restock.orders.backorders import BackorderCleaner
from restock.orders.executor import OrderExecutor
from restock.orders.planner import plan_order
from restock.parse.stock_classifier import build_sample
from restock.schedule.cooldown import BackorderCooldownTracker
from restock.schedule.work_hours import WorkScheduleGate
from restock.session.errors import FatalSessionError, SelectorNotFoundError, SessionError
from restock.session.web_session import WebSession, raise_if_logged_out
from restock.store.daily_state import DailyStateStore

logger = logging.getLogger(__name__)


class MonitorLoop:
    """Polls configured products sequentially and orders when stock appears.

    Owns the single WebSession for its lifetime. A ``FatalSessionError`` ends
    the loop and propagates to the caller; everything else is logged and the
    product is retried on the next cycle.
    """

    def __init__(
        self,
        session: WebSession,
        products: list[ProductConfig],
        store: Optional[DailyStateStore] = None,
        gate: Optional[WorkScheduleGate] = None,
        cooldown: Optional[BackorderCooldownTracker] = None,
        executor: Optional[OrderExecutor] = None,
        run_control: Optional[RunControl] = None,
        backorder_cleaner: Optional[BackorderCleaner] = None,
        metrics_exporter: Optional[MetricsExporter] = None,
        auto_order: bool = config.AUTO_ORDER_ENABLED,
        budget_split: bool = config.BUDGET_SPLIT_ENABLED,
        max_order_amount: float = config.MAX_ORDER_AMOUNT,
        max_single_order_amount: float = config.MAX_SINGLE_ORDER_AMOUNT,
        min_confidence: int = config.MIN_ORDER_CONFIDENCE,
        split_delay_seconds: float = config.SPLIT_ORDER_DELAY_SECONDS,
        backorder_cleanup: bool = config.BACKORDER_CLEANUP_ENABLED,
        selector_timeout: float = config.SELECTOR_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.products = products
        self.store = store or DailyStateStore()
        self.gate = gate or WorkScheduleGate()
        self.cooldown = cooldown or BackorderCooldownTracker()
        self._clock = clock or self.gate.now
        self.executor = executor or OrderExecutor(session, self.store, self.gate, clock=self._clock)
        self.run_control = run_control or RunControl()
        self.backorder_cleaner: Optional[BackorderCleaner] = None
        if backorder_cleanup:
            self.backorder_cleaner = backorder_cleaner or BackorderCleaner(
                session, products, selector_timeout=selector_timeout
            )
        self.auto_order = auto_order
        self.budget_split = budget_split
        self.max_order_amount = max_order_amount
        self.max_single_order_amount = max_single_order_amount
        self.min_confidence = min_confidence
        self.split_delay_seconds = split_delay_seconds
        self.selector_timeout = selector_timeout

        self.run_id = str(uuid.uuid4())
        self.metrics = Metrics()
        self.metrics_exporter = metrics_exporter or MetricsExporter(self.run_id)
        self._announced_date: Optional[str] = None
        self._last_state: Optional[DailyState] = None

    def notify_backorder_purged(self, product_id: str, now: Optional[datetime] = None) -> None:
        """Called when a backorder line for the product was fully consumed and deleted."""
        self.cooldown.start_cooldown(product_id, now or self._clock())

    async def run(self, once: bool = False) -> None:
        """Run until stopped. With ``once``, run a single cycle (or none outside active hours)."""
        logger.info(f"Run ID: {self.run_id}")
        logger.info(f"Watching {len(self.products)} products: {', '.join(p.id for p in self.products)}")
        if not self.auto_order:
            logger.warning("Auto-ordering disabled: stock changes will be logged only")

        try:
            while True:
                should_stop, reason = self.run_control.should_stop()
                if should_stop:
                    logger.warning(f"Stop condition met: {reason}")
                    break

                now = self._clock()
                if not self.gate.is_active_now(now):
                    if once:
                        logger.info("Outside active hours, nothing to do")
                        break
                    wait = self.gate.idle_interval(now)
                    logger.info(
                        f"Outside active hours; next start {self.gate.next_active_start(now):%a %Y-%m-%d %H:%M}, "
                        f"sleeping {wait:.0f}s"
                    )
                    await self.run_control.sleep(wait)
                    continue

                await self.run_cycle()
                if once:
                    break
                await self.run_control.sleep(self.gate.poll_interval())
        finally:
            await self._final_report()

    async def run_cycle(self) -> None:
        """Check every product once, in configured order."""
        state = await self.store.rollover_if_needed(self._clock())
        self._announce_successful_orders(state)
        self.metrics.increment("cycles")

        for index, product in enumerate(self.products):
            if self.run_control.stop_requested:
                break
            await self._process_product(product)
            if index < len(self.products) - 1:
                await self.run_control.sleep(self.gate.poll_interval())

        if self.backorder_cleaner is not None and not self.run_control.stop_requested:
            await self._purge_backorders()

        await self._export_metrics()

    async def check_product(self, product: ProductConfig, now: datetime) -> StockSample:
        """Load the product page and classify its stock text."""
        await self.session.goto(product.url)
        try:
            await self.session.wait_for_selector(product.stock_selector, self.selector_timeout)
            raw_text = await self.session.text_content(product.stock_selector)
        except SelectorNotFoundError:
            await raise_if_logged_out(self.session, f"{product.id} stock check")
            raise

        price_text = None
        if self.budget_split:
            try:
                price_text = await self.session.text_content(product.price_selector)
            except SelectorNotFoundError:
                logger.debug(f"{product.id}: no price on page")

        return build_sample(product.id, raw_text, now, price_text)

    async def _process_product(self, product: ProductConfig) -> None:
        now = self._clock()
        if self.cooldown.is_cooling_down(product.id, now):
            remaining = self.cooldown.remaining_seconds(product.id, now)
            logger.info(f"{product.id}: backorder cooldown, {remaining}s remaining; skipping check")
            self.metrics.increment("cooldown_skips")
            return

        try:
            sample = await self.check_product(product, now)
        except FatalSessionError:
            raise
        except SessionError as e:
            logger.warning(f"{product.id}: stock check failed ({e.kind.value}): {e}")
            self.metrics.increment("errors")
            self.run_control.record_error()
            return

        self.metrics.increment("checks")
        self.metrics.increment(f"status_{sample.status.value}")
        self.run_control.record_success()
        logger.info(f"{product.id}: {sample.status.value} ({sample.confidence}%) {sample.raw_text!r}")

        if not sample.status.is_orderable:
            return
        self.metrics.increment("in_stock")

        if sample.confidence < self.min_confidence:
            logger.warning(
                f"{product.id}: confidence {sample.confidence}% below {self.min_confidence}%, not ordering"
            )
            return
        if not self.auto_order:
            logger.info(f"{product.id}: in stock, order not placed (auto-order disabled)")
            return

        await self._order(product, sample)

    async def _order(self, product: ProductConfig, sample: StockSample) -> None:
        state = await self.store.rollover_if_needed(self._clock())
        plan = plan_order(
            product,
            state,
            sample.status,
            price=sample.price if self.budget_split else None,
            budget=self.max_order_amount if self.budget_split else None,
            per_order_budget=self.max_single_order_amount,
        )
        if plan.is_empty:
            logger.info(f"{product.id}: not ordering ({plan.reason})")
            return

        logger.info(f"{product.id}: ordering {plan.quantities} ({plan.strategy}: {plan.reason})")
        ordered = 0
        for index, quantity in enumerate(plan.quantities):
            if index > 0:
                logger.info(f"{product.id}: waiting {self.split_delay_seconds:.0f}s before next sub-order")
                if await self.run_control.sleep(self.split_delay_seconds):
                    logger.info(f"{product.id}: stop requested, abandoning remaining sub-orders")
                    break

            attempt = await self.executor.execute(product, quantity)
            if attempt.success:
                ordered += attempt.final_quantity
                self.metrics.increment("orders_ok")
                self.metrics.increment("units_ordered", attempt.final_quantity)
            else:
                self.metrics.increment("orders_failed")
                if index < len(plan.quantities) - 1:
                    logger.warning(f"{product.id}: sub-order {index + 1} failed, aborting remaining sub-orders")
                break

        if len(plan.quantities) > 1:
            achieved = ordered * 100 // plan.target if plan.target else 0
            logger.info(f"{product.id}: split order result {ordered}/{plan.target} units ({achieved}%)")

        if ordered:
            self._announce_successful_orders(await self.store.load())

    async def _purge_backorders(self) -> None:
        """Delete undelivered backorder lines and start the cooldown for their products."""
        try:
            purged = await self.backorder_cleaner.purge()
        except FatalSessionError:
            raise
        except SessionError as e:
            logger.warning(f"Backorder cleanup failed ({e.kind.value}): {e}")
            self.metrics.increment("errors")
            return

        now = self._clock()
        for product_id in purged:
            self.notify_backorder_purged(product_id, now)
            self.metrics.increment("backorders_purged")

    def _announce_successful_orders(self, state: DailyState) -> None:
        """Log once per day when today already has successful orders (e.g. after a restart)."""
        self._last_state = state
        if self._announced_date == state.date or not state.has_successful_orders:
            return
        self._announced_date = state.date
        successes = [a for a in state.todays_orders if a.success]
        logger.info(f"Today ({state.date}) already has {len(successes)} successful orders:")
        for attempt in successes:
            logger.info(f"  {attempt.reference} {attempt.product_id} x{attempt.final_quantity}")

    async def _export_metrics(self) -> None:
        """Export current metrics."""
        units = None
        if self._last_state is not None:
            state = await self.store.load()
            units = {p.id: state.counters(p.id).units_ordered for p in self.products}
        await self.metrics_exporter.export_metrics(self.metrics.get_summary(), units)
        self.metrics.report()

    async def _final_report(self) -> None:
        """Generate final report."""
        summary = self.metrics.get_summary()
        run_summary = self.run_control.get_summary()

        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Run ID: {self.run_id}")
        logger.info(f"Elapsed: {run_summary['elapsed_minutes']:.2f} minutes")
        logger.info(f"Cycles: {summary.get('cycles', 0)}")
        logger.info(f"Checks: {summary.get('checks', 0)}")
        logger.info(f"Orders OK: {summary.get('orders_ok', 0)}")
        logger.info(f"Orders failed: {summary.get('orders_failed', 0)}")
        logger.info(f"Units ordered: {summary.get('units_ordered', 0)}")
        logger.info(f"Errors: {run_summary['error_count']}")
        if run_summary["stop_reason"]:
            logger.info(f"Stop reason: {run_summary['stop_reason']}")
        logger.info("=" * 60)
