"""Metrics tracking for monitoring progress."""
import time
import logging
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class Metrics:
    """Track checks, orders and units across monitor cycles."""

    def __init__(self):
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)
        self.last_report_time = time.time()
        self.last_report_checks = 0

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] = self.counters.get(key, 0) + amount

    def get_rate(self) -> float:
        """Checks per minute since start."""
        elapsed = time.time() - self.start_time
        checks = self.counters.get("checks", 0)
        if elapsed > 0:
            return checks * 60 / elapsed
        return 0.0

    def report(self) -> None:
        """Log current metrics."""
        now = time.time()
        checks = self.counters.get("checks", 0)
        recent_elapsed = now - self.last_report_time
        recent_checks = checks - self.last_report_checks
        recent_rate = recent_checks * 60 / recent_elapsed if recent_elapsed > 0 else 0

        logger.info(
            f"Cycles: {self.counters.get('cycles', 0)} | "
            f"Checks: {checks} ({self.get_rate():.1f}/min, recent: {recent_rate:.1f}/min) | "
            f"In stock: {self.counters.get('in_stock', 0)} | "
            f"Orders OK: {self.counters.get('orders_ok', 0)} | "
            f"Orders failed: {self.counters.get('orders_failed', 0)} | "
            f"Units: {self.counters.get('units_ordered', 0)} | "
            f"Cooldown skips: {self.counters.get('cooldown_skips', 0)} | "
            f"Backorders purged: {self.counters.get('backorders_purged', 0)} | "
            f"Errors: {self.counters.get('errors', 0)}"
        )

        self.last_report_time = now
        self.last_report_checks = checks

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        elapsed = time.time() - self.start_time
        summary = dict(self.counters)
        summary["checks_per_minute"] = self.get_rate()
        summary["elapsed_seconds"] = elapsed
        return summary
