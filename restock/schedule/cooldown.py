"""Backorder cooldown: skip checks on a product for a while after a purge."""
import logging
from datetime import datetime, timedelta
from typing import Dict

from restock.config import config

logger = logging.getLogger(__name__)


class BackorderCooldownTracker:
    """In-memory cooldown windows per product (lost on restart)."""

    def __init__(self, cooldown_seconds: float = config.BACKORDER_COOLDOWN_SECONDS):
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self._until: Dict[str, datetime] = {}

    def start_cooldown(self, product_id: str, now: datetime) -> None:
        self._until[product_id] = now + self.cooldown
        logger.info(f"{product_id}: backorder purged, skipping checks for {self.cooldown.total_seconds():.0f}s")

    def is_cooling_down(self, product_id: str, now: datetime) -> bool:
        until = self._until.get(product_id)
        if until is None:
            return False
        if now >= until:
            del self._until[product_id]
            return False
        return True

    def remaining_seconds(self, product_id: str, now: datetime) -> int:
        """Whole seconds left (rounded up), 0 when not cooling down."""
        until = self._until.get(product_id)
        if until is None or now >= until:
            return 0
        remaining = (until - now).total_seconds()
        return int(remaining) + (1 if remaining % 1 else 0)
