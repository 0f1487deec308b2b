"""Run control: cooperative stop signal and stop conditions."""
import asyncio
import time
import logging
from typing import Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RunControl:
    """Controls run stopping conditions."""

    stop_after_minutes: Optional[float] = None
    max_consecutive_errors: Optional[int] = None

    # Internal state
    start_time: float = field(default_factory=time.time)
    error_count: int = 0
    consecutive_errors: int = 0
    last_error_time: Optional[float] = None
    stop_reason: Optional[str] = None
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def request_stop(self, reason: str = "stop requested") -> None:
        """Ask the loop to stop at the next safe point (between cycles or sub-orders)."""
        if not self._stop_event.is_set():
            logger.info(f"Stop requested: {reason}")
            self.stop_reason = reason
            self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def should_stop(self) -> tuple[bool, Optional[str]]:
        """Check if run should stop. Returns (should_stop, reason)."""
        if self.stop_requested:
            return True, self.stop_reason

        elapsed_minutes = (time.time() - self.start_time) / 60
        if self.stop_after_minutes and elapsed_minutes >= self.stop_after_minutes:
            return True, f"Reached stop_after_minutes={self.stop_after_minutes}"

        if self.max_consecutive_errors and self.consecutive_errors >= self.max_consecutive_errors:
            return True, f"Reached max_consecutive_errors={self.max_consecutive_errors}"

        return False, None

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless a stop is requested first. Returns True if woken by a stop."""
        if seconds <= 0:
            return self.stop_requested
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def record_error(self) -> None:
        """Record an error."""
        self.error_count += 1
        self.consecutive_errors += 1
        self.last_error_time = time.time()

    def record_success(self) -> None:
        """Record a successful operation."""
        self.consecutive_errors = 0

    def get_summary(self) -> dict:
        """Get summary statistics."""
        elapsed_minutes = (time.time() - self.start_time) / 60
        return {
            "elapsed_minutes": round(elapsed_minutes, 2),
            "error_count": self.error_count,
            "consecutive_errors": self.consecutive_errors,
            "stop_reason": self.stop_reason,
        }
