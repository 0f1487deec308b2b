"""JSON-file store for date-scoped order counters and today's order log."""
import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import aiofiles
import aiofiles.os
import orjson
from pydantic import ValidationError

from restock.config import STATE_FILE, config
from restock.models import DailyState, OrderAttempt, ProductCounters, format_state_date

logger = logging.getLogger(__name__)


class DailyStateStore:
    """Single-writer datastore; every mutation re-reads the file, applies, and writes it back atomically."""

    def __init__(self, path: Path = STATE_FILE, timezone: str = config.TIMEZONE, archive: bool = True):
        self.path = Path(path)
        self.tz = ZoneInfo(timezone)
        self.archive = archive
        self.archive_dir = self.path.parent / "archive"
        self._lock = asyncio.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def today(self, now: datetime) -> date:
        """Calendar date of ``now`` in the supplier timezone."""
        if now.tzinfo is None:
            return now.date()
        return now.astimezone(self.tz).date()

    async def _read(self) -> Optional[DailyState]:
        """Read the state file; None when missing. Corrupt files are moved aside."""
        if not await aiofiles.os.path.exists(self.path):
            return None
        async with aiofiles.open(self.path, "rb") as f:
            raw = await f.read()
        try:
            return DailyState.from_json(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
            corrupt_path = self.path.with_name(f"{self.path.name}.corrupt")
            logger.error(f"Daily state file {self.path} is unreadable ({e}); moving it to {corrupt_path}")
            await aiofiles.os.replace(self.path, corrupt_path)
            return None

    async def _write(self, state: DailyState, path: Optional[Path] = None) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        target = path or self.path
        tmp_path = target.with_name(f"{target.name}.tmp")
        payload = orjson.dumps(state.to_json(), option=orjson.OPT_INDENT_2)
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(payload)
            await f.flush()
        await aiofiles.os.replace(tmp_path, target)

    async def _archive(self, state: DailyState) -> None:
        try:
            day = datetime.strptime(state.date, "%a %b %d %Y").date().isoformat()
        except ValueError:
            day = state.date.replace(" ", "_")
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.archive_dir / f"daily-state-{day}.json"
        await self._write(state, archive_path)
        logger.info(f"Archived daily state for {state.date} to {archive_path}")

    async def _current(self, now: datetime) -> DailyState:
        """Today's state, rolling over (and persisting) if the stored date is stale. Caller holds the lock."""
        today = format_state_date(self.today(now))
        state = await self._read()
        if state is not None and state.date == today:
            return state

        if state is not None and self.archive:
            await self._archive(state)
        fresh = DailyState(date=today)
        await self._write(fresh)
        if state is None:
            logger.info(f"Started daily state for {today}")
        else:
            logger.info(f"Daily counters reset for new day ({state.date} -> {today})")
        return fresh

    async def load(self, now: Optional[datetime] = None) -> DailyState:
        """Stored state, or a fresh (unsaved) one for today when nothing is stored."""
        async with self._lock:
            state = await self._read()
        if state is None:
            return DailyState.fresh(self.today(now or datetime.now(self.tz)))
        return state

    async def save(self, state: DailyState) -> None:
        async with self._lock:
            await self._write(state)

    async def rollover_if_needed(self, now: datetime) -> DailyState:
        """Return today's state; a new date supersedes the stored one with zeroed counters."""
        async with self._lock:
            return await self._current(now)

    async def next_reference(self, now: datetime) -> str:
        """Order reference YYYYMMDD-NN for the next attempt today."""
        async with self._lock:
            state = await self._current(now)
        return state.next_reference(self.today(now))

    async def record_order(self, attempt: OrderAttempt, now: datetime) -> DailyState:
        """Append an attempt to today's order log."""
        async with self._lock:
            state = await self._current(now)
            state.todays_orders.append(attempt)
            await self._write(state)
            return state

    async def increment_count(self, product_id: str, units: int, now: datetime) -> DailyState:
        """Count one successful order of ``units`` for the product."""
        async with self._lock:
            state = await self._current(now)
            self._increment(state, product_id, units)
            await self._write(state)
            return state

    async def record_attempt(self, attempt: OrderAttempt, now: datetime) -> DailyState:
        """Append an attempt and, if it succeeded, count it, in a single write."""
        async with self._lock:
            state = await self._current(now)
            state.todays_orders.append(attempt)
            if attempt.success:
                self._increment(state, attempt.product_id, attempt.final_quantity)
            await self._write(state)
            return state

    async def mark_stopped(self, product_id: str, now: datetime) -> DailyState:
        """Stop ordering a product until the next rollover."""
        async with self._lock:
            state = await self._current(now)
            counters = state.products.setdefault(product_id, ProductCounters())
            counters.stopped = True
            await self._write(state)
            logger.warning(f"{product_id}: stopped for today")
            return state

    @staticmethod
    def _increment(state: DailyState, product_id: str, units: int) -> None:
        counters = state.products.setdefault(product_id, ProductCounters())
        counters.order_count += 1
        counters.units_ordered += units
