"""Shared fixtures: a scripted WebSession, products, store and gate."""
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from restock.config import DEFAULT_PRODUCTS
from restock.models import ProductConfig, SelectorSet
from restock.orders.executor import OrderExecutor
from restock.schedule.work_hours import WorkScheduleGate
from restock.session.errors import FatalSessionError, SelectorNotFoundError
from restock.store.daily_state import DailyStateStore

TZ = ZoneInfo("Europe/Stockholm")
SELECTORS = SelectorSet()
CREDIT_LIMIT_TEXT = "Ordern överskrider din kreditgräns"
LOGIN_PAGE_TEXT = "Logga in / Log in / Sessionen har gått ut"

# Wednesday, inside the 07-18 window
NOW = datetime(2024, 3, 13, 10, 0, tzinfo=TZ)


class FakeSession:
    """Scripted WebSession. Each submit click consumes one outcome: "ok", "credit", "silent" or "fatal".

    ``backorders`` holds (name, ordered, backordered) rows shown on the backorder page.
    """

    def __init__(self, texts=None, submit_outcomes=None, missing=None, backorders=None):
        self.texts = dict(texts or {})
        self.submit_outcomes = list(submit_outcomes or [])
        self.missing = set(missing or [])
        self.calls = []
        self.filled = []
        self.screenshots = []
        self.confirmed = False
        self.error_text = None
        self.goto_error = None
        self.screenshot_error = None
        self.backorders = [list(row) for row in backorders or []]
        self.deleted = []
        self._pending_delete = None

    async def goto(self, url):
        self.calls.append(("goto", url))
        if self.goto_error is not None:
            raise self.goto_error

    async def fill(self, selector, value):
        self.calls.append(("fill", selector, value))
        self.filled.append((selector, value))

    async def click(self, selector):
        self.calls.append(("click", selector))
        row = self._backorder_cell(selector)
        if row is not None and row[1] in SELECTORS.backorder_delete:
            self._pending_delete = row[0]
        if selector in SELECTORS.backorder_confirm and self._pending_delete is not None:
            self.deleted.append(self.backorders.pop(self._pending_delete)[0])
            self._pending_delete = None
        if selector in SELECTORS.submit:
            outcome = self.submit_outcomes.pop(0) if self.submit_outcomes else "ok"
            if outcome == "fatal":
                raise FatalSessionError("Target closed")
            self.confirmed = outcome == "ok"
            self.error_text = CREDIT_LIMIT_TEXT if outcome == "credit" else None

    async def wait_for_selector(self, selector, timeout):
        if selector in SELECTORS.backorder_confirm and self._pending_delete is None:
            raise SelectorNotFoundError("No dialog", [selector])
        if " >> nth=" in selector and self._backorder_cell(selector) is None:
            raise SelectorNotFoundError(f"{selector} missing", [selector])
        if selector in SELECTORS.confirmation:
            if not self.confirmed:
                raise SelectorNotFoundError("No confirmation", [selector])
            return
        if selector in self.missing:
            raise SelectorNotFoundError(f"{selector} missing", [selector])

    async def wait_for_navigation(self, timeout):
        self.calls.append(("navigation",))

    async def text_content(self, selector):
        row = self._backorder_cell(selector)
        if row is not None:
            index, cell = row
            columns = [SELECTORS.backorder_name[0], SELECTORS.backorder_ordered_qty[0], SELECTORS.backorder_qty[0]]
            if cell in columns:
                return self.backorders[index][columns.index(cell)]
        if selector in SELECTORS.error_message and self.error_text:
            return self.error_text
        if selector in self.texts:
            return self.texts[selector]
        raise SelectorNotFoundError(f"{selector} missing", [selector])

    async def screenshot(self, path):
        if self.screenshot_error is not None:
            raise self.screenshot_error
        self.screenshots.append(path)

    def _backorder_cell(self, selector):
        """(row index, cell selector) for an existing row addressed as "row >> nth=i >> cell"."""
        if " >> nth=" not in selector:
            return None
        row, rest = selector.split(" >> nth=", 1)
        index, cell = rest.split(" >> ", 1)
        if row != SELECTORS.backorder_row[0] or int(index) >= len(self.backorders):
            return None
        return int(index), cell

    def values_filled(self, selectors):
        return [value for selector, value in self.filled if selector in selectors]

    @property
    def goto_count(self):
        return sum(1 for call in self.calls if call[0] == "goto")

    @property
    def submit_count(self):
        return sum(1 for call in self.calls if call[0] == "click" and call[1] in SELECTORS.submit)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def product1():
    return ProductConfig(**DEFAULT_PRODUCTS[0])


@pytest.fixture
def product2():
    return ProductConfig(**DEFAULT_PRODUCTS[1])


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def store(tmp_path):
    return DailyStateStore(tmp_path / "daily-state.json", timezone="Europe/Stockholm")


@pytest.fixture
def gate():
    return WorkScheduleGate(
        timezone="Europe/Stockholm",
        weekdays=[0, 1, 2, 3, 4],
        start_hour=7,
        end_hour=18,
        holidays=["2024-12-25", "2024-12-26"],
        poll_min_seconds=0,
        poll_max_seconds=0,
        idle_sleep_seconds=1200,
    )


@pytest.fixture
def make_executor(store, gate, tmp_path, now):
    def _make(session):
        return OrderExecutor(session, store, gate, screenshot_dir=tmp_path / "screenshots", clock=lambda: now)
    return _make
