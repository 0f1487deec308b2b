"""Tests for the daily state store: rollover, persistence, file layout."""
from datetime import timedelta

import orjson
import pytest

from restock.models import DailyState, OrderAttempt
from restock.store.daily_state import DailyStateStore


def make_attempt(now, reference, quantity=700, success=True, reason=None):
    return OrderAttempt(
        product_id="product1",
        product_name="MEPIFORM 10X18CM",
        requested_quantity=700,
        final_quantity=quantity,
        reference=reference,
        success=success,
        failure_reason=reason,
        timestamp=now,
    )


@pytest.mark.asyncio
async def test_rollover_same_day_keeps_state(store, now):
    """Test a same-day rollover leaves counters and orders untouched."""
    await store.record_attempt(make_attempt(now, "20240313-01"), now)
    state = await store.rollover_if_needed(now + timedelta(hours=2))
    assert state.counters("product1").order_count == 1
    assert state.counters("product1").units_ordered == 700
    assert len(state.todays_orders) == 1


@pytest.mark.asyncio
async def test_rollover_next_day_resets(store, now):
    """Test a new calendar date zeroes counters, empties orders and archives the old day."""
    await store.record_attempt(make_attempt(now, "20240313-01"), now)
    await store.mark_stopped("product2", now)

    state = await store.rollover_if_needed(now + timedelta(days=1))
    assert state.date == "Thu Mar 14 2024"
    assert state.counters("product1").order_count == 0
    assert state.counters("product1").units_ordered == 0
    assert not state.counters("product2").stopped
    assert state.todays_orders == []

    archived = store.archive_dir / "daily-state-2024-03-13.json"
    assert archived.exists()
    assert orjson.loads(archived.read_bytes())["product1OrderCount"] == 1


@pytest.mark.asyncio
async def test_file_layout(store, now):
    """Test the flat on-disk JSON keys."""
    await store.record_attempt(make_attempt(now, "20240313-01"), now)
    data = orjson.loads(store.path.read_bytes())
    assert data["date"] == "Wed Mar 13 2024"
    assert data["product1OrderCount"] == 1
    assert data["product1DailyOrdered"] == 700
    assert data["product1Stopped"] is False
    order = data["todaysOrders"][0]
    assert order["product"] == "MEPIFORM 10X18CM"
    assert order["quantity"] == 700
    assert order["reference"] == "20240313-01"
    assert order["time"] == "10:00:00"
    assert order["success"] is True


@pytest.mark.asyncio
async def test_failed_attempt_is_logged_but_not_counted(store, now):
    """Test only successes increment counters."""
    state = await store.record_attempt(make_attempt(now, "20240313-01", success=False, reason="credit-limit"), now)
    assert state.counters("product1").order_count == 0
    assert state.todays_orders[0].failure_reason == "credit-limit"


@pytest.mark.asyncio
async def test_references_increase_per_attempt(store, now):
    """Test references are unique and sequential, counting failed attempts too."""
    assert await store.next_reference(now) == "20240313-01"
    await store.record_attempt(make_attempt(now, "20240313-01", success=False, reason="credit-limit"), now)
    assert await store.next_reference(now) == "20240313-02"
    await store.record_attempt(make_attempt(now, "20240313-02"), now)
    assert await store.next_reference(now) == "20240313-03"
    assert await store.next_reference(now + timedelta(days=1)) == "20240314-01"


@pytest.mark.asyncio
async def test_restart_resumes_counters(store, now):
    """Test a new store on the same file sees earlier counters."""
    await store.record_attempt(make_attempt(now, "20240313-01"), now)
    reopened = DailyStateStore(store.path, timezone="Europe/Stockholm")
    state = await reopened.rollover_if_needed(now)
    assert state.counters("product1").units_ordered == 700


@pytest.mark.asyncio
async def test_separate_record_and_increment(store, now):
    """Test record_order and increment_count used independently."""
    await store.record_order(make_attempt(now, "20240313-01"), now)
    state = await store.increment_count("product1", 700, now)
    assert state.counters("product1").order_count == 1
    assert len(state.todays_orders) == 1


@pytest.mark.asyncio
async def test_corrupt_file_is_moved_aside(store, now):
    """Test an unreadable file starts a fresh day and keeps the bad copy."""
    store.path.write_bytes(b"{not json")
    state = await store.rollover_if_needed(now)
    assert state.todays_orders == []
    assert store.path.with_name("daily-state.json.corrupt").exists()
    assert orjson.loads(store.path.read_bytes())["date"] == "Wed Mar 13 2024"


@pytest.mark.asyncio
async def test_load_without_file(store, now):
    """Test load returns an unsaved fresh state when nothing is stored."""
    state = await store.load(now)
    assert state.date == "Wed Mar 13 2024"
    assert not store.path.exists()


def test_old_success_only_records_are_read():
    """Test records without success/productId fields load as successful orders."""
    state = DailyState.from_json({
        "date": "Wed Mar 13 2024",
        "product1OrderCount": 2,
        "product1DailyOrdered": 1050,
        "todaysOrders": [{"product": "product1", "quantity": 700, "reference": "20240313-01", "time": "09:01:02"}],
    })
    assert state.counters("product1").order_count == 2
    assert state.counters("product1").units_ordered == 1050
    assert state.todays_orders[0].success
    assert state.todays_orders[0].product_id == "product1"
    assert state.has_successful_orders
