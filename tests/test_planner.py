"""Tests for order quantity planning and the reduction ladder."""
from restock.models import DailyState, ProductConfig, ProductCounters, StockStatus
from restock.orders.planner import (
    STRATEGY_AFFORDABLE,
    STRATEGY_LAST_RESORT,
    STRATEGY_LIMITED,
    STRATEGY_SINGLE,
    STRATEGY_SKIP,
    STRATEGY_SPLIT,
    next_quantity,
    plan_order,
    reduced_quantity,
    reduction_ladder,
)

from conftest import NOW


def fresh_state():
    return DailyState.fresh(NOW.date())


def record_success(state, product_id, quantity):
    counters = state.products.setdefault(product_id, ProductCounters())
    counters.order_count += 1
    counters.units_ordered += quantity


def test_progressive_then_continuous(product1):
    """Test six successful orders follow the progressive list, then the continuous size."""
    state = fresh_state()
    quantities = []
    for _ in range(6):
        quantity = next_quantity(product1, state, StockStatus.AVAILABLE)
        quantities.append(quantity)
        record_success(state, product1.id, quantity)
    assert quantities == [700, 350, 140, 70, 70, 70]


def test_daily_cap_exhausted(product2):
    """Test three orders exactly use the 1620 cap and the fourth returns 0."""
    state = fresh_state()
    quantities = []
    for _ in range(3):
        quantity = next_quantity(product2, state, StockStatus.AVAILABLE)
        quantities.append(quantity)
        record_success(state, product2.id, quantity)
    assert quantities == [900, 450, 270]
    assert state.counters(product2.id).units_ordered == 1620
    assert next_quantity(product2, state, StockStatus.AVAILABLE) == 0


def test_candidate_clamped_to_remaining_cap():
    """Test a candidate larger than the remaining cap is clamped."""
    product = ProductConfig(
        id="capped", url="https://example.test/p", progressive_quantities=[900, 450],
        min_quantity=10, limited_stock_quantity=10, daily_unit_cap=1000,
    )
    state = fresh_state()
    record_success(state, "capped", 900)
    assert next_quantity(product, state, StockStatus.AVAILABLE) == 100


def test_exhausted_sequence_without_continuous():
    """Test products without a continuous size stop after the progressive list."""
    product = ProductConfig(
        id="short", url="https://example.test/p", progressive_quantities=[100],
        min_quantity=10, limited_stock_quantity=10,
    )
    state = fresh_state()
    record_success(state, "short", 100)
    plan = plan_order(product, state, StockStatus.AVAILABLE)
    assert plan.is_empty
    assert plan.strategy == STRATEGY_SKIP


def test_limited_stock_uses_fixed_quantity(product1):
    """Test limited stock bypasses the progressive sequence."""
    state = fresh_state()
    record_success(state, product1.id, 700)
    plan = plan_order(product1, state, StockStatus.LIMITED, price=400, budget=1000)
    assert plan.strategy == STRATEGY_LIMITED
    assert plan.quantities == [35]


def test_limited_stock_respects_daily_cap(product2):
    """Test limited stock never pushes past the daily cap."""
    state = fresh_state()
    record_success(state, product2.id, 1600)
    assert next_quantity(product2, state, StockStatus.LIMITED) == 20
    record_success(state, product2.id, 20)
    assert next_quantity(product2, state, StockStatus.LIMITED) == 0


def test_not_orderable_statuses(product1):
    """Test unavailable and unknown never order."""
    state = fresh_state()
    assert next_quantity(product1, state, StockStatus.UNAVAILABLE) == 0
    assert next_quantity(product1, state, StockStatus.UNKNOWN) == 0


def test_stopped_product_is_skipped(product1):
    """Test a product stopped for today plans nothing."""
    state = fresh_state()
    state.products[product1.id] = ProductCounters(stopped=True)
    plan = plan_order(product1, state, StockStatus.AVAILABLE)
    assert plan.is_empty
    assert "stopped" in plan.reason


def test_budget_single_order_fits(product1):
    """Test a target that fits the budget is ordered in one go."""
    plan = plan_order(product1, fresh_state(), StockStatus.AVAILABLE, price=300, budget=250000)
    assert plan.strategy == STRATEGY_SINGLE
    assert plan.quantities == [700]
    assert plan.estimated_cost == 210000


def test_budget_no_combination_falls_back_to_affordable(product1):
    """Test price 400 / budget 250000: every combination costs 280000, so order 625."""
    plan = plan_order(product1, fresh_state(), StockStatus.AVAILABLE, price=400, budget=250000)
    assert plan.strategy == STRATEGY_AFFORDABLE
    assert plan.quantities == [625]
    assert next_quantity(product1, fresh_state(), StockStatus.AVAILABLE, price=400, budget=250000) == 625


def test_budget_split_first_qualifying_combination(product1):
    """Test per-order limit forces the first combination whose largest sub-order fits."""
    plan = plan_order(
        product1, fresh_state(), StockStatus.AVAILABLE, price=400, budget=300000, per_order_budget=150000,
    )
    assert plan.strategy == STRATEGY_SPLIT
    assert plan.quantities == [350, 350]
    assert plan.total_units == 700


def test_budget_split_skips_combination_with_oversized_suborder(product1):
    """Test a combination with an acceptable total but a too-large sub-order is skipped."""
    plan = plan_order(
        product1, fresh_state(), StockStatus.AVAILABLE, price=400, budget=300000, per_order_budget=100000,
    )
    assert plan.strategy == STRATEGY_SPLIT
    assert plan.quantities == [250, 250, 200]


def test_budget_last_resort(product1):
    """Test fewer than the viable minimum affordable falls back to the last-resort size."""
    plan = plan_order(product1, fresh_state(), StockStatus.AVAILABLE, price=3000, budget=250000)
    assert plan.strategy == STRATEGY_LAST_RESORT
    assert plan.quantities == [50]


def test_budget_ignored_without_price(product1):
    """Test budget logic needs a known price."""
    plan = plan_order(product1, fresh_state(), StockStatus.AVAILABLE, price=None, budget=1)
    assert plan.quantities == [700]


def test_reduction_ladder_product1():
    """Test 700/35/7 halves down through multiples of 7 and ends at exactly 35."""
    ladder = list(reduction_ladder(700, 35, 7))
    assert ladder == [350, 175, 84, 42, 35]
    assert all(q % 7 == 0 for q in ladder)
    assert all(a > b for a, b in zip([700] + ladder, ladder))


def test_reduction_ladder_product2():
    """Test 900/45/9."""
    assert list(reduction_ladder(900, 45, 9)) == [450, 225, 108, 54, 45]


def test_reduction_ladder_at_minimum_is_empty():
    """Test nothing to reduce when already at the minimum."""
    assert list(reduction_ladder(35, 35, 7)) == []


def test_reduced_quantity_rounds_down_to_divisor():
    """Test halving then rounding down to the divisor."""
    assert reduced_quantity(100, 35, 7) == 49
    assert reduced_quantity(60, 35, 7) == 35
    assert reduced_quantity(10, 1) == 5
