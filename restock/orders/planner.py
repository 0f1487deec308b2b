"""Order quantity planning: progressive sequence, daily cap, budget split, reduction ladder."""
import logging
import math
from typing import Iterator, Optional

from restock.models import DailyState, OrderPlan, ProductConfig, StockStatus

logger = logging.getLogger(__name__)

STRATEGY_LIMITED = "limited"
STRATEGY_PROGRESSIVE = "progressive"
STRATEGY_SINGLE = "single"
STRATEGY_SPLIT = "split"
STRATEGY_AFFORDABLE = "affordable"
STRATEGY_LAST_RESORT = "last-resort"
STRATEGY_SKIP = "skip"


def candidate_quantity(product: ProductConfig, state: DailyState, status: StockStatus) -> tuple[int, str]:
    """Quantity before any budget logic, with a short reason."""
    counters = state.counters(product.id)
    if counters.stopped:
        return 0, "stopped for today"

    if status == StockStatus.LIMITED:
        candidate, reason = product.limited_stock_quantity, "limited stock"
    else:
        n = counters.order_count
        if n < len(product.progressive_quantities):
            candidate, reason = product.progressive_quantities[n], f"progressive step {n + 1}"
        elif product.continuous_quantity:
            candidate, reason = product.continuous_quantity, "continuous"
        else:
            return 0, "progressive sequence exhausted"

    if product.daily_unit_cap is not None:
        remaining = product.daily_unit_cap - counters.units_ordered
        if remaining <= 0:
            return 0, "daily cap reached"
        if candidate > remaining:
            candidate, reason = remaining, f"{reason}, clamped to daily cap"

    return candidate, reason


def _split_for_budget(
    product: ProductConfig, target: int, price: float, budget: float, per_order_budget: float
) -> OrderPlan:
    """Pick single, split, affordable or last-resort ordering for a target under a budget."""
    single_cost = price * target
    if single_cost <= budget and single_cost <= per_order_budget:
        return OrderPlan(
            strategy=STRATEGY_SINGLE,
            quantities=[target],
            target=target,
            estimated_cost=single_cost,
            reason=f"single order fits budget ({single_cost:.0f} <= {budget:.0f})",
        )

    # First qualifying combination wins
    for combo in product.split_combinations:
        if sum(combo) != target:
            continue
        costs = [price * qty for qty in combo]
        if sum(costs) <= budget and max(costs) <= per_order_budget:
            return OrderPlan(
                strategy=STRATEGY_SPLIT,
                quantities=list(combo),
                target=target,
                estimated_cost=sum(costs),
                reason=f"split {combo} fits budget",
            )

    affordable = min(math.floor(min(budget, per_order_budget) / price), target)
    if affordable >= product.min_viable_quantity:
        return OrderPlan(
            strategy=STRATEGY_AFFORDABLE,
            quantities=[affordable],
            target=target,
            estimated_cost=price * affordable,
            reason=f"largest affordable quantity {affordable}",
        )

    last_resort = min(product.last_resort_quantity, target)
    return OrderPlan(
        strategy=STRATEGY_LAST_RESORT,
        quantities=[last_resort],
        target=target,
        estimated_cost=price * last_resort,
        reason=f"only {affordable} affordable, below viable minimum {product.min_viable_quantity}",
    )


def plan_order(
    product: ProductConfig,
    state: DailyState,
    status: StockStatus,
    price: Optional[float] = None,
    budget: Optional[float] = None,
    per_order_budget: Optional[float] = None,
) -> OrderPlan:
    """Plan the sub-orders for one restock. An empty plan means "do not order this cycle"."""
    if not status.is_orderable:
        return OrderPlan(strategy=STRATEGY_SKIP, reason=f"status {status.value}")

    target, reason = candidate_quantity(product, state, status)
    if target <= 0:
        return OrderPlan(strategy=STRATEGY_SKIP, reason=reason)

    if status == StockStatus.LIMITED:
        return OrderPlan(strategy=STRATEGY_LIMITED, quantities=[target], target=target, reason=reason)

    if budget is not None and price:
        plan = _split_for_budget(product, target, price, budget, per_order_budget or budget)
        logger.debug(f"{product.id}: budget plan {plan.strategy} {plan.quantities} ({plan.reason})")
        return plan

    return OrderPlan(strategy=STRATEGY_PROGRESSIVE, quantities=[target], target=target, reason=reason)


def next_quantity(
    product: ProductConfig,
    state: DailyState,
    status: StockStatus,
    price: Optional[float] = None,
    budget: Optional[float] = None,
    per_order_budget: Optional[float] = None,
) -> int:
    """Total units to order next; 0 means skip this cycle."""
    return plan_order(product, state, status, price, budget, per_order_budget).total_units


def reduced_quantity(quantity: int, min_quantity: int, divisor: int = 1) -> int:
    """Halve, round down to a multiple of ``divisor``, clamp to ``min_quantity``."""
    halved = quantity // 2
    rounded = (halved // divisor) * divisor if divisor > 1 else halved
    return max(rounded, min_quantity)


def reduction_ladder(quantity: int, min_quantity: int, divisor: int = 1) -> Iterator[int]:
    """Quantities to try after credit-limit rejections of ``quantity``, ending at ``min_quantity``."""
    current = quantity
    while current > min_quantity:
        current = reduced_quantity(current, min_quantity, divisor)
        yield current
