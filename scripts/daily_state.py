#!/usr/bin/env python3
"""Utility script to inspect or reset the daily order state file."""
import sys
from pathlib import Path

import orjson

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from restock.config import STATE_FILE
from restock.models import DailyState


def read_state() -> DailyState | None:
    """Read the state file, or None if there is none."""
    if not STATE_FILE.exists():
        return None
    return DailyState.from_json(orjson.loads(STATE_FILE.read_bytes()))


def write_state(state: DailyState) -> None:
    STATE_FILE.write_bytes(orjson.dumps(state.to_json(), option=orjson.OPT_INDENT_2))


def show_stats() -> None:
    """Show counters and today's orders."""
    state = read_state()
    if state is None:
        print(f"No state file at {STATE_FILE}")
        return

    print(f"State file: {STATE_FILE}")
    print(f"Date: {state.date}")
    for product_id, counters in state.products.items():
        stopped = " (stopped)" if counters.stopped else ""
        print(f"  {product_id}: {counters.order_count} orders, {counters.units_ordered} units{stopped}")

    print(f"Orders today: {len(state.todays_orders)}")
    for attempt in state.todays_orders:
        outcome = "OK" if attempt.success else f"FAILED ({attempt.failure_reason})"
        time = attempt.timestamp.strftime("%H:%M:%S") if attempt.timestamp else "--:--:--"
        print(
            f"  {time} {attempt.reference} {attempt.product_id} "
            f"{attempt.final_quantity}/{attempt.requested_quantity} {outcome}"
        )


def clear_stop(product_id: str) -> None:
    """Allow a stopped product to be ordered again today."""
    state = read_state()
    if state is None or product_id not in state.products:
        print(f"No counters for {product_id}")
        return
    state.products[product_id].stopped = False
    write_state(state)
    print(f"Cleared stop flag for {product_id}")


def reset() -> None:
    """Delete the state file so the next run starts fresh."""
    if not STATE_FILE.exists():
        print("State file does not exist")
        return
    STATE_FILE.unlink()
    print(f"Deleted {STATE_FILE}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python scripts/daily_state.py show                   # Show counters and today's orders")
        print("  python scripts/daily_state.py clear-stop <product>   # Re-enable a stopped product")
        print("  python scripts/daily_state.py reset                  # Delete the state file")
        sys.exit(1)

    command = sys.argv[1]

    if command == "show":
        show_stats()
    elif command == "clear-stop":
        if len(sys.argv) < 3:
            print("Error: Please provide a product id")
            sys.exit(1)
        clear_stop(sys.argv[2])
    elif command == "reset":
        confirm = input("Are you sure you want to delete today's order state? (yes/no): ")
        if confirm.lower() == "yes":
            reset()
        else:
            print("Cancelled")
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
