"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from restock.config import config, Config, load_products
from restock.logging_conf import setup_logging
from restock.jobs.monitor_loop import MonitorLoop
from restock.jobs.run_control import RunControl
from restock.session.errors import FatalSessionError
from restock.session.playwright_session import PlaywrightSession

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Supplier restock monitor and auto-orderer")

    # Mode flags
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check cycle and exit",
    )
    order_group = parser.add_mutually_exclusive_group()
    order_group.add_argument(
        "--auto-order",
        dest="auto_order",
        action="store_true",
        default=None,
        help="Place orders when stock appears (overrides AUTO_ORDER_ENABLED)",
    )
    order_group.add_argument(
        "--dry-run",
        dest="auto_order",
        action="store_false",
        help="Only log stock changes, never order",
    )
    parser.add_argument(
        "--budget-split",
        action="store_true",
        help="Read prices and split orders to stay under MAX_ORDER_AMOUNT",
    )

    # Browser
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )

    # Inputs
    parser.add_argument(
        "--products-file",
        type=str,
        default=None,
        help="JSON file with the product catalogue (default: built-in products)",
    )

    # Run control flags
    parser.add_argument(
        "--stop-after-minutes",
        type=float,
        default=None,
        help="Stop after M minutes",
    )
    parser.add_argument(
        "--max-consecutive-errors",
        type=int,
        default=None,
        help="Stop if N consecutive stock checks fail",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help=f"Log level (default: {config.LOG_LEVEL})",
    )

    return parser.parse_args(argv)


def install_signal_handlers(run_control: RunControl) -> None:
    """SIGINT/SIGTERM request a cooperative stop so in-flight orders can finish."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, run_control.request_stop, f"received {sig.name}")
        except NotImplementedError:
            logger.debug(f"Signal handlers not supported on this platform ({sig.name})")


async def run(args: argparse.Namespace) -> None:
    """Log in and run the monitor loop until it stops."""
    products = load_products(args.products_file or config.PRODUCTS_FILE)
    run_control = RunControl(
        stop_after_minutes=args.stop_after_minutes,
        max_consecutive_errors=args.max_consecutive_errors or config.MAX_CONSECUTIVE_ERRORS,
    )
    install_signal_handlers(run_control)

    async with PlaywrightSession(headless=not args.headed and config.HEADLESS) as session:
        await session.login()
        monitor = MonitorLoop(
            session,
            products,
            run_control=run_control,
            auto_order=args.auto_order,
            budget_split=args.budget_split or config.BUDGET_SPLIT_ENABLED,
        )
        await monitor.run(once=args.once)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging
    setup_logging(level=args.log_level)

    if args.auto_order is None:
        args.auto_order = config.AUTO_ORDER_ENABLED

    # Validate config
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Restock Monitor Starting")
    logger.info(f"Auto-order: {args.auto_order}")
    logger.info(f"Budget split: {args.budget_split or config.BUDGET_SPLIT_ENABLED}")
    logger.info(f"Max order amount: {config.MAX_ORDER_AMOUNT:.0f}")
    logger.info(
        f"Active hours: {config.ACTIVE_START_HOUR:02d}:00-{config.ACTIVE_END_HOUR:02d}:00 "
        f"({config.TIMEZONE}), weekdays {config.ACTIVE_WEEKDAYS}"
    )
    logger.info(f"Once: {args.once}")
    logger.info("=" * 60)

    try:
        asyncio.run(run(args))
    except FatalSessionError as e:
        logger.error(f"Fatal session error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
