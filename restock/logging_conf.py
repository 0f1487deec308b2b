"""Logging configuration."""
import logging
import sys
from pathlib import Path
from typing import Optional

from restock.config import config

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger: console always, combined + error files when LOG_FILE is set."""
    level_name = (level or config.LOG_LEVEL).upper()
    log_file = log_file or config.LOG_FILE

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        combined = logging.FileHandler(log_path, encoding="utf-8")
        combined.setFormatter(formatter)
        root.addHandler(combined)

        error_path = log_path.with_name(f"{log_path.stem}.error{log_path.suffix or '.log'}")
        errors = logging.FileHandler(error_path, encoding="utf-8")
        errors.setLevel(logging.ERROR)
        errors.setFormatter(formatter)
        root.addHandler(errors)

    # Playwright's asyncio internals are noisy at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
