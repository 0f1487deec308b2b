"""Configuration management from environment variables."""
import logging
import os
from pathlib import Path
from typing import Optional

import orjson
from dotenv import load_dotenv

from restock.models import ProductConfig

# Load .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", str(DATA_DIR / "screenshots")))
STATE_FILE = Path(os.getenv("STATE_FILE", str(DATA_DIR / "daily-state.json")))

# Ensure directories exist
DATA_DIR.mkdir(exist_ok=True)

# Swedish public holidays (supplier closed)
DEFAULT_HOLIDAYS = [
    "2024-01-01", "2024-01-06", "2024-03-29", "2024-04-01", "2024-05-01",
    "2024-05-09", "2024-06-06", "2024-06-21", "2024-12-24", "2024-12-25",
    "2024-12-26", "2024-12-31",
    "2025-01-01", "2025-01-06", "2025-04-18", "2025-04-21", "2025-05-01",
    "2025-05-29", "2025-06-06", "2025-06-20", "2025-12-24", "2025-12-25",
    "2025-12-26", "2025-12-31",
    "2026-01-01", "2026-01-06", "2026-04-03", "2026-04-06", "2026-05-01",
    "2026-05-14", "2026-06-06", "2026-06-19", "2026-12-24", "2026-12-25",
    "2026-12-26", "2026-12-31",
]


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int_list(name: str, default: str) -> list[int]:
    raw = os.getenv(name, default)
    return [int(part) for part in raw.split(",") if part.strip()]


def _env_str_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    """Application configuration."""

    # Supplier
    SUPPLIER_BASE_URL: str = os.getenv("SUPPLIER_BASE_URL", "https://oriola4care.oriola-kd.com")
    LOGIN_URL: str = os.getenv("LOGIN_URL", f"{SUPPLIER_BASE_URL}/login")
    BACKORDERS_URL: str = os.getenv("BACKORDERS_URL", f"{SUPPLIER_BASE_URL}/my-account/backorders")
    SUPPLIER_USERNAME: str | None = os.getenv("SUPPLIER_USERNAME")
    SUPPLIER_PASSWORD: str | None = os.getenv("SUPPLIER_PASSWORD")

    # Ordering
    AUTO_ORDER_ENABLED: bool = _env_bool("AUTO_ORDER_ENABLED")
    MAX_ORDER_AMOUNT: float = float(os.getenv("MAX_ORDER_AMOUNT", "250000"))
    MAX_SINGLE_ORDER_AMOUNT: float = float(os.getenv("MAX_SINGLE_ORDER_AMOUNT", str(MAX_ORDER_AMOUNT)))
    BUDGET_SPLIT_ENABLED: bool = _env_bool("BUDGET_SPLIT_ENABLED")
    MIN_ORDER_CONFIDENCE: int = int(os.getenv("MIN_ORDER_CONFIDENCE", "80"))
    SPLIT_ORDER_DELAY_SECONDS: float = float(os.getenv("SPLIT_ORDER_DELAY_SECONDS", "30"))
    BACKORDER_COOLDOWN_SECONDS: float = float(os.getenv("BACKORDER_COOLDOWN_SECONDS", "180"))
    BACKORDER_CLEANUP_ENABLED: bool = _env_bool("BACKORDER_CLEANUP_ENABLED", "true")

    # Work hours
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Stockholm")
    ACTIVE_WEEKDAYS: list[int] = _env_int_list("ACTIVE_WEEKDAYS", "0,1,2,3,4")
    ACTIVE_START_HOUR: int = int(os.getenv("ACTIVE_START_HOUR", "7"))
    ACTIVE_END_HOUR: int = int(os.getenv("ACTIVE_END_HOUR", "18"))
    HOLIDAYS: list[str] = _env_str_list("HOLIDAYS", DEFAULT_HOLIDAYS)

    # Pacing
    POLL_MIN_SECONDS: float = float(os.getenv("POLL_MIN_SECONDS", "8"))
    POLL_MAX_SECONDS: float = float(os.getenv("POLL_MAX_SECONDS", "12"))
    IDLE_SLEEP_SECONDS: float = float(os.getenv("IDLE_SLEEP_SECONDS", "1200"))

    # Browser
    HEADLESS: bool = _env_bool("HEADLESS", "true")
    SELECTOR_TIMEOUT: float = float(os.getenv("SELECTOR_TIMEOUT", "3"))
    NAVIGATION_TIMEOUT: float = float(os.getenv("NAVIGATION_TIMEOUT", "30"))
    CONFIRMATION_TIMEOUT: float = float(os.getenv("CONFIRMATION_TIMEOUT", "10"))

    # Run control
    MAX_CONSECUTIVE_ERRORS: int | None = (
        int(os.environ["MAX_CONSECUTIVE_ERRORS"]) if os.getenv("MAX_CONSECUTIVE_ERRORS") else None
    )

    # Files
    PRODUCTS_FILE: str | None = os.getenv("PRODUCTS_FILE")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str | None = os.getenv("LOG_FILE")

    @classmethod
    def validate(cls, require_credentials: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if require_credentials:
            if not cls.SUPPLIER_USERNAME:
                errors.append("SUPPLIER_USERNAME is required")
            if not cls.SUPPLIER_PASSWORD:
                errors.append("SUPPLIER_PASSWORD is required")
        if not 0 <= cls.ACTIVE_START_HOUR < cls.ACTIVE_END_HOUR <= 24:
            errors.append("ACTIVE_START_HOUR must be before ACTIVE_END_HOUR (0-24)")
        if any(day not in range(7) for day in cls.ACTIVE_WEEKDAYS):
            errors.append("ACTIVE_WEEKDAYS must contain weekday numbers 0-6")
        if cls.POLL_MIN_SECONDS > cls.POLL_MAX_SECONDS:
            errors.append("POLL_MIN_SECONDS must not exceed POLL_MAX_SECONDS")
        if cls.MAX_ORDER_AMOUNT <= 0:
            errors.append("MAX_ORDER_AMOUNT must be positive")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()


DEFAULT_PRODUCTS = [
    {
        "id": "product1",
        "name": "MEPIFORM 10X18CM",
        "url": "https://oriola4care.oriola-kd.com/Varumärken/MÖLNLYCKE-HEALTH-CARE/MEPIFORM-10X18CM-5ST/p/282186-888",
        "backorder_match": "10X18CM",
        "progressive_quantities": [700, 350, 140, 70],
        "continuous_quantity": 70,
        "min_quantity": 35,
        "limited_stock_quantity": 35,
        "reduction_divisor": 7,
    },
    {
        "id": "product2",
        "name": "MEPIFORM 5X7,5CM",
        "url": "https://oriola4care.oriola-kd.com/Varumärken/MÖLNLYCKE-HEALTH-CARE/MEPIFORM-5X7,5CM-2ST/p/820809-888",
        "backorder_match": "5X7,5CM",
        "progressive_quantities": [900, 450, 270],
        "daily_unit_cap": 1620,
        "min_quantity": 45,
        "limited_stock_quantity": 45,
        "reduction_divisor": 9,
    },
]


def _apply_env_overrides(raw: dict) -> dict:
    """Apply <ID>_QUANTITIES / <ID>_DAILY_CAP environment overrides."""
    prefix = str(raw["id"]).upper()
    quantities = os.getenv(f"{prefix}_QUANTITIES")
    if quantities:
        raw["progressive_quantities"] = [int(q) for q in quantities.split(",") if q.strip()]
    daily_cap = os.getenv(f"{prefix}_DAILY_CAP")
    if daily_cap:
        raw["daily_unit_cap"] = int(daily_cap)
    return raw


def load_products(path: Optional[str | Path] = None) -> list[ProductConfig]:
    """Load the ordered product catalogue (built-in defaults unless a JSON file is given)."""
    if path:
        with open(path, "rb") as f:
            raw_products = orjson.loads(f.read())
        if not isinstance(raw_products, list):
            raise ValueError(f"Products file {path} must contain a JSON list")
        logger.info(f"Loaded {len(raw_products)} products from {path}")
    else:
        raw_products = [dict(p) for p in DEFAULT_PRODUCTS]

    products = [ProductConfig(**_apply_env_overrides(dict(raw))) for raw in raw_products]
    ids = [p.id for p in products]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate product ids in catalogue: {ids}")
    return products
