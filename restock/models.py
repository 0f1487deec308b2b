"""Data models for products, stock samples, order attempts and daily state."""
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

# Ordered by priority; each combination sums to the default 700-unit target
DEFAULT_SPLIT_COMBINATIONS = [
    [350, 350],
    [350, 200, 150],
    [350, 100, 100, 100, 50],
    [300, 200, 200],
    [250, 250, 200],
    [350, 140, 110, 100],
]

ORDER_COUNT_SUFFIX = "OrderCount"
DAILY_ORDERED_SUFFIX = "DailyOrdered"
STOPPED_SUFFIX = "Stopped"


def format_state_date(day: date) -> str:
    """Format a date the way the state file stores it ("Mon Jan 02 2006")."""
    return day.strftime("%a %b %d %Y")


class StockStatus(str, Enum):
    """Classified stock status of a product page."""

    AVAILABLE = "available"
    LIMITED = "limited"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"

    @property
    def is_orderable(self) -> bool:
        return self in (StockStatus.AVAILABLE, StockStatus.LIMITED)


class SelectorSet(BaseModel):
    """Selector fallback lists for the checkout flow, tried in order."""

    quantity: list[str] = Field(default_factory=lambda: [
        'input[name="quantity"]', 'input[name="antal"]', "#quantity", ".quantity-input", "#qty",
    ])
    add_to_cart: list[str] = Field(default_factory=lambda: [
        "button.add-to-cart", 'button[value="KÖP"]', ".add-to-cart-button", 'button[data-action="add"]',
    ])
    open_cart: list[str] = Field(default_factory=lambda: [
        'a[href*="cart"]', ".cart-link", 'button:has-text("GÅ TILL VARUKORG")',
    ])
    checkout: list[str] = Field(default_factory=lambda: [
        'button:has-text("TILL ORDERLÄGGNING")', ".checkout-button", 'a[href*="checkout"]',
    ])
    delivery_date: list[str] = Field(default_factory=lambda: [
        'input[name="deliveryDate"]', "#deliveryDate", 'input[name*="leverans"]', 'input[type="date"]',
    ])
    reference: list[str] = Field(default_factory=lambda: [
        'input[name="reference"]', "#reference", 'input[name*="referens"]', "#customerReference",
    ])
    order_number: list[str] = Field(default_factory=lambda: [
        'input[name*="orderNumber"]', 'input[name*="beställningsnummer"]', "#orderNumber",
    ])
    accept_terms: list[str] = Field(default_factory=lambda: [
        'input[name="acceptTerms"]', "#acceptTerms", 'input[name*="godkänn"]', 'input[name*="approve"]',
    ])
    submit: list[str] = Field(default_factory=lambda: [
        'button[type="submit"]', 'input[type="submit"]', ".place-order", ".submit-order",
    ])
    confirmation: list[str] = Field(default_factory=lambda: ["text=TACK FÖR DIN ORDER"])
    error_message: list[str] = Field(default_factory=lambda: [
        ".error", ".alert", ".alert-danger", ".validation-summary-errors",
    ])
    cart_quantity: list[str] = Field(default_factory=lambda: [".cart-quantity input"])
    update_cart: list[str] = Field(default_factory=lambda: ["button.update-cart"])

    # Backorder page: one row per line, cells looked up inside the row
    backorder_row: list[str] = Field(default_factory=lambda: [".backorder-item", "tr[data-product]"])
    backorder_name: list[str] = Field(default_factory=lambda: [".product-name", "td.name"])
    backorder_ordered_qty: list[str] = Field(default_factory=lambda: [".ordered-qty", "td:nth-child(3)"])
    backorder_qty: list[str] = Field(default_factory=lambda: [".backorder-qty", "td:nth-child(4)"])
    backorder_delete: list[str] = Field(default_factory=lambda: [".delete-button", "button.delete"])
    backorder_confirm: list[str] = Field(default_factory=lambda: ["button.confirm-delete", ".modal-confirm button"])


class ProductConfig(BaseModel):
    """Static, operator-supplied configuration for one watched product."""

    id: str
    name: str = ""
    url: str
    stock_selector: str = ".product-availability, .stock-status, .availability"
    price_selector: str = ".price, .product-price"
    progressive_quantities: list[int] = Field(default_factory=list)
    continuous_quantity: Optional[int] = None
    min_quantity: int
    limited_stock_quantity: int
    daily_unit_cap: Optional[int] = None
    reduction_divisor: int = 1
    split_combinations: list[list[int]] = Field(default_factory=lambda: [list(c) for c in DEFAULT_SPLIT_COMBINATIONS])
    min_viable_quantity: int = 100
    last_resort_quantity: int = 50
    backorder_match: Optional[str] = None

    @model_validator(mode="after")
    def _check_quantities(self) -> "ProductConfig":
        if not self.name:
            self.name = self.id
        if not self.progressive_quantities and not self.continuous_quantity:
            raise ValueError(f"{self.id}: progressive_quantities or continuous_quantity is required")
        if any(q <= 0 for q in self.progressive_quantities):
            raise ValueError(f"{self.id}: progressive quantities must be positive")
        if self.min_quantity <= 0:
            raise ValueError(f"{self.id}: min_quantity must be positive")
        if self.limited_stock_quantity < 1:
            raise ValueError(f"{self.id}: limited_stock_quantity must be at least 1")
        if self.reduction_divisor < 1:
            raise ValueError(f"{self.id}: reduction_divisor must be at least 1")
        if self.daily_unit_cap is not None and self.daily_unit_cap < 0:
            raise ValueError(f"{self.id}: daily_unit_cap must not be negative")
        return self


class StockSample(BaseModel):
    """One classified stock observation; never persisted."""

    product_id: str
    raw_text: str = ""
    status: StockStatus = StockStatus.UNKNOWN
    confidence: int = 50
    price: Optional[float] = None
    observed_at: datetime


class OrderAttempt(BaseModel):
    """A single order attempt, successful or not."""

    product_id: str
    product_name: str = ""
    requested_quantity: int
    final_quantity: int
    reference: str
    success: bool
    failure_reason: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_record(self) -> dict[str, Any]:
        """Serialize to a todaysOrders entry."""
        return {
            "product": self.product_name or self.product_id,
            "productId": self.product_id,
            "quantity": self.final_quantity,
            "requestedQuantity": self.requested_quantity,
            "reference": self.reference,
            "success": self.success,
            "failureReason": self.failure_reason,
            "time": self.timestamp.strftime("%H:%M:%S") if self.timestamp else None,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "OrderAttempt":
        """Parse a todaysOrders entry, tolerating the older success-only shape."""
        quantity = int(record.get("quantity", 0))
        timestamp = record.get("timestamp")
        return cls(
            product_id=record.get("productId") or record.get("product", ""),
            product_name=record.get("product", ""),
            requested_quantity=int(record.get("requestedQuantity", quantity)),
            final_quantity=quantity,
            reference=record.get("reference", ""),
            success=bool(record.get("success", True)),
            failure_reason=record.get("failureReason"),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
        )


class ProductCounters(BaseModel):
    """Per-product counters for one day."""

    order_count: int = 0
    units_ordered: int = 0
    stopped: bool = False


class DailyState(BaseModel):
    """Date-scoped counters and today's order log."""

    date: str
    products: dict[str, ProductCounters] = Field(default_factory=dict)
    todays_orders: list[OrderAttempt] = Field(default_factory=list)

    @classmethod
    def fresh(cls, day: date) -> "DailyState":
        return cls(date=format_state_date(day))

    def counters(self, product_id: str) -> ProductCounters:
        """Counters for a product; zeroed if the product has no entry yet."""
        return self.products.get(product_id) or ProductCounters()

    def next_reference(self, day: date) -> str:
        """Order reference YYYYMMDD-NN for the next attempt of the day."""
        return f"{day.strftime('%Y%m%d')}-{len(self.todays_orders) + 1:02d}"

    @property
    def has_successful_orders(self) -> bool:
        return any(attempt.success for attempt in self.todays_orders)

    def to_json(self) -> dict[str, Any]:
        """Flat on-disk layout."""
        data: dict[str, Any] = {"date": self.date}
        for product_id, counters in self.products.items():
            data[f"{product_id}{ORDER_COUNT_SUFFIX}"] = counters.order_count
            data[f"{product_id}{DAILY_ORDERED_SUFFIX}"] = counters.units_ordered
            data[f"{product_id}{STOPPED_SUFFIX}"] = counters.stopped
        data["todaysOrders"] = [attempt.to_record() for attempt in self.todays_orders]
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "DailyState":
        """Parse the flat on-disk layout."""
        if "date" not in data:
            raise ValueError("Daily state is missing its date")
        products: dict[str, ProductCounters] = {}
        suffixes = {
            ORDER_COUNT_SUFFIX: "order_count",
            DAILY_ORDERED_SUFFIX: "units_ordered",
            STOPPED_SUFFIX: "stopped",
        }
        for key, value in data.items():
            for suffix, field_name in suffixes.items():
                if key.endswith(suffix) and len(key) > len(suffix):
                    product_id = key[: -len(suffix)]
                    counters = products.setdefault(product_id, ProductCounters())
                    setattr(counters, field_name, bool(value) if field_name == "stopped" else int(value or 0))
                    break
        orders = [OrderAttempt.from_record(r) for r in data.get("todaysOrders") or []]
        return cls(date=data["date"], products=products, todays_orders=orders)


class OrderPlan(BaseModel):
    """Planner output: the sequence of sub-order quantities for one restock."""

    strategy: str
    quantities: list[int] = Field(default_factory=list)
    target: int = 0
    estimated_cost: Optional[float] = None
    reason: str = ""

    @property
    def total_units(self) -> int:
        return sum(self.quantities)

    @property
    def is_empty(self) -> bool:
        return not self.quantities or self.total_units <= 0
