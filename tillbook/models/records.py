"""Retail domain records: stock, sales, expenses and purchase orders.

Records serialise to the camelCase column layout used by the hosted
database (``costPrice``, ``lastUpdated``, ...).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any

ORDER_STATUSES = ("ordered", "received", "cancelled")
TERMINAL_STATUSES = ("received", "cancelled")
USER_ROLES = ("admin", "cashier")
EXPENSE_CATEGORIES = (
    "Rent", "Utilities", "Salaries", "Supplies", "Maintenance", "Marketing", "Other"
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp returned by the store."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date, accepting full timestamps too."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class InventoryItem:
    """A stocked product."""

    id: str
    name: str
    category: str
    quantity: int
    cost_price: float
    sales_price: float
    low_stock_threshold: int = 5
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        """Validate and normalize data."""
        if not self.id:
            raise ValueError("Item id cannot be empty")

        if not self.name:
            raise ValueError("Item name cannot be empty")

        if self.cost_price < 0 or self.sales_price < 0:
            raise ValueError("Prices cannot be negative")

        if self.low_stock_threshold < 0:
            raise ValueError("Low stock threshold cannot be negative")

        # Quantity is not sign-checked: unchecked sales may drive it below zero.
        self.quantity = int(self.quantity)

        if self.last_updated is None:
            self.last_updated = utc_now()

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a store row."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "costPrice": self.cost_price,
            "salesPrice": self.sales_price,
            "lowStockThreshold": self.low_stock_threshold,
            "lastUpdated": _isoformat(self.last_updated)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryItem":
        """Create instance from a store row."""
        return cls(
            id=data["id"],
            name=data["name"],
            category=data.get("category") or "",
            quantity=int(data.get("quantity") or 0),
            cost_price=float(data.get("costPrice") or 0),
            sales_price=float(data.get("salesPrice") or 0),
            low_stock_threshold=int(data.get("lowStockThreshold") or 0),
            last_updated=parse_timestamp(data.get("lastUpdated"))
        )


@dataclass
class SaleItem:
    """One line of a sale, with prices frozen at the time of sale."""

    item_id: str
    name: str
    quantity: int
    price_at_sale: float
    cost_at_sale: float

    def __post_init__(self):
        if not self.item_id:
            raise ValueError("Sale item must reference an item id")

        if self.quantity <= 0:
            raise ValueError("Sale quantity must be positive")

        if self.price_at_sale < 0 or self.cost_at_sale < 0:
            raise ValueError("Sale prices cannot be negative")

    @property
    def line_total(self) -> float:
        return self.quantity * self.price_at_sale

    @property
    def line_cost(self) -> float:
        return self.quantity * self.cost_at_sale

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "priceAtSale": self.price_at_sale,
            "costAtSale": self.cost_at_sale
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SaleItem":
        return cls(
            item_id=data["itemId"],
            name=data.get("name") or "",
            quantity=int(data["quantity"]),
            price_at_sale=float(data.get("priceAtSale") or 0),
            cost_at_sale=float(data.get("costAtSale") or 0)
        )


@dataclass
class SaleRecord:
    """A completed sale. Never updated or deleted once committed."""

    id: str
    items: List[SaleItem]
    total_amount: float
    total_profit: float
    timestamp: datetime

    @classmethod
    def build(cls, sale_id: str, items: List[SaleItem], timestamp: Optional[datetime] = None) -> "SaleRecord":
        """Create a sale with totals computed from its items."""
        total_amount = sum(item.line_total for item in items)
        total_cost = sum(item.line_cost for item in items)
        return cls(
            id=sale_id,
            items=list(items),
            total_amount=total_amount,
            total_profit=total_amount - total_cost,
            timestamp=timestamp or utc_now()
        )

    @property
    def cost_of_goods(self) -> float:
        return sum(item.line_cost for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
            "totalProfit": self.total_profit,
            "timestamp": _isoformat(self.timestamp)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SaleRecord":
        return cls(
            id=data["id"],
            items=[SaleItem.from_dict(item) for item in data.get("items") or []],
            total_amount=float(data.get("totalAmount") or 0),
            total_profit=float(data.get("totalProfit") or 0),
            timestamp=parse_timestamp(data["timestamp"])
        )


@dataclass
class ExpenseRecord:
    """An operating expense."""

    id: str
    description: str
    amount: float
    category: str
    date: date
    recorded_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.description:
            raise ValueError("Expense description cannot be empty")

        if self.amount < 0:
            raise ValueError("Expense amount cannot be negative")

        if not self.category:
            raise ValueError("Expense category cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "date": self.date.isoformat(),
            "recordedAt": _isoformat(self.recorded_at)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpenseRecord":
        return cls(
            id=data["id"],
            description=data["description"],
            amount=float(data.get("amount") or 0),
            category=data["category"],
            date=parse_date(data["date"]),
            recorded_at=parse_timestamp(data.get("recordedAt")) or utc_now()
        )


@dataclass
class PurchaseOrderItem:
    """One line of a supplier order."""

    item_id: str
    name: str
    quantity: int
    unit_cost: float

    def __post_init__(self):
        if not self.item_id:
            raise ValueError("Order item must reference an item id")

        if self.quantity <= 0:
            raise ValueError("Order quantity must be positive")

        if self.unit_cost < 0:
            raise ValueError("Unit cost cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unitCost": self.unit_cost
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PurchaseOrderItem":
        return cls(
            item_id=data["itemId"],
            name=data.get("name") or "",
            quantity=int(data["quantity"]),
            unit_cost=float(data.get("unitCost") or 0)
        )


@dataclass
class PurchaseOrder:
    """A supplier order.

    Status moves ``ordered -> received`` or ``ordered -> cancelled``;
    received and cancelled are terminal.
    """

    id: str
    supplier: str
    date: datetime
    status: str
    items: List[PurchaseOrderItem]
    total_cost: float
    notes: Optional[str] = None

    def __post_init__(self):
        if not self.supplier:
            raise ValueError("Supplier cannot be empty")

        if self.status not in ORDER_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(ORDER_STATUSES)}")

    @classmethod
    def build(
        cls,
        order_id: str,
        supplier: str,
        items: List[PurchaseOrderItem],
        notes: Optional[str] = None,
        order_date: Optional[datetime] = None
    ) -> "PurchaseOrder":
        """Create a new order in the ``ordered`` state."""
        return cls(
            id=order_id,
            supplier=supplier,
            date=order_date or utc_now(),
            status="ordered",
            items=list(items),
            total_cost=sum(item.quantity * item.unit_cost for item in items),
            notes=notes
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "supplier": self.supplier,
            "date": _isoformat(self.date),
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "totalCost": self.total_cost,
            "notes": self.notes
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PurchaseOrder":
        return cls(
            id=data["id"],
            supplier=data["supplier"],
            date=parse_timestamp(data["date"]),
            status=data["status"],
            items=[PurchaseOrderItem.from_dict(item) for item in data.get("items") or []],
            total_cost=float(data.get("totalCost") or 0),
            notes=data.get("notes")
        )


@dataclass
class UserSession:
    """A signed-in user and the role used to gate operations."""

    user_id: str
    email: str
    role: str = "cashier"
    access_token: Optional[str] = None

    def __post_init__(self):
        if self.role not in USER_ROLES:
            self.role = "cashier"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
