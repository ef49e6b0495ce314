"""Tests for data models."""

import pytest
from datetime import date, datetime, timezone

from tillbook.models.records import (
    InventoryItem,
    SaleItem,
    SaleRecord,
    ExpenseRecord,
    PurchaseOrder,
    PurchaseOrderItem,
    UserSession,
    parse_timestamp,
)
from tillbook.models.transaction_result import TransactionResult
from tests.fakes import inventory_row


class TestInventoryItem:
    """Tests for InventoryItem model."""

    def test_create_item(self):
        """Test creating a valid InventoryItem."""
        item = InventoryItem(
            id="A",
            name="Rice 5kg",
            category="Grains",
            quantity=10,
            cost_price=40.0,
            sales_price=55.0
        )

        assert item.low_stock_threshold == 5
        assert item.last_updated is not None
        assert item.last_updated.tzinfo is not None

    def test_validation_empty_name(self):
        """Test that an empty name raises ValueError."""
        with pytest.raises(ValueError, match="name cannot be empty"):
            InventoryItem(id="A", name="", category="", quantity=1, cost_price=1, sales_price=1)

    def test_validation_negative_price(self):
        """Test that negative prices raise ValueError."""
        with pytest.raises(ValueError, match="Prices cannot be negative"):
            InventoryItem(id="A", name="Rice", category="", quantity=1, cost_price=-1, sales_price=1)

    def test_negative_quantity_allowed(self):
        """Test that oversold stock can be represented."""
        item = InventoryItem(id="A", name="Rice", category="", quantity=-2, cost_price=1, sales_price=1)

        assert item.quantity == -2
        assert item.is_low_stock is True

    def test_low_stock_boundary(self):
        """Test an item at its threshold counts as low."""
        item = InventoryItem(
            id="A", name="Rice", category="", quantity=5, cost_price=1, sales_price=1, low_stock_threshold=5
        )

        assert item.is_low_stock is True

    def test_from_dict_uses_store_columns(self):
        """Test creating an item from a camelCase store row."""
        item = InventoryItem.from_dict(inventory_row("A", 7, cost=3.5, price=6.0, threshold=2))

        assert item.quantity == 7
        assert item.cost_price == 3.5
        assert item.sales_price == 6.0
        assert item.low_stock_threshold == 2
        assert item.last_updated == datetime(2024, 1, 1, 8, tzinfo=timezone.utc)

    def test_to_dict(self):
        """Test converting an item back to a store row."""
        row = inventory_row("A", 7)

        assert InventoryItem.from_dict(row).to_dict() == row


class TestSaleRecord:
    """Tests for SaleRecord model."""

    def test_build_totals(self):
        """Test totals are computed from the lines."""
        sale = SaleRecord.build("S-1", [
            SaleItem(item_id="A", name="Rice", quantity=2, price_at_sale=55.0, cost_at_sale=40.0),
            SaleItem(item_id="B", name="Oil", quantity=1, price_at_sale=28.0, cost_at_sale=20.0),
        ])

        assert sale.total_amount == 138.0
        assert sale.total_profit == 38.0
        assert sale.cost_of_goods == 100.0
        assert sale.timestamp is not None

    def test_sale_item_quantity_must_be_positive(self):
        """Test that a zero quantity line raises ValueError."""
        with pytest.raises(ValueError, match="quantity must be positive"):
            SaleItem(item_id="A", name="Rice", quantity=0, price_at_sale=1, cost_at_sale=1)

    def test_from_dict(self):
        """Test reading a sale row with nested items."""
        sale = SaleRecord.from_dict({
            "id": "S-1",
            "items": [{"itemId": "A", "name": "Rice", "quantity": 2, "priceAtSale": 55, "costAtSale": 40}],
            "totalAmount": 110,
            "totalProfit": 30,
            "timestamp": "2024-03-01T10:15:00Z"
        })

        assert sale.items[0].item_id == "A"
        assert sale.items[0].line_total == 110
        assert sale.timestamp == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)


class TestPurchaseOrder:
    """Tests for PurchaseOrder model."""

    def test_build(self):
        """Test a new order starts ordered with its total cost."""
        order = PurchaseOrder.build("PO-9", "Tema Traders", [
            PurchaseOrderItem(item_id="X", name="X", quantity=3, unit_cost=4.0),
            PurchaseOrderItem(item_id="Y", name="Y", quantity=2, unit_cost=10.0),
        ])

        assert order.status == "ordered"
        assert order.total_cost == 32
        assert order.is_terminal is False

    def test_invalid_status(self):
        """Test that an unknown status raises ValueError."""
        with pytest.raises(ValueError, match="Status must be one of"):
            PurchaseOrder(
                id="PO-9", supplier="Tema Traders", date=datetime.now(timezone.utc),
                status="shipped", items=[], total_cost=0
            )

    def test_to_dict(self):
        """Test order rows use camelCase columns."""
        order = PurchaseOrder.build(
            "PO-9", "Tema Traders", [PurchaseOrderItem("X", "X", 3, 4.0)], notes="Call first"
        )

        data = order.to_dict()

        assert data["totalCost"] == 12.0
        assert data["items"][0] == {"itemId": "X", "name": "X", "quantity": 3, "unitCost": 4.0}
        assert data["notes"] == "Call first"


class TestExpenseRecord:
    """Tests for ExpenseRecord model."""

    def test_to_dict(self):
        """Test the date is stored as a calendar date."""
        expense = ExpenseRecord(id="E-1", description="Rent", amount=800.0, category="Rent", date=date(2024, 3, 1))

        data = expense.to_dict()

        assert data["date"] == "2024-03-01"
        assert data["recordedAt"] is not None

    def test_from_dict_accepts_timestamp(self):
        """Test a full timestamp in the date column is truncated to its day."""
        expense = ExpenseRecord.from_dict({
            "id": "E-1", "description": "Light bill", "amount": 120, "category": "Utilities",
            "date": "2024-03-01T00:00:00+00:00"
        })

        assert expense.date == date(2024, 3, 1)

    def test_negative_amount(self):
        """Test that a negative amount raises ValueError."""
        with pytest.raises(ValueError, match="amount cannot be negative"):
            ExpenseRecord(id="E-1", description="Rent", amount=-1, category="Rent", date=date(2024, 3, 1))


class TestUserSession:
    """Tests for UserSession model."""

    def test_default_role(self):
        """Test sessions default to the cashier role."""
        assert UserSession(user_id="u", email="a@b.c").is_admin is False

    def test_unknown_role_falls_back_to_cashier(self):
        """Test an unexpected role never grants admin."""
        session = UserSession(user_id="u", email="a@b.c", role="owner")

        assert session.role == "cashier"


def test_parse_timestamp_zulu():
    """Test the trailing Z form returned by the store."""
    assert parse_timestamp("2024-01-01T08:00:00Z") == datetime(2024, 1, 1, 8, tzinfo=timezone.utc)


class TestTransactionResult:
    """Tests for TransactionResult model."""

    def test_create_result(self):
        """Test creating a TransactionResult."""
        result = TransactionResult(operation="complete_sale")

        assert result.success is True
        assert result.writes_committed == 0
        assert result.reconciled is False
        assert result.errors == []

    def test_add_error(self):
        """Test adding an error marks the result failed."""
        result = TransactionResult(operation="complete_sale")

        result.add_error("S-1", "StoreAPIError", "Store write failed")

        assert result.success is False
        assert result.errors[0].entity_id == "S-1"
        assert result.errors[0].error_type == "StoreAPIError"

    def test_finalize(self):
        """Test finalizing a TransactionResult."""
        result = TransactionResult(operation="complete_sale")

        assert result.finalize() is result
        assert result.end_time is not None
        assert result.duration >= 0

    def test_get_summary(self):
        """Test getting summary string."""
        result = TransactionResult(operation="complete_sale", writes_committed=1, skipped_count=1)
        result.add_error("S-1", "StoreAPIError", "Store write failed")
        result.notice = "Error saving sale to database. Please check connection."
        result.finalize()

        summary = result.get_summary()

        assert "complete_sale failed" in summary
        assert "Remote writes: 1" in summary
        assert "Skipped: 1" in summary
        assert "S-1: Store write failed" in summary
