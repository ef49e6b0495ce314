"""Tests for snapshot aggregations."""

from datetime import date, datetime, time, timedelta

from tillbook.models.records import InventoryItem, SaleItem, SaleRecord, ExpenseRecord, PurchaseOrder
from tillbook.services import reports

TODAY = date(2024, 3, 10)


def local_noon(day):
    return datetime.combine(day, time(12)).astimezone()


def make_sale(sale_id, amount, cost, day=TODAY):
    line = SaleItem(item_id="A", name="Rice", quantity=1, price_at_sale=amount, cost_at_sale=cost)
    return SaleRecord.build(sale_id, [line], timestamp=local_noon(day))


def make_item(item_id, quantity, cost=2.0, price=5.0, threshold=5, category="General", name=None):
    return InventoryItem(
        id=item_id, name=name or f"Item {item_id}", category=category, quantity=quantity,
        cost_price=cost, sales_price=price, low_stock_threshold=threshold
    )


def make_expense(expense_id, amount, day=TODAY, description="Rent", category="Rent"):
    return ExpenseRecord(id=expense_id, description=description, amount=amount, category=category, date=day)


class TestIncomeStatement:
    """Tests for revenue, profit and expense figures."""

    def test_financial_summary(self):
        """Test the income statement figures line up."""
        sales = [make_sale("S-1", 100.0, 60.0), make_sale("S-2", 50.0, 30.0)]
        expenses = [make_expense("E-1", 20.0)]
        inventory = [make_item("A", 10, cost=4.0)]

        summary = reports.financial_summary(inventory, sales, expenses)

        assert summary.total_sales == 150.0
        assert summary.total_cogs == 90.0
        assert summary.gross_profit == 60.0
        assert summary.gross_margin == 40.0
        assert summary.total_expenses == 20.0
        assert summary.net_income == 40.0
        assert summary.inventory_value == 40.0
        assert summary.estimated_cash == 130.0

    def test_gross_margin_without_revenue(self):
        """Test margin is zero rather than a division error."""
        assert reports.gross_margin([]) == 0.0

    def test_estimated_cash_floored(self):
        """Test cash never reports below zero."""
        assert reports.estimated_cash([make_sale("S-1", 10.0, 5.0)], [make_expense("E-1", 50.0)]) == 0.0


class TestStock:
    """Tests for inventory figures."""

    def test_dashboard_metrics(self):
        """Test the headline dashboard numbers."""
        inventory = [make_item("A", 10, cost=2.0, price=5.0), make_item("B", 3, cost=1.0, price=2.0)]
        sales = [make_sale("S-1", 20.0, 12.0)]

        metrics = reports.dashboard_metrics(inventory, sales)

        assert metrics.total_revenue == 20.0
        assert metrics.total_profit == 8.0
        assert metrics.low_stock_count == 1
        assert metrics.total_inventory_value == 23.0
        assert metrics.potential_sales_value == 56.0

    def test_low_stock_includes_threshold_and_negative(self):
        """Test items at the threshold or oversold are low."""
        inventory = [make_item("A", 5), make_item("B", 6), make_item("C", -1)]

        assert [item.id for item in reports.low_stock_items(inventory)] == ["A", "C"]

    def test_categories(self):
        """Test categories are distinct and sorted."""
        inventory = [make_item("A", 1, category="Oil"), make_item("B", 1, category="Grains"),
                     make_item("C", 1, category="Oil"), make_item("D", 1, category="")]

        assert reports.inventory_categories(inventory) == ["Grains", "Oil"]


class TestDailySeries:
    """Tests for the seven-day sales chart."""

    def test_window_boundaries(self):
        """Test today and six days back are in, seven days back is out."""
        sales = [
            make_sale("S-today", 10.0, 4.0, TODAY),
            make_sale("S-edge", 20.0, 5.0, TODAY - timedelta(days=6)),
            make_sale("S-out", 99.0, 1.0, TODAY - timedelta(days=7)),
        ]

        series = reports.daily_sales_series(sales, today=TODAY)

        assert len(series) == 7
        assert series[0].day == TODAY - timedelta(days=6)
        assert series[-1].day == TODAY
        assert series[0].sales == 20.0
        assert series[-1].sales == 10.0
        assert series[-1].profit == 6.0
        assert sum(point.sales for point in series) == 30.0

    def test_same_day_sales_summed(self):
        """Test several sales on one day share a bucket."""
        sales = [make_sale("S-1", 10.0, 4.0), make_sale("S-2", 5.0, 1.0)]

        series = reports.daily_sales_series(sales, today=TODAY)

        assert series[-1].sales == 15.0
        assert series[-1].profit == 10.0

    def test_empty_days_are_zero(self):
        """Test days without sales are still present."""
        series = reports.daily_sales_series([], today=TODAY)

        assert [point.sales for point in series] == [0.0] * 7
        assert series[-1].label == "03-10"

    def test_filter_by_date(self):
        """Test the date filter includes both end days."""
        sales = [
            make_sale("S-1", 1.0, 0.0, date(2024, 3, 1)),
            make_sale("S-2", 1.0, 0.0, date(2024, 3, 5)),
            make_sale("S-3", 1.0, 0.0, date(2024, 3, 9)),
        ]

        selected = reports.filter_sales_by_date(sales, start=date(2024, 3, 1), end=date(2024, 3, 5))

        assert [sale.id for sale in selected] == ["S-1", "S-2"]


class TestSearch:
    """Tests for list filters."""

    def test_search_inventory(self):
        """Test matching by name or category, ignoring case."""
        inventory = [make_item("A", 1, name="Rice 5kg", category="Grains"),
                     make_item("B", 1, name="Cooking Oil", category="Oil")]

        assert [item.id for item in reports.search_inventory(inventory, "RICE")] == ["A"]
        assert [item.id for item in reports.search_inventory(inventory, "oil")] == ["B"]
        assert len(reports.search_inventory(inventory)) == 2

    def test_search_expenses_newest_first(self):
        """Test matching expenses are sorted by date, newest first."""
        expenses = [
            make_expense("E-1", 10.0, date(2024, 3, 1), description="Light bill", category="Utilities"),
            make_expense("E-2", 10.0, date(2024, 3, 8), description="Water bill", category="Utilities"),
            make_expense("E-3", 10.0, date(2024, 3, 5), description="Shop rent", category="Rent"),
        ]

        assert [expense.id for expense in reports.search_expenses(expenses, "bill")] == ["E-2", "E-1"]

    def test_search_purchase_orders(self):
        """Test matching orders by supplier."""
        orders = [
            PurchaseOrder.build("PO-1", "Tema Traders", [], order_date=local_noon(date(2024, 3, 1))),
            PurchaseOrder.build("PO-2", "Kumasi Foods", [], order_date=local_noon(date(2024, 3, 2))),
            PurchaseOrder.build("PO-3", "Tema Traders", [], order_date=local_noon(date(2024, 3, 3))),
        ]

        assert [order.id for order in reports.search_purchase_orders(orders, "tema")] == ["PO-3", "PO-1"]
