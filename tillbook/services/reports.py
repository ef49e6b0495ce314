"""Aggregations over in-memory snapshots.

All functions are pure and recomputed from the latest snapshot on every
call; nothing is cached.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence

from ..models.records import InventoryItem, SaleRecord, ExpenseRecord, PurchaseOrder
from ..models.report import DailySales, DashboardMetrics, FinancialSummary


def _local_date(timestamp: datetime) -> date:
    """Calendar date of ``timestamp`` in the local time zone."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone()
    return timestamp.date()


# ----------------------------------------------------------------------
# Income statement
# ----------------------------------------------------------------------

def total_revenue(sales: Iterable[SaleRecord]) -> float:
    return sum(sale.total_amount for sale in sales)


def total_profit(sales: Iterable[SaleRecord]) -> float:
    return sum(sale.total_profit for sale in sales)


def cost_of_goods_sold(sales: Iterable[SaleRecord]) -> float:
    """Sum of ``cost_at_sale * quantity`` over every sale line."""
    return sum(item.cost_at_sale * item.quantity for sale in sales for item in sale.items)


def gross_profit(sales: Sequence[SaleRecord]) -> float:
    return total_revenue(sales) - cost_of_goods_sold(sales)


def gross_margin(sales: Sequence[SaleRecord]) -> float:
    """Gross profit as a percentage of revenue (0 with no revenue)."""
    revenue = total_revenue(sales)
    if revenue <= 0:
        return 0.0
    return gross_profit(sales) / revenue * 100


def total_expenses(expenses: Iterable[ExpenseRecord]) -> float:
    return sum(expense.amount for expense in expenses)


def net_income(sales: Sequence[SaleRecord], expenses: Sequence[ExpenseRecord]) -> float:
    return gross_profit(sales) - total_expenses(expenses)


def estimated_cash(sales: Sequence[SaleRecord], expenses: Sequence[ExpenseRecord]) -> float:
    """Rough cash position: revenue less expenses, floored at zero."""
    return max(0.0, total_revenue(sales) - total_expenses(expenses))


# ----------------------------------------------------------------------
# Stock
# ----------------------------------------------------------------------

def inventory_value(inventory: Iterable[InventoryItem]) -> float:
    """Stock valued at cost."""
    return sum(item.cost_price * item.quantity for item in inventory)


def potential_sales_value(inventory: Iterable[InventoryItem]) -> float:
    """Stock valued at selling price."""
    return sum(item.sales_price * item.quantity for item in inventory)


def low_stock_items(inventory: Iterable[InventoryItem]) -> List[InventoryItem]:
    return [item for item in inventory if item.quantity <= item.low_stock_threshold]


def low_stock_count(inventory: Iterable[InventoryItem]) -> int:
    return len(low_stock_items(inventory))


def inventory_categories(inventory: Iterable[InventoryItem]) -> List[str]:
    return sorted({item.category for item in inventory if item.category})


# ----------------------------------------------------------------------
# Time series
# ----------------------------------------------------------------------

def daily_sales_series(
    sales: Iterable[SaleRecord],
    days: int = 7,
    today: Optional[date] = None
) -> List[DailySales]:
    """
    Bucket sales totals and profit by local calendar day.

    Covers the inclusive range ``[today - (days - 1), today]``, oldest
    first. Days without sales are present with zero totals.
    """
    today = today or date.today()
    start = today - timedelta(days=days - 1)

    totals = {start + timedelta(days=offset): [0.0, 0.0] for offset in range(days)}
    for sale in sales:
        bucket = totals.get(_local_date(sale.timestamp))
        if bucket is not None:
            bucket[0] += sale.total_amount
            bucket[1] += sale.total_profit

    return [DailySales(day=day, sales=amount, profit=profit) for day, (amount, profit) in totals.items()]


def filter_sales_by_date(
    sales: Iterable[SaleRecord],
    start: Optional[date] = None,
    end: Optional[date] = None
) -> List[SaleRecord]:
    """Keep sales from the start of ``start`` to the end of ``end`` (local time)."""
    start_at = datetime.combine(start, time.min).astimezone() if start else None
    end_at = datetime.combine(end, time.max).astimezone() if end else None

    selected = []
    for sale in sales:
        stamp = sale.timestamp if sale.timestamp.tzinfo else sale.timestamp.astimezone()
        if start_at and stamp < start_at:
            continue
        if end_at and stamp > end_at:
            continue
        selected.append(sale)
    return selected


# ----------------------------------------------------------------------
# Composite reports
# ----------------------------------------------------------------------

def dashboard_metrics(inventory: Sequence[InventoryItem], sales: Sequence[SaleRecord]) -> DashboardMetrics:
    return DashboardMetrics(
        total_revenue=total_revenue(sales),
        total_profit=total_profit(sales),
        low_stock_count=low_stock_count(inventory),
        total_inventory_value=inventory_value(inventory),
        potential_sales_value=potential_sales_value(inventory)
    )


def financial_summary(
    inventory: Sequence[InventoryItem],
    sales: Sequence[SaleRecord],
    expenses: Sequence[ExpenseRecord]
) -> FinancialSummary:
    return FinancialSummary(
        total_sales=total_revenue(sales),
        total_cogs=cost_of_goods_sold(sales),
        gross_profit=gross_profit(sales),
        gross_margin=gross_margin(sales),
        total_expenses=total_expenses(expenses),
        net_income=net_income(sales, expenses),
        inventory_value=inventory_value(inventory),
        estimated_cash=estimated_cash(sales, expenses)
    )


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------

def search_inventory(inventory: Iterable[InventoryItem], term: str = "") -> List[InventoryItem]:
    """Items whose name or category contains ``term`` (case-insensitive)."""
    needle = term.lower()
    return [
        item for item in inventory
        if needle in item.name.lower() or needle in item.category.lower()
    ]


def search_expenses(expenses: Iterable[ExpenseRecord], term: str = "") -> List[ExpenseRecord]:
    """Matching expenses, newest first."""
    needle = term.lower()
    matches = [
        expense for expense in expenses
        if needle in expense.description.lower() or needle in expense.category.lower()
    ]
    return sorted(matches, key=lambda expense: expense.date, reverse=True)


def search_purchase_orders(orders: Iterable[PurchaseOrder], term: str = "") -> List[PurchaseOrder]:
    """Orders matching supplier or id, newest first."""
    needle = term.lower()
    matches = [
        order for order in orders
        if needle in order.supplier.lower() or needle in order.id.lower()
    ]
    return sorted(matches, key=lambda order: order.date, reverse=True)
