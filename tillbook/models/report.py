"""Report value objects produced by the aggregation helpers."""

from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Any


@dataclass(frozen=True)
class DailySales:
    """Sales and profit for one calendar day."""

    day: date
    sales: float
    profit: float

    @property
    def label(self) -> str:
        """Short ``MM-DD`` axis label."""
        return self.day.isoformat()[5:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "label": self.label,
            "sales": self.sales,
            "profit": self.profit
        }


@dataclass(frozen=True)
class DashboardMetrics:
    """Headline figures for the dashboard."""

    total_revenue: float
    total_profit: float
    low_stock_count: int
    total_inventory_value: float
    potential_sales_value: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FinancialSummary:
    """Income statement and asset figures."""

    total_sales: float
    total_cogs: float
    gross_profit: float
    gross_margin: float
    total_expenses: float
    net_income: float
    inventory_value: float
    estimated_cash: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
