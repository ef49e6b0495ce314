"""AI business insights: prompt building and Gemini call."""

from datetime import date, timedelta
from typing import Optional, Sequence, Tuple

from . import reports
from ..api.gemini_client import GeminiClient
from ..models.records import InventoryItem, SaleRecord
from ..utils.config import get_config
from ..utils.logger import get_insights_logger, get_error_logger
from ..utils.exceptions import BaseAppException

EMPTY_RESPONSE = "Unable to generate insights at this time."
SERVICE_ERROR = "Error connecting to AI service. Please check your API key and try again."

TIME_RANGES = ("7days", "30days", "90days", "all", "custom")
_RANGE_DAYS = {"7days": 7, "30days": 30, "90days": 90}


def resolve_time_range(
    time_range: str,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    today: Optional[date] = None
) -> Tuple[Optional[date], Optional[date]]:
    """Turn a named range into ``(start, end)`` dates; None means unbounded."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Time range must be one of {', '.join(TIME_RANGES)}")

    today = today or date.today()
    if time_range in _RANGE_DAYS:
        return today - timedelta(days=_RANGE_DAYS[time_range]), today
    if time_range == "custom":
        return custom_start, custom_end
    return None, None


class InsightGenerator:
    """Summarises the current snapshot into a prompt and asks Gemini about it."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.config = get_config()
        self.logger = get_insights_logger()
        self.error_logger = get_error_logger()
        self._client = client

    @property
    def client(self) -> GeminiClient:
        # Created lazily so a missing key only fails the insight request.
        if self._client is None:
            self._client = GeminiClient()
        return self._client

    def build_prompt(
        self,
        inventory: Sequence[InventoryItem],
        sales: Sequence[SaleRecord],
        start: Optional[date] = None,
        end: Optional[date] = None,
        question: Optional[str] = None
    ) -> str:
        """Assemble the free-form analysis prompt."""
        currency = self.config.env.currency_symbol
        limits = self.config.insights
        selected = reports.filter_sales_by_date(sales, start, end)

        inventory_lines = "\n".join(
            f"- {item.name} ({item.category}): Qty {item.quantity}, "
            f"Cost {item.cost_price:g}, Sell {item.sales_price:g}"
            for item in list(inventory)[:limits.inventory_sample_size]
        )
        sales_lines = "\n".join(
            f"- {sale.timestamp.astimezone().date().isoformat()}: "
            f"Items[{', '.join(line.name for line in sale.items)}], Total {sale.total_amount:.2f}"
            for sale in selected[:limits.sales_sample_size]
        )

        period_start = start.isoformat() if start else "All Time"
        period_end = end.isoformat() if end else "Now"

        prompt = f"""
You are an expert business consultant for "{self.config.env.business_name}", a Ghanaian general trading company.

Data Context:
Analysis Period: {period_start} to {period_end}

Sales Performance in Period:
- Total Revenue: {currency}{reports.total_revenue(selected):.2f}
- Total Profit: {currency}{reports.total_profit(selected):.2f}
- Transaction Count: {len(selected)}

Inventory Overview (Current Snapshot):
- Total SKUs: {len(inventory)}
- Total Valuation: {currency}{reports.inventory_value(inventory):.2f}
- Items Low on Stock: {reports.low_stock_count(inventory)}

Current Inventory Details (Sample):
{inventory_lines}

Transactions in Selected Period (Sample up to {limits.sales_sample_size}):
{sales_lines}
"""

        if question and question.strip():
            prompt += f"""
USER QUESTION: "{question.strip()}"

Please answer the user's question specifically based on the provided data context.
If the data is insufficient to answer the question fully, explain why and provide the best possible related insights.
Focus on the data from the specified period.
"""
        else:
            prompt += f"""
Please provide a concise but insightful analysis of the business status for this period.

1. **Sales & Profitability:** Analyze performance trends. Are margins healthy?
2. **Inventory Health:** Identify low stock items and suggest restocking priorities.
3. **Top Performers:** Which items are driving revenue?
4. **Recommendations:** Give actionable advice on pricing, bundling, or stock mix.

Keep the tone professional, encouraging, and actionable. Use the currency {currency}. Format the response with Markdown for readability (bolding, lists).
"""
        return prompt

    def generate(
        self,
        inventory: Sequence[InventoryItem],
        sales: Sequence[SaleRecord],
        start: Optional[date] = None,
        end: Optional[date] = None,
        question: Optional[str] = None
    ) -> str:
        """
        Return a markdown analysis, or a fixed message when the service fails.

        Never raises for service or configuration failures.
        """
        prompt = self.build_prompt(inventory, sales, start, end, question)
        self.logger.info(
            f"Requesting insights for {start or 'all time'} to {end or 'now'}"
            f"{' with question' if question else ''}"
        )

        try:
            text = self.client.generate_text(prompt)
        except BaseAppException as e:
            self.error_logger.error(f"Error generating insights: {e.message}")
            return SERVICE_ERROR

        return text or EMPTY_RESPONSE
