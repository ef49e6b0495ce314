"""Command-line interface for the retail back office."""

import sys
from datetime import date
from functools import wraps
from typing import List, Optional, Tuple

import click

from .models.records import SaleItem, PurchaseOrderItem, EXPENSE_CATEGORIES, USER_ROLES
from .models.transaction_result import TransactionResult
from .services import reports
from .services.insights import InsightGenerator, resolve_time_range, TIME_RANGES
from .api.auth_client import AuthClient
from .services.session import open_store_service, check_connections
from .services.store_service import StoreService, ADJUSTMENT_MODES
from .utils.config import get_config
from .utils.exceptions import (
    AuthenticationError,
    ConfigurationError,
    PermissionDeniedError,
    StoreAPIError,
)


def _notify(message: str):
    """Failure notice shown to the operator."""
    click.echo(click.style(f"⚠ {message}", fg="red", bold=True), err=True)


def _get_service(ctx: click.Context) -> StoreService:
    """Sign in on first use and cache the service on the context."""
    obj = ctx.find_root().obj
    if obj.get("service") is None:
        if not obj.get("email") or not obj.get("password"):
            raise click.UsageError("Sign-in required: pass --email/--password or set TILLBOOK_EMAIL/TILLBOOK_PASSWORD")
        service = open_store_service(obj["email"], obj["password"], notifier=_notify)
        obj["service"] = service
        ctx.find_root().call_on_close(service.close)
    return obj["service"]


def handle_errors(func):
    """Turn expected failures into a message and exit status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except AuthenticationError as e:
            click.echo(click.style(f"✗ Sign-in failed: {e.message}", fg="red"), err=True)
        except PermissionDeniedError as e:
            click.echo(click.style(f"✗ {e.message}", fg="red"), err=True)
        except ConfigurationError as e:
            click.echo(click.style(f"✗ Configuration error: {e.message}", fg="red"), err=True)
        except StoreAPIError as e:
            click.echo(click.style(f"✗ Store error: {e.message}", fg="red"), err=True)
        except ValueError as e:
            click.echo(click.style(f"✗ {str(e)}", fg="red"), err=True)
        sys.exit(1)
    return wrapper


def _money(amount: float) -> str:
    return f"{get_config().env.currency_symbol}{amount:,.2f}"


def _report_result(result: TransactionResult, success_message: str):
    """Print a transaction outcome and exit non-zero on failure."""
    if result.success:
        if result.writes_committed == 0 and result.skipped_count:
            click.echo(click.style("Nothing to do (record not found)", fg="yellow"))
        else:
            click.echo(click.style(f"✓ {success_message}", fg="green", bold=True))
        return

    click.echo(click.style(f"✗ {result.operation} failed", fg="red", bold=True), err=True)
    for error in result.errors:
        click.echo(f"  {error.entity_id}: {error.message}", err=True)
    if result.reconciled:
        click.echo("  Local state was reloaded from the store.", err=True)
    sys.exit(1)


def _parse_pairs(values: Tuple[str, ...], parts: int, label: str) -> List[List[str]]:
    parsed = []
    for value in values:
        pieces = value.split(":")
        if len(pieces) != parts or not all(pieces):
            raise click.BadParameter(f"expected {label}, got '{value}'")
        parsed.append(pieces)
    return parsed


@click.group()
@click.version_option(version="1.0.0")
@click.option("--email", envvar="TILLBOOK_EMAIL", help="Account email")
@click.option("--password", envvar="TILLBOOK_PASSWORD", help="Account password")
@click.pass_context
def cli(ctx: click.Context, email: Optional[str], password: Optional[str]):
    """
    Tillbook retail back office.

    Inventory, point of sale, purchase orders, expenses and reports.
    """
    ctx.ensure_object(dict)
    ctx.obj.setdefault("email", email)
    ctx.obj.setdefault("password", password)


# ----------------------------------------------------------------------
# Dashboard and reports
# ----------------------------------------------------------------------

@cli.command()
@click.pass_context
@handle_errors
def status(ctx: click.Context):
    """Show the business overview and the last 7 days of sales."""
    service = _get_service(ctx)
    metrics = reports.dashboard_metrics(service.inventory, service.sales)

    click.echo("Business Overview")
    click.echo("─" * 60)
    click.echo(f"Total revenue:     {_money(metrics.total_revenue)}")
    click.echo(f"Total profit:      {_money(metrics.total_profit)}")
    click.echo(f"Inventory value:   {_money(metrics.total_inventory_value)}")
    click.echo(f"Potential sales:   {_money(metrics.potential_sales_value)}")
    click.echo(click.style(
        f"Low stock items:   {metrics.low_stock_count}",
        fg="red" if metrics.low_stock_count else None
    ))
    click.echo()
    click.echo("Last 7 days:")
    for day in reports.daily_sales_series(service.sales):
        click.echo(f"  {day.label}  sales {_money(day.sales):>14}  profit {_money(day.profit):>14}")


@cli.command()
@click.pass_context
@handle_errors
def report(ctx: click.Context):
    """Profit & loss and asset summary (admin)."""
    service = _get_service(ctx)
    service.require_admin("view financial reports")
    summary = reports.financial_summary(service.inventory, service.sales, service.expenses)

    click.echo("Financial Health")
    click.echo("─" * 60)
    click.echo(f"Revenue:               {_money(summary.total_sales)}")
    click.echo(f"Cost of goods sold:    {_money(summary.total_cogs)}")
    click.echo(f"Gross profit:          {_money(summary.gross_profit)} (margin {summary.gross_margin:.1f}%)")
    click.echo(f"Operating expenses:    {_money(summary.total_expenses)}")
    click.echo(click.style(
        f"Net income:            {_money(summary.net_income)}",
        fg="green" if summary.net_income >= 0 else "red"
    ))
    click.echo()
    click.echo(f"Inventory assets:      {_money(summary.inventory_value)}")
    click.echo(f"Est. cash/receivables: {_money(summary.estimated_cash)}")


@cli.command()
@click.option("--range", "time_range", type=click.Choice(TIME_RANGES), default="30days", show_default=True)
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), help="Custom range start")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), help="Custom range end")
@click.option("--question", "-q", help="Ask a specific question about the data")
@click.pass_context
@handle_errors
def insights(ctx: click.Context, time_range: str, start, end, question: Optional[str]):
    """AI-powered recommendations (admin)."""
    service = _get_service(ctx)
    service.require_admin("request AI insights")
    range_start, range_end = resolve_time_range(
        time_range,
        start.date() if start else None,
        end.date() if end else None
    )
    click.echo(InsightGenerator().generate(service.inventory, service.sales, range_start, range_end, question))


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------

@cli.group()
def inventory():
    """Manage stock and pricing."""


@inventory.command("list")
@click.option("--search", default="", help="Filter by name or category")
@click.pass_context
@handle_errors
def inventory_list(ctx: click.Context, search: str):
    """List inventory items."""
    service = _get_service(ctx)
    items = reports.search_inventory(service.inventory, search)
    show_cost = service.session is None or service.session.is_admin

    for item in items:
        line = f"{item.id}  {item.name:<30} {item.category:<15} qty {item.quantity:>5}  sell {_money(item.sales_price)}"
        if show_cost:
            line += f"  cost {_money(item.cost_price)}"
        click.echo(click.style(line, fg="red") if item.is_low_stock else line)

    if not items:
        click.echo("No items found.")


@inventory.command("add")
@click.argument("name")
@click.option("--category", required=True)
@click.option("--quantity", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--cost", "cost_price", type=click.FloatRange(min=0), required=True)
@click.option("--price", "sales_price", type=click.FloatRange(min=0), required=True)
@click.option("--threshold", type=click.IntRange(min=0), default=5, show_default=True)
@click.pass_context
@handle_errors
def inventory_add(ctx, name, category, quantity, cost_price, sales_price, threshold):
    """Add a product (admin)."""
    service = _get_service(ctx)
    result = service.add_item(name, category, quantity, cost_price, sales_price, threshold)
    _report_result(result, f"Added {name} ({result.entity_id})")


@inventory.command("adjust")
@click.argument("item_id")
@click.argument("mode", type=click.Choice(ADJUSTMENT_MODES))
@click.argument("amount", type=click.IntRange(min=0))
@click.pass_context
@handle_errors
def inventory_adjust(ctx, item_id: str, mode: str, amount: int):
    """Add, remove or set stock for ITEM_ID (admin)."""
    service = _get_service(ctx)
    result = service.adjust_stock(item_id, mode, amount)
    item = service.get_item(item_id)
    _report_result(result, f"Stock for {item.name if item else item_id} is now {item.quantity if item else '?'}")


@inventory.command("delete")
@click.argument("item_id")
@click.confirmation_option(prompt="Are you sure you want to delete this item?")
@click.pass_context
@handle_errors
def inventory_delete(ctx, item_id: str):
    """Delete a product (admin)."""
    service = _get_service(ctx)
    _report_result(service.delete_item(item_id), f"Deleted {item_id}")


# ----------------------------------------------------------------------
# Point of sale
# ----------------------------------------------------------------------

@cli.command()
@click.argument("lines", nargs=-1, required=True)
@click.pass_context
@handle_errors
def sell(ctx: click.Context, lines: Tuple[str, ...]):
    """
    Complete a sale. LINES are ITEM_ID:QTY pairs.

    Prices and costs are taken from the current inventory.
    """
    service = _get_service(ctx)
    sale_items = []
    for item_id, qty in _parse_pairs(lines, 2, "ITEM_ID:QTY"):
        item = service.get_item(item_id)
        if item is None:
            raise click.BadParameter(f"unknown item '{item_id}'")
        sale_items.append(SaleItem(
            item_id=item.id,
            name=item.name,
            quantity=int(qty),
            price_at_sale=item.sales_price,
            cost_at_sale=item.cost_price
        ))

    result = service.complete_sale(sale_items)
    sale = service.sales[0] if result.success and service.sales else None
    _report_result(result, f"Sale recorded: {_money(sale.total_amount) if sale else result.entity_id}")


# ----------------------------------------------------------------------
# Expenses
# ----------------------------------------------------------------------

@cli.group()
def expenses():
    """Track operational costs (admin)."""


@expenses.command("list")
@click.option("--search", default="")
@click.pass_context
@handle_errors
def expenses_list(ctx, search: str):
    """List expenses, newest first."""
    service = _get_service(ctx)
    service.require_admin("view expenses")
    records = reports.search_expenses(service.expenses, search)
    for expense in records:
        click.echo(f"{expense.id}  {expense.date.isoformat()}  {expense.category:<12} {_money(expense.amount):>14}  {expense.description}")
    click.echo(f"Total: {_money(reports.total_expenses(records))}")


@expenses.command("add")
@click.argument("description")
@click.argument("amount", type=click.FloatRange(min=0))
@click.option("--category", type=click.Choice(EXPENSE_CATEGORIES), required=True)
@click.option("--date", "expense_date", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.pass_context
@handle_errors
def expenses_add(ctx, description: str, amount: float, category: str, expense_date):
    """Record an expense."""
    service = _get_service(ctx)
    day: Optional[date] = expense_date.date() if expense_date else None
    _report_result(service.add_expense(description, amount, category, day), f"Expense recorded: {_money(amount)}")


@expenses.command("delete")
@click.argument("expense_id")
@click.confirmation_option(prompt="Delete this expense record?")
@click.pass_context
@handle_errors
def expenses_delete(ctx, expense_id: str):
    """Delete an expense."""
    service = _get_service(ctx)
    _report_result(service.delete_expense(expense_id), f"Deleted {expense_id}")


# ----------------------------------------------------------------------
# Purchase orders
# ----------------------------------------------------------------------

@cli.group()
def orders():
    """Supplier purchase orders (admin)."""


@orders.command("list")
@click.option("--search", default="")
@click.pass_context
@handle_errors
def orders_list(ctx, search: str):
    """List purchase orders, newest first."""
    service = _get_service(ctx)
    service.require_admin("view purchase orders")
    colours = {"received": "green", "cancelled": "red", "ordered": "yellow"}
    for order in reports.search_purchase_orders(service.purchase_orders, search):
        click.echo(
            f"{order.id}  {order.date.date().isoformat()}  {order.supplier:<25} "
            f"{len(order.items):>3} lines  {_money(order.total_cost):>14}  "
            + click.style(order.status, fg=colours.get(order.status))
        )


@orders.command("create")
@click.option("--supplier", required=True)
@click.option("--item", "items", multiple=True, required=True, help="ITEM_ID:QTY:UNIT_COST")
@click.option("--notes")
@click.pass_context
@handle_errors
def orders_create(ctx, supplier: str, items: Tuple[str, ...], notes: Optional[str]):
    """Create a purchase order."""
    service = _get_service(ctx)
    order_items = []
    for item_id, qty, unit_cost in _parse_pairs(items, 3, "ITEM_ID:QTY:UNIT_COST"):
        item = service.get_item(item_id)
        order_items.append(PurchaseOrderItem(
            item_id=item_id,
            name=item.name if item else item_id,
            quantity=int(qty),
            unit_cost=float(unit_cost)
        ))

    result = service.create_purchase_order(supplier, order_items, notes)
    order = service.get_order(result.entity_id) if result.success else None
    _report_result(result, f"Order {result.entity_id} created: {_money(order.total_cost) if order else ''}")


@orders.command("receive")
@click.argument("order_id")
@click.pass_context
@handle_errors
def orders_receive(ctx, order_id: str):
    """Mark an order received and restock its items."""
    service = _get_service(ctx)
    _report_result(service.update_purchase_order_status(order_id, "received"), f"Order {order_id} received")


@orders.command("cancel")
@click.argument("order_id")
@click.pass_context
@handle_errors
def orders_cancel(ctx, order_id: str):
    """Cancel an order."""
    service = _get_service(ctx)
    _report_result(service.update_purchase_order_status(order_id, "cancelled"), f"Order {order_id} cancelled")


# ----------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------

@cli.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(USER_ROLES), default="cashier", show_default=True)
@handle_errors
def signup(email: str, password: str, role: str):
    """Create an account with the given role."""
    with AuthClient() as auth:
        session = auth.sign_up(email, password, role)
        if session is None:
            click.echo(click.style(f"✓ Account created for {email}. Confirm by email, then sign in.", fg="green"))
            return
        auth.sign_out(session)
    click.echo(click.style(f"✓ Account created for {email} as {session.role}", fg="green", bold=True))


# ----------------------------------------------------------------------
# Diagnostics
# ----------------------------------------------------------------------

@cli.command("test-connection")
def test_connection():
    """Test connectivity to the store and the AI service configuration."""
    click.echo("Testing connections...")
    click.echo()

    try:
        results = check_connections()
    except Exception as e:
        click.echo(click.style(f"✗ Error: {str(e)}", fg="red"), err=True)
        sys.exit(1)

    click.echo("Store:")
    if results["store"]["success"]:
        click.echo(click.style("  ✓ Connected successfully", fg="green"))
    else:
        click.echo(click.style(f"  ✗ Connection failed: {results['store']['error']}", fg="red"))

    click.echo("Gemini:")
    if results["gemini"]["success"]:
        click.echo(click.style("  ✓ API key configured", fg="green"))
    else:
        click.echo(click.style(f"  ⚠ {results['gemini']['error']}", fg="yellow"))

    sys.exit(0 if results["store"]["success"] else 1)


@cli.command()
def config_info():
    """Display current configuration settings."""
    try:
        config = get_config()

        click.echo("Configuration Settings:")
        click.echo("=" * 60)
        click.echo()

        click.echo("Environment:")
        click.echo(f"  Environment:     {config.env.environment}")
        click.echo(f"  Log level:       {config.logging.level}")
        click.echo(f"  Business:        {config.env.business_name}")
        click.echo(f"  Currency:        {config.env.currency_symbol}")
        click.echo()

        click.echo("Store:")
        click.echo(f"  URL:             {config.env.supabase_url}")
        click.echo(f"  Key:             {config.env.supabase_key[:10]}...")
        click.echo(f"  Schema:          {config.store.schema_name}")
        click.echo(f"  Re-sync every:   {config.env.resync_interval_minutes} minutes")
        click.echo()

        click.echo("Gemini:")
        click.echo(f"  Model:           {config.env.gemini_model}")
        click.echo(f"  API key:         {'set' if config.env.google_api_key else 'not set'}")
        click.echo()

    except Exception as e:
        click.echo(click.style(f"✗ Error loading config: {str(e)}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
