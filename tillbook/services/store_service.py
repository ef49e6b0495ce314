"""Optimistic store transactions over an in-memory snapshot.

Every mutating operation runs in two phases:
  1. Stage the local delta on a copy of the snapshot and install it, so
     readers see the change immediately.
  2. Commit the remote writes in order. On the first ``StoreAPIError`` the
     remaining writes are abandoned, a notice is delivered and the whole
     snapshot is replaced by a fresh read of the store. Writes already
     issued are not rolled back.
"""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from ..api.store_client import StoreClient
from ..models.records import (
    InventoryItem,
    SaleItem,
    SaleRecord,
    ExpenseRecord,
    PurchaseOrder,
    PurchaseOrderItem,
    UserSession,
    TERMINAL_STATUSES,
    utc_now,
)
from ..models.transaction_result import TransactionResult
from ..utils.config import get_config
from ..utils.logger import get_transaction_logger, get_store_logger, get_error_logger
from ..utils.exceptions import StoreAPIError, PermissionDeniedError

ADJUSTMENT_MODES = ("add", "remove", "set")

# Python attribute -> store column for partial item updates
ITEM_COLUMNS = {
    "name": "name",
    "category": "category",
    "quantity": "quantity",
    "cost_price": "costPrice",
    "sales_price": "salesPrice",
    "low_stock_threshold": "lowStockThreshold",
}


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Snapshot:
    """In-memory copy of the four collections.

    Sales, expenses and purchase orders are held newest first.
    """

    inventory: List[InventoryItem] = field(default_factory=list)
    sales: List[SaleRecord] = field(default_factory=list)
    expenses: List[ExpenseRecord] = field(default_factory=list)
    purchase_orders: List[PurchaseOrder] = field(default_factory=list)

    def copy(self) -> "Snapshot":
        """Copy the lists; records are replaced, never mutated, when staged."""
        return Snapshot(
            inventory=list(self.inventory),
            sales=list(self.sales),
            expenses=list(self.expenses),
            purchase_orders=list(self.purchase_orders)
        )

    def find_item(self, item_id: str) -> Optional[InventoryItem]:
        return next((item for item in self.inventory if item.id == item_id), None)

    def find_order(self, order_id: str) -> Optional[PurchaseOrder]:
        return next((order for order in self.purchase_orders if order.id == order_id), None)

    def replace_item(self, updated: InventoryItem):
        self.inventory = [updated if item.id == updated.id else item for item in self.inventory]

    def replace_order(self, updated: PurchaseOrder):
        self.purchase_orders = [
            updated if order.id == updated.id else order for order in self.purchase_orders
        ]


class StoreService:
    """
    Owns the local snapshot and runs every inventory-affecting transaction.

    Transactions on one instance are serialised by a lock. When a session
    is attached, admin-only operations are refused for cashiers before any
    state changes.
    """

    def __init__(
        self,
        store_client: Optional[StoreClient] = None,
        session: Optional[UserSession] = None,
        notifier: Optional[Callable[[str], None]] = None
    ):
        self.config = get_config()
        self.logger = get_transaction_logger()
        self.store_logger = get_store_logger()
        self.error_logger = get_error_logger()
        self.tables = self.config.store.tables
        self.session = session
        self.store = store_client or StoreClient(
            access_token=session.access_token if session else None
        )
        self.notifier = notifier or self._log_notice
        self.snapshot = Snapshot()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def inventory(self) -> List[InventoryItem]:
        return self.snapshot.inventory

    @property
    def sales(self) -> List[SaleRecord]:
        return self.snapshot.sales

    @property
    def expenses(self) -> List[ExpenseRecord]:
        return self.snapshot.expenses

    @property
    def purchase_orders(self) -> List[PurchaseOrder]:
        return self.snapshot.purchase_orders

    def get_item(self, item_id: str) -> Optional[InventoryItem]:
        return self.snapshot.find_item(item_id)

    def get_order(self, order_id: str) -> Optional[PurchaseOrder]:
        return self.snapshot.find_order(order_id)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def require_admin(self, operation: str):
        """
        Refuse ``operation`` for a signed-in cashier.

        Raises:
            PermissionDeniedError: If the attached session is not an admin
        """
        if self.session is not None and not self.session.is_admin:
            raise PermissionDeniedError(
                f"Only admins may {operation}",
                details={"role": self.session.role, "email": self.session.email}
            )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self) -> Snapshot:
        """
        Replace the snapshot with a fresh read of every collection.

        A failed purchase-order read keeps the current orders list; any
        other read failure propagates.

        Raises:
            StoreAPIError: If inventory, sales or expenses cannot be read
                or contain a malformed row
        """
        with self._lock:
            inventory = self._load(self.tables.inventory, InventoryItem)
            sales = self._load(self.tables.sales, SaleRecord, order_by="timestamp")
            expenses = self._load(self.tables.expenses, ExpenseRecord, order_by="date")
            try:
                orders = self._load(self.tables.purchase_orders, PurchaseOrder, order_by="date")
            except StoreAPIError as e:
                self.store_logger.warning(f"Could not fetch purchase orders: {e.message}")
                orders = list(self.snapshot.purchase_orders)

            self.snapshot = Snapshot(
                inventory=inventory,
                sales=sales,
                expenses=expenses,
                purchase_orders=orders
            )
            self.store_logger.info(
                f"Snapshot refreshed: {len(inventory)} items, {len(sales)} sales, "
                f"{len(expenses)} expenses, {len(orders)} purchase orders"
            )
            return self.snapshot

    def _load(self, table: str, record_type, order_by: Optional[str] = None) -> list:
        """Read ``table`` (newest first when ordered) and parse its rows."""
        rows = self.store.list_records(table, order_by=order_by, descending=order_by is not None)
        try:
            return [record_type.from_dict(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreAPIError(
                f"Malformed row in {table}: {str(e)}",
                details={"table": table, "error": str(e)}
            )

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _log_notice(self, message: str):
        self.logger.warning(f"NOTICE: {message}")

    def _apply(
        self,
        result: TransactionResult,
        staged: Snapshot,
        commit: Callable[[TransactionResult], None],
        failure_notice: str
    ) -> TransactionResult:
        """Install ``staged``, run ``commit`` and reconcile on failure."""
        previous = self.snapshot
        self.snapshot = staged

        try:
            commit(result)
        except StoreAPIError as e:
            self.error_logger.error(
                f"{result.operation} failed after {result.writes_committed} writes: {e.message}",
                extra={"details": e.details}
            )
            result.add_error(result.entity_id or "SYSTEM", type(e).__name__, e.message, e.details)
            result.notice = failure_notice
            self.notifier(failure_notice)
            self._reconcile(previous, result)

        return result.finalize()

    def _reconcile(self, previous: Snapshot, result: TransactionResult):
        """Discard the optimistic snapshot in favour of the store's state."""
        try:
            self.refresh()
            result.reconciled = True
            self.logger.info(f"{result.operation}: local state resynchronised from store")
        except StoreAPIError as e:
            self.snapshot = previous
            self.error_logger.error(
                f"{result.operation}: resync failed, restored pre-transaction state: {e.message}"
            )

    def _skip(self, result: TransactionResult, reason: str) -> TransactionResult:
        result.skipped_count += 1
        self.logger.info(f"{result.operation}: {reason}")
        return result.finalize()

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def complete_sale(self, items: Sequence[SaleItem]) -> TransactionResult:
        """
        Record a sale and decrement stock for every line.

        Stock sufficiency is not checked, so quantities may go negative.
        Lines referencing unknown items still count towards the totals but
        change no stock.

        Remote writes: the sale insert, then one quantity update per
        distinct item id, computed from the pre-transaction quantity.

        Raises:
            ValueError: If ``items`` is empty
        """
        if not items:
            raise ValueError("A sale needs at least one item")

        with self._lock:
            now = utc_now()
            sale = SaleRecord.build(_new_id(), list(items), timestamp=now)
            result = TransactionResult(operation="complete_sale", entity_id=sale.id)

            before = self.snapshot
            sold: Dict[str, int] = OrderedDict()
            for line in sale.items:
                sold[line.item_id] = sold.get(line.item_id, 0) + line.quantity

            # item id -> pre-transaction quantity minus everything sold
            remaining: Dict[str, int] = OrderedDict()
            staged = before.copy()
            staged.sales.insert(0, sale)
            for item_id, quantity in sold.items():
                original = before.find_item(item_id)
                if original is None:
                    result.skipped_count += 1
                    continue
                remaining[item_id] = original.quantity - quantity
                staged.replace_item(replace(original, quantity=remaining[item_id], last_updated=now))

            def commit(res: TransactionResult):
                self.store.insert_record(self.tables.sales, sale.to_dict())
                res.writes_committed += 1

                for item_id, quantity in remaining.items():
                    self.store.update_record(
                        self.tables.inventory,
                        item_id,
                        {"quantity": quantity, "lastUpdated": now.isoformat()}
                    )
                    res.writes_committed += 1

            self.logger.info(
                f"Sale {sale.id}: {len(sale.items)} lines, total {sale.total_amount:.2f}, "
                f"profit {sale.total_profit:.2f}"
            )
            return self._apply(
                result, staged, commit,
                "Error saving sale to database. Please check connection."
            )

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        supplier: str,
        items: Sequence[PurchaseOrderItem],
        notes: Optional[str] = None
    ) -> TransactionResult:
        """
        Place a supplier order. Stock is untouched until it is received.

        Raises:
            ValueError: If the supplier is blank or there are no items
            PermissionDeniedError: For a cashier session
        """
        self.require_admin("create purchase orders")
        if not supplier or not supplier.strip():
            raise ValueError("Please provide a supplier name")
        if not items:
            raise ValueError("A purchase order needs at least one item")

        with self._lock:
            order = PurchaseOrder.build(_new_id(), supplier.strip(), list(items), notes=notes or None)
            result = TransactionResult(operation="create_purchase_order", entity_id=order.id)

            staged = self.snapshot.copy()
            staged.purchase_orders.insert(0, order)

            def commit(res: TransactionResult):
                self.store.insert_record(self.tables.purchase_orders, order.to_dict())
                res.writes_committed += 1

            self.logger.info(
                f"Purchase order {order.id} for {order.supplier}: "
                f"{len(order.items)} lines, total {order.total_cost:.2f}"
            )
            return self._apply(result, staged, commit, "Failed to save Purchase Order.")

    def update_purchase_order_status(self, order_id: str, new_status: str) -> TransactionResult:
        """
        Move an order to ``received`` or ``cancelled``.

        The status is written unconditionally. Stock is restocked only
        when the order moves to ``received`` from another status, so a
        repeated receipt does not count twice.

        Raises:
            ValueError: If ``new_status`` is not a terminal status
            PermissionDeniedError: For a cashier session
        """
        self.require_admin("update purchase orders")
        if new_status not in TERMINAL_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(TERMINAL_STATUSES)}")

        with self._lock:
            result = TransactionResult(operation="update_purchase_order_status", entity_id=order_id)

            order = self.snapshot.find_order(order_id)
            if order is None:
                return self._skip(result, f"order {order_id} not found locally")

            previous_status = order.status
            if order.is_terminal and previous_status != new_status:
                self.logger.warning(
                    f"Order {order_id} moving from terminal status {previous_status} to {new_status}"
                )

            staged = self.snapshot.copy()
            staged.replace_order(replace(order, status=new_status))

            restock: Dict[str, int] = OrderedDict()
            now = utc_now()
            if new_status == "received" and previous_status != "received":
                for line in order.items:
                    current = staged.find_item(line.item_id)
                    if current is None:
                        result.skipped_count += 1
                        continue
                    updated = replace(current, quantity=current.quantity + line.quantity, last_updated=now)
                    staged.replace_item(updated)
                    restock[line.item_id] = updated.quantity

            def commit(res: TransactionResult):
                self.store.update_record(self.tables.purchase_orders, order_id, {"status": new_status})
                res.writes_committed += 1

                for item_id, quantity in restock.items():
                    self.store.update_record(
                        self.tables.inventory,
                        item_id,
                        {"quantity": quantity, "lastUpdated": now.isoformat()}
                    )
                    res.writes_committed += 1

            self.logger.info(
                f"Purchase order {order_id}: {previous_status} -> {new_status}, "
                f"{len(restock)} items restocked"
            )
            return self._apply(result, staged, commit, "Failed to update order status.")

    # ------------------------------------------------------------------
    # Inventory items
    # ------------------------------------------------------------------

    def add_item(
        self,
        name: str,
        category: str,
        quantity: int,
        cost_price: float,
        sales_price: float,
        low_stock_threshold: int = 5
    ) -> TransactionResult:
        """Add a product to the catalogue."""
        self.require_admin("add inventory items")
        if quantity < 0:
            raise ValueError("Quantity cannot be negative")

        with self._lock:
            item = InventoryItem(
                id=_new_id(),
                name=name,
                category=category,
                quantity=quantity,
                cost_price=cost_price,
                sales_price=sales_price,
                low_stock_threshold=low_stock_threshold
            )
            result = TransactionResult(operation="add_item", entity_id=item.id)

            staged = self.snapshot.copy()
            staged.inventory.append(item)

            def commit(res: TransactionResult):
                self.store.insert_record(self.tables.inventory, item.to_dict())
                res.writes_committed += 1

            self.logger.info(f"Adding item {item.name} ({item.id}) with {item.quantity} in stock")
            return self._apply(result, staged, commit, "Failed to save item to database.")

    def update_item(self, item_id: str, **changes) -> TransactionResult:
        """
        Change item fields; ``last_updated`` is always refreshed.

        Raises:
            ValueError: On an unknown field name or a negative quantity
        """
        self.require_admin("edit inventory items")
        unknown = set(changes) - set(ITEM_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown item fields: {', '.join(sorted(unknown))}")
        if changes.get("quantity") is not None and changes["quantity"] < 0:
            raise ValueError("Quantity cannot be negative")

        with self._lock:
            result = TransactionResult(operation="update_item", entity_id=item_id)

            current = self.snapshot.find_item(item_id)
            if current is None:
                return self._skip(result, f"item {item_id} not found locally")

            now = utc_now()
            updated = replace(current, last_updated=now, **changes)
            staged = self.snapshot.copy()
            staged.replace_item(updated)

            remote_changes = {ITEM_COLUMNS[key]: value for key, value in changes.items()}
            remote_changes["lastUpdated"] = now.isoformat()

            def commit(res: TransactionResult):
                self.store.update_record(self.tables.inventory, item_id, remote_changes)
                res.writes_committed += 1

            self.logger.info(f"Updating item {item_id}: {sorted(changes)}")
            return self._apply(result, staged, commit, "Failed to update item in database.")

    def adjust_stock(self, item_id: str, mode: str, amount: int) -> TransactionResult:
        """
        Manual stock correction.

        ``add`` and ``remove`` shift the quantity by ``amount``; ``remove``
        never goes below zero. ``set`` replaces it.
        """
        self.require_admin("adjust stock")
        if mode not in ADJUSTMENT_MODES:
            raise ValueError(f"Adjustment mode must be one of {', '.join(ADJUSTMENT_MODES)}")
        if amount < 0:
            raise ValueError("Adjustment amount cannot be negative")

        with self._lock:
            current = self.snapshot.find_item(item_id)
            if current is None:
                return self._skip(
                    TransactionResult(operation="adjust_stock", entity_id=item_id),
                    f"item {item_id} not found locally"
                )

            if mode == "add":
                quantity = current.quantity + amount
            elif mode == "remove":
                quantity = max(0, current.quantity - amount)
            else:
                quantity = amount

            self.logger.info(f"Stock adjustment for {current.name}: {mode} {amount} -> {quantity}")
            return self.update_item(item_id, quantity=quantity)

    def delete_item(self, item_id: str) -> TransactionResult:
        """Remove a product. Historical sales keep its id and name."""
        self.require_admin("delete inventory items")

        with self._lock:
            result = TransactionResult(operation="delete_item", entity_id=item_id)
            if self.snapshot.find_item(item_id) is None:
                return self._skip(result, f"item {item_id} not found locally")

            staged = self.snapshot.copy()
            staged.inventory = [item for item in staged.inventory if item.id != item_id]

            def commit(res: TransactionResult):
                self.store.delete_record(self.tables.inventory, item_id)
                res.writes_committed += 1

            self.logger.info(f"Deleting item {item_id}")
            return self._apply(result, staged, commit, "Failed to delete item from database.")

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def add_expense(
        self,
        description: str,
        amount: float,
        category: str,
        expense_date: Optional[date] = None
    ) -> TransactionResult:
        """Log an operating expense (dated today unless given)."""
        self.require_admin("record expenses")

        with self._lock:
            expense = ExpenseRecord(
                id=_new_id(),
                description=description,
                amount=amount,
                category=category,
                date=expense_date or date.today()
            )
            result = TransactionResult(operation="add_expense", entity_id=expense.id)

            staged = self.snapshot.copy()
            staged.expenses.insert(0, expense)

            def commit(res: TransactionResult):
                self.store.insert_record(self.tables.expenses, expense.to_dict())
                res.writes_committed += 1

            self.logger.info(f"Expense {expense.id}: {expense.category} {expense.amount:.2f}")
            return self._apply(result, staged, commit, "Failed to save expense.")

    def delete_expense(self, expense_id: str) -> TransactionResult:
        self.require_admin("delete expenses")

        with self._lock:
            result = TransactionResult(operation="delete_expense", entity_id=expense_id)
            if not any(expense.id == expense_id for expense in self.snapshot.expenses):
                return self._skip(result, f"expense {expense_id} not found locally")

            staged = self.snapshot.copy()
            staged.expenses = [expense for expense in staged.expenses if expense.id != expense_id]

            def commit(res: TransactionResult):
                self.store.delete_record(self.tables.expenses, expense_id)
                res.writes_committed += 1

            self.logger.info(f"Deleting expense {expense_id}")
            return self._apply(result, staged, commit, "Failed to delete expense.")

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
