"""In-memory fake store for testing.

Implements the same methods as ``StoreClient`` but keeps rows in dicts.
Failures are injected with ``fail_on``.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

from tillbook.utils.exceptions import StoreAPIError

TABLES = ("inventory", "sales", "expenses", "purchase_orders")


class FakeStore:

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in TABLES}
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.fail_on: Optional[Callable[[str, str, Optional[str]], bool]] = None
        self.closed = False

    def seed(self, table: str, *rows: Dict[str, Any]):
        for row in rows:
            self.tables[table][row["id"]] = copy.deepcopy(row)

    def row(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.tables[table].get(record_id)

    def writes(self) -> List[Tuple[str, str, Optional[str]]]:
        return [call for call in self.calls if call[0] != "list"]

    def _check(self, op: str, table: str, record_id: Optional[str] = None):
        self.calls.append((op, table, record_id))
        if self.fail_on and self.fail_on(op, table, record_id):
            raise StoreAPIError(f"simulated {op} failure on {table}", details={"table": table})

    def list_records(self, table: str, order_by: Optional[str] = None, descending: bool = False):
        self._check("list", table)
        rows = [copy.deepcopy(row) for row in self.tables[table].values()]
        if order_by:
            rows.sort(key=lambda row: row[order_by], reverse=descending)
        return rows

    def insert_record(self, table: str, record: Dict[str, Any]):
        self._check("insert", table, record["id"])
        self.tables[table][record["id"]] = copy.deepcopy(record)

    def update_record(self, table: str, record_id: str, changes: Dict[str, Any]):
        self._check("update", table, record_id)
        if record_id in self.tables[table]:
            self.tables[table][record_id].update(copy.deepcopy(changes))

    def delete_record(self, table: str, record_id: str):
        self._check("delete", table, record_id)
        self.tables[table].pop(record_id, None)

    def close(self):
        self.closed = True


def inventory_row(item_id, quantity, name=None, cost=2.0, price=5.0, threshold=5, category="General"):
    return {
        "id": item_id,
        "name": name or f"Item {item_id}",
        "category": category,
        "quantity": quantity,
        "costPrice": cost,
        "salesPrice": price,
        "lowStockThreshold": threshold,
        "lastUpdated": "2024-01-01T08:00:00+00:00"
    }


def order_row(order_id, items, status="ordered", supplier="Accra Wholesale"):
    return {
        "id": order_id,
        "supplier": supplier,
        "date": "2024-01-02T09:00:00+00:00",
        "status": status,
        "items": items,
        "totalCost": sum(i["quantity"] * i["unitCost"] for i in items),
        "notes": None
    }
