"""Supabase (PostgREST) client for the four retail collections."""

from typing import List, Dict, Any, Optional
import httpx

from .base_client import BaseClient
from ..utils.config import get_config
from ..utils.logger import get_api_logger
from ..utils.exceptions import StoreAPIError, RateLimitError

REST_PREFIX = "/rest/v1"


class StoreClient(BaseClient):
    """Row-level access to the hosted database.

    Every collection is keyed by an opaque ``id`` column. Failures of any
    kind are raised as ``StoreAPIError`` so callers handle a single
    failure signal.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize the store client from environment configuration.

        Args:
            access_token: Signed-in user's JWT. Falls back to the project
                key, which row-level security treats as anonymous.
            transport: Optional httpx transport (used by tests)
        """
        config = get_config()
        url = config.env.supabase_url
        key = config.env.supabase_key

        if not url.startswith("https://") and not url.startswith("http://"):
            url = f"https://{url}"

        schema = config.store.schema_name
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {access_token or key}",
            "Accept-Profile": schema,
            "Content-Profile": schema
        }

        super().__init__(base_url=url, headers=headers, transport=transport)
        self.logger = get_api_logger()
        self.tables = config.store.tables

    # ------------------------------------------------------------------
    # Low-level helper
    # ------------------------------------------------------------------

    def _rest(self, method: str, table: str, **kwargs) -> httpx.Response:
        """
        Issue a PostgREST request against ``table``.

        Raises:
            StoreAPIError: On transport failure or a non-2xx answer.
        """
        endpoint = f"{REST_PREFIX}/{table}"
        try:
            response = self._make_request_with_retry(method, endpoint, **kwargs)
        except RateLimitError:
            raise
        except httpx.HTTPError as e:
            raise StoreAPIError(
                f"{method} {table} failed: {str(e)}",
                details={"table": table, "error": str(e)}
            )

        if response.status_code >= 400:
            raise StoreAPIError(
                f"{method} {table} failed (HTTP {response.status_code}): {self._error_message(response)}",
                details={"table": table, "status_code": response.status_code, "response": response.text}
            )
        return response

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    def list_records(
        self,
        table: str,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Fetch every row of ``table``.

        Args:
            table: Collection name
            order_by: Optional column to sort on server-side
            descending: Sort direction for ``order_by``
        """
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        response = self._rest("GET", table, params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise StoreAPIError(
                f"GET {table} returned invalid JSON: {str(e)}",
                details={"table": table, "response": response.text[:200]}
            )
        self.logger.debug(f"Fetched {len(rows)} rows from {table}")
        return rows

    def insert_record(self, table: str, record: Dict[str, Any]) -> None:
        """Insert one row."""
        self._rest("POST", table, json=[record], headers={"Prefer": "return=minimal"})
        self.logger.debug(f"Inserted {record.get('id')} into {table}")

    def update_record(self, table: str, record_id: str, changes: Dict[str, Any]) -> None:
        """Apply a partial update to the row with ``record_id``."""
        self._rest(
            "PATCH",
            table,
            params={"id": f"eq.{record_id}"},
            json=changes,
            headers={"Prefer": "return=minimal"}
        )
        self.logger.debug(f"Updated {record_id} in {table}: {sorted(changes)}")

    def delete_record(self, table: str, record_id: str) -> None:
        """Delete the row with ``record_id``."""
        self._rest("DELETE", table, params={"id": f"eq.{record_id}"})
        self.logger.debug(f"Deleted {record_id} from {table}")

    def ping(self) -> bool:
        """Check that the inventory table is reachable."""
        self._rest("GET", self.tables.inventory, params={"select": "id", "limit": "1"})
        return True
