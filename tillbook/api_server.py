"""FastAPI server exposing the store operations over HTTP.

Each signed-in user gets a ``StoreService`` bound to their session, so
role checks run inside the core. A background scheduler re-syncs every
live snapshot from the store.
"""

import threading
from contextlib import asynccontextmanager
from datetime import date
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, HTTPException, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .api.auth_client import AuthClient
from .models.records import SaleItem, PurchaseOrderItem, UserSession, utc_now
from .models.transaction_result import TransactionResult
from .scheduler import create_background_scheduler
from .services import reports
from .services.insights import InsightGenerator, resolve_time_range
from .services.store_service import StoreService
from .utils.config import get_config
from .utils.logger import get_store_logger
from .utils.exceptions import AuthenticationError, PermissionDeniedError, StoreAPIError

config = get_config()
logger = get_store_logger()


# ------------------------------------------------------------------
# Per-user services
# ------------------------------------------------------------------

class ServiceRegistry:
    """One ``StoreService`` per signed-in user, created on first request."""

    def __init__(self):
        self._services: Dict[str, StoreService] = {}
        self._lock = threading.Lock()

    def _cached(self, session: UserSession) -> Optional[StoreService]:
        service = self._services.get(session.user_id)
        if service is not None and service.session.access_token == session.access_token:
            return service
        return None

    def get(self, session: UserSession) -> StoreService:
        """
        Return the user's service, loading a new one for a new token.

        The load runs outside the registry lock. The previous service is
        replaced, and closed, only once the new one has loaded.
        """
        with self._lock:
            cached = self._cached(session)
        if cached is not None:
            return cached

        service = StoreService(session=session)
        try:
            service.refresh()
        except StoreAPIError:
            service.close()
            raise

        with self._lock:
            winner = self._cached(session)
            if winner is None:
                stale = self._services.get(session.user_id)
                self._services[session.user_id] = service
                winner = service
            else:
                # another request for the same token loaded first
                stale = service

        if stale is not None:
            stale.close()
        return winner

    def refresh_all(self) -> int:
        with self._lock:
            services = list(self._services.values())

        refreshed = 0
        for service in services:
            try:
                service.refresh()
                refreshed += 1
            except StoreAPIError as e:
                logger.warning(f"Re-sync failed for {service.session.email}: {e.message}")
        return refreshed

    def discard(self, session: UserSession):
        with self._lock:
            service = self._services.pop(session.user_id, None)
        if service is not None:
            service.close()

    def close_all(self):
        with self._lock:
            for service in self._services.values():
                service.close()
            self._services.clear()


registry = ServiceRegistry()
_auth_client: Optional[AuthClient] = None


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient()
    return _auth_client


def get_session(authorization: Optional[str] = Header(default=None)) -> UserSession:
    """Resolve the bearer token to a session."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    try:
        return get_auth_client().get_user(token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.message)


def get_service(session: UserSession = Depends(get_session)) -> StoreService:
    return registry.get(session)


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------

class ItemIn(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = ""
    quantity: int = Field(0, ge=0)
    cost_price: float = Field(..., ge=0)
    sales_price: float = Field(..., ge=0)
    low_stock_threshold: int = Field(5, ge=0)


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    sales_price: Optional[float] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)


class StockAdjustment(BaseModel):
    mode: str
    amount: int = Field(..., ge=0)


class SaleLineIn(BaseModel):
    item_id: str
    quantity: int = Field(..., gt=0)
    price_at_sale: Optional[float] = Field(None, ge=0)
    cost_at_sale: Optional[float] = Field(None, ge=0)


class SaleIn(BaseModel):
    items: List[SaleLineIn] = Field(..., min_length=1)


class ExpenseIn(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    expense_date: Optional[date] = Field(None, alias="date")


class OrderLineIn(BaseModel):
    item_id: str
    quantity: int = Field(..., gt=0)
    unit_cost: float = Field(..., ge=0)


class PurchaseOrderIn(BaseModel):
    supplier: str = Field(..., min_length=1)
    items: List[OrderLineIn] = Field(..., min_length=1)
    notes: Optional[str] = None


class StatusIn(BaseModel):
    status: str


class InsightRequest(BaseModel):
    time_range: str = "30days"
    start: Optional[date] = None
    end: Optional[date] = None
    question: Optional[str] = None


def _transaction_response(result: TransactionResult) -> JSONResponse:
    """200 with the result, or 502 carrying the failure notice."""
    return JSONResponse(status_code=200 if result.success else 502, content=result.to_dict())


# ------------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup / shutdown of the application."""
    logger.info("=" * 60)
    logger.info("Tillbook API Server Starting")
    logger.info("=" * 60)
    logger.info(f"Environment:          {config.env.environment}")
    logger.info(f"Port:                 {config.env.port}")
    logger.info(f"Re-sync interval:     {config.env.resync_interval_minutes} min")
    logger.info("=" * 60)

    scheduler = create_background_scheduler(registry.refresh_all)
    scheduler.start()
    logger.info("Re-sync scheduler started")

    yield

    logger.info("Shutting down re-sync scheduler...")
    scheduler.shutdown(wait=True)
    registry.close_all()
    if _auth_client is not None:
        _auth_client.close()
    logger.info("API server shut down.")


app = FastAPI(
    title="Tillbook API",
    description="Inventory, point of sale, purchase orders and reports",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    return {"service": "Tillbook API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "environment": config.env.environment
    }


@app.post("/auth/logout")
def logout(session: UserSession = Depends(get_session)):
    registry.discard(session)
    get_auth_client().sign_out(session)
    return {"status": "signed out"}


# ------------------------------------------------------------------
# Snapshot and reports
# ------------------------------------------------------------------

@app.get("/snapshot")
def read_snapshot(service: StoreService = Depends(get_service)):
    return {
        "inventory": [item.to_dict() for item in service.inventory],
        "sales": [sale.to_dict() for sale in service.sales],
        "expenses": [expense.to_dict() for expense in service.expenses],
        "purchase_orders": [order.to_dict() for order in service.purchase_orders]
    }


@app.post("/refresh")
def refresh(service: StoreService = Depends(get_service)):
    service.refresh()
    return {"status": "refreshed"}


@app.get("/reports/dashboard")
def dashboard(service: StoreService = Depends(get_service)):
    return {
        "metrics": reports.dashboard_metrics(service.inventory, service.sales).to_dict(),
        "last_7_days": [day.to_dict() for day in reports.daily_sales_series(service.sales)]
    }


@app.get("/reports/financial")
def financial(service: StoreService = Depends(get_service)):
    service.require_admin("view financial reports")
    return reports.financial_summary(service.inventory, service.sales, service.expenses).to_dict()


# ------------------------------------------------------------------
# Inventory
# ------------------------------------------------------------------

@app.get("/inventory")
def list_inventory(search: str = "", service: StoreService = Depends(get_service)):
    return [item.to_dict() for item in reports.search_inventory(service.inventory, search)]


@app.get("/inventory/categories")
def list_categories(service: StoreService = Depends(get_service)):
    return reports.inventory_categories(service.inventory)


@app.post("/inventory")
def add_item(body: ItemIn, service: StoreService = Depends(get_service)):
    return _transaction_response(service.add_item(**body.model_dump()))


@app.patch("/inventory/{item_id}")
def update_item(item_id: str, body: ItemUpdate, service: StoreService = Depends(get_service)):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=422, detail="No fields to update")
    return _transaction_response(service.update_item(item_id, **changes))


@app.post("/inventory/{item_id}/adjust")
def adjust_stock(item_id: str, body: StockAdjustment, service: StoreService = Depends(get_service)):
    return _transaction_response(service.adjust_stock(item_id, body.mode, body.amount))


@app.delete("/inventory/{item_id}")
def delete_item(item_id: str, service: StoreService = Depends(get_service)):
    return _transaction_response(service.delete_item(item_id))


# ------------------------------------------------------------------
# Sales
# ------------------------------------------------------------------

@app.get("/sales")
def list_sales(service: StoreService = Depends(get_service)):
    return [sale.to_dict() for sale in service.sales]


@app.post("/sales")
def complete_sale(body: SaleIn, service: StoreService = Depends(get_service)):
    """Prices and costs default to the item's current catalogue values."""
    sale_items = []
    for line in body.items:
        item = service.get_item(line.item_id)
        if item is None and (line.price_at_sale is None or line.cost_at_sale is None):
            raise HTTPException(status_code=422, detail=f"Unknown item {line.item_id}; prices required")
        sale_items.append(SaleItem(
            item_id=line.item_id,
            name=item.name if item else line.item_id,
            quantity=line.quantity,
            price_at_sale=line.price_at_sale if line.price_at_sale is not None else item.sales_price,
            cost_at_sale=line.cost_at_sale if line.cost_at_sale is not None else item.cost_price
        ))
    return _transaction_response(service.complete_sale(sale_items))


# ------------------------------------------------------------------
# Expenses
# ------------------------------------------------------------------

@app.get("/expenses")
def list_expenses(search: str = "", service: StoreService = Depends(get_service)):
    service.require_admin("view expenses")
    return [expense.to_dict() for expense in reports.search_expenses(service.expenses, search)]


@app.post("/expenses")
def add_expense(body: ExpenseIn, service: StoreService = Depends(get_service)):
    return _transaction_response(
        service.add_expense(body.description, body.amount, body.category, body.expense_date)
    )


@app.delete("/expenses/{expense_id}")
def delete_expense(expense_id: str, service: StoreService = Depends(get_service)):
    return _transaction_response(service.delete_expense(expense_id))


# ------------------------------------------------------------------
# Purchase orders
# ------------------------------------------------------------------

@app.get("/purchase-orders")
def list_purchase_orders(search: str = "", service: StoreService = Depends(get_service)):
    service.require_admin("view purchase orders")
    return [order.to_dict() for order in reports.search_purchase_orders(service.purchase_orders, search)]


@app.post("/purchase-orders")
def create_purchase_order(body: PurchaseOrderIn, service: StoreService = Depends(get_service)):
    order_items = []
    for line in body.items:
        item = service.get_item(line.item_id)
        order_items.append(PurchaseOrderItem(
            item_id=line.item_id,
            name=item.name if item else line.item_id,
            quantity=line.quantity,
            unit_cost=line.unit_cost
        ))
    return _transaction_response(service.create_purchase_order(body.supplier, order_items, body.notes))


@app.post("/purchase-orders/{order_id}/status")
def update_purchase_order_status(order_id: str, body: StatusIn, service: StoreService = Depends(get_service)):
    return _transaction_response(service.update_purchase_order_status(order_id, body.status))


# ------------------------------------------------------------------
# Insights
# ------------------------------------------------------------------

@app.post("/insights")
def insights(body: InsightRequest, service: StoreService = Depends(get_service)):
    service.require_admin("request AI insights")
    start, end = resolve_time_range(body.time_range, body.start, body.end)
    text = InsightGenerator().generate(service.inventory, service.sales, start, end, body.question)
    return {"analysis": text, "start": start, "end": end}


# ------------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------------

@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    logger.warning(f"Permission denied: {exc.message}")
    return JSONResponse(status_code=403, content={"error": exc.message, "status_code": 403})


@app.exception_handler(ValueError)
async def validation_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": str(exc), "status_code": 422})


@app.exception_handler(StoreAPIError)
async def store_error_handler(request: Request, exc: StoreAPIError):
    logger.error(f"Store error: {exc.message}")
    return JSONResponse(status_code=502, content={"error": exc.message, "status_code": 502})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if not config.is_production else "An error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tillbook.api_server:app",
        host="0.0.0.0",
        port=config.env.port,
        reload=not config.is_production
    )
