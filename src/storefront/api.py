"""FastAPI REST API for the storefront checkout and admin dashboard."""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .admin import AdminStatusManager
from .checkout import CheckoutOrchestrator, snapshot_items
from .config import Settings
from .errors import (
    ConcurrentUpdateError,
    DuplicateOrderError,
    GatewayConfigurationError,
    GatewayError,
    InvalidOrderRecordError,
    InvalidSessionIdError,
    InvalidSchemaVersionError,
    NetworkError,
    OrderNotFoundError,
    SessionNotFoundError,
    StorefrontError,
    ValidationError,
)
from .gateway import PaymentGateway, StripeGateway
from .inventory import INVENTORY_FILE, Inventory
from .models import ALL, CheckoutRedirect, CustomerInfo, LineItem, Order, OrderView
from .order_store import ORDERS_FILE, JsonFileBackend, OrderStore
from .reconciler import SessionReconciler, placeholder_view
from .utils import is_valid_session_id

logger = logging.getLogger(__name__)


# --- Pydantic Schemas ---


class LineItemInput(BaseModel):
    """A cart line as sent by the storefront."""

    id: str = ""
    name: str = ""
    price: Decimal = Field(validation_alias=AliasChoices("price", "unit_price", "unitPrice"))
    quantity: int
    stock: int = Field(default=0, validation_alias=AliasChoices("stock", "stock_at_order_time"))


class CustomerInfoSchema(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


class PaymentSessionRequest(BaseModel):
    """Request body for opening a hosted checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[LineItemInput]
    customer_info: Optional[CustomerInfoSchema] = Field(default=None, alias="customerInfo")
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")


class PaymentSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(serialization_alias="sessionId")
    url: str


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[LineItemInput]
    customer_info: CustomerInfoSchema = Field(alias="customerInfo")
    payment_method: str = Field(
        alias="paymentMethod", description="'gateway' (hosted checkout) or 'deferred' (pay on delivery)"
    )
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")


class LineItemSchema(BaseModel):
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_at_order_time: int


class OrderSchema(BaseModel):
    id: str
    created_at: str
    updated_at: str
    items: list[LineItemSchema]
    total: Decimal
    customer_info: CustomerInfoSchema
    payment_method: str
    delivery_status: str
    payment_status: str
    gateway_session_id: Optional[str] = None
    version: int


class RedirectSchema(BaseModel):
    session_id: str
    redirect_url: str


class CheckoutResponse(BaseModel):
    redirect: Optional[RedirectSchema] = None
    order: Optional[OrderSchema] = None


class OrderViewItemSchema(BaseModel):
    name: str
    quantity: int
    price: Decimal


class OrderViewSchema(BaseModel):
    id: str
    amount: Decimal
    currency: str
    status: str
    customer_email: Optional[str]
    items: list[OrderViewItemSchema]
    session_status: Optional[str] = None
    placeholder: bool = False


class CheckoutSuccessResponse(BaseModel):
    order: OrderViewSchema
    order_id: Optional[str] = None


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class StatusUpdateRequest(BaseModel):
    status: str
    expected_version: Optional[int] = Field(
        default=None, description="Reject the update if the order changed since this version"
    )


class SummaryResponse(BaseModel):
    total_orders: int
    pending_delivery_count: int
    delivered_count: int
    paid_count: int
    total_revenue: Decimal


class InventoryResponse(BaseModel):
    stock: dict[str, int]


class StockUpdateRequest(BaseModel):
    stock: int = Field(..., ge=0)


# --- Helper Functions ---


def get_settings() -> Settings:
    return Settings.from_env()


def get_order_store() -> OrderStore:
    """Get the global OrderStore."""
    return OrderStore(JsonFileBackend(get_settings().data_dir / ORDERS_FILE))


def get_inventory() -> Inventory:
    return Inventory(get_settings().data_dir / INVENTORY_FILE)


def get_gateway() -> PaymentGateway:
    """
    Get the configured payment gateway.

    Raises:
        GatewayConfigurationError: If no Stripe key is configured.
    """
    settings = get_settings()
    return StripeGateway(settings.stripe_secret_key, timeout=settings.gateway_timeout)


def get_orchestrator() -> CheckoutOrchestrator:
    """Build the orchestrator; without a configured gateway only deferred checkout works."""
    try:
        gateway: Optional[PaymentGateway] = get_gateway()
    except GatewayConfigurationError:
        gateway = None
    return CheckoutOrchestrator(
        store=get_order_store(),
        inventory=get_inventory(),
        gateway=gateway,
        settings=get_settings(),
    )


def get_reconciler() -> SessionReconciler:
    orchestrator = get_orchestrator()
    if orchestrator.gateway is None:
        raise GatewayConfigurationError("Stripe secret key not configured")
    return SessionReconciler(orchestrator.gateway, orchestrator, settings=orchestrator.settings)


def get_admin() -> AdminStatusManager:
    return AdminStatusManager(get_order_store())


def to_line_items(items: list[LineItemInput]) -> list[LineItem]:
    return [
        LineItem(
            id=item.id,
            name=item.name,
            unit_price=item.price,
            quantity=item.quantity,
            stock_at_order_time=item.stock,
        )
        for item in items
    ]


def to_customer_info(schema: Optional[CustomerInfoSchema]) -> Optional[CustomerInfo]:
    if schema is None:
        return None
    return CustomerInfo(
        name=schema.name, email=schema.email, phone=schema.phone, address=schema.address
    )


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(**order.to_dict())


def view_to_schema(view: OrderView) -> OrderViewSchema:
    return OrderViewSchema(**view.to_dict())


# --- App ---


app = FastAPI(
    title="storefront API",
    description="Checkout, hosted payment reconciliation and order administration",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes; subclasses inherit their parent's code
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    GatewayError: 400,
    SessionNotFoundError: 400,
    GatewayConfigurationError: 500,
    NetworkError: 503,
    OrderNotFoundError: 404,
    DuplicateOrderError: 409,
    ConcurrentUpdateError: 409,
    InvalidSchemaVersionError: 500,
    InvalidOrderRecordError: 500,
}


def status_code_for(exc: StorefrontError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to appropriate HTTP responses."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as validation failures (400)."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request",
            "error_type": "ValidationError",
            "errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
            ],
        },
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Returns basic service status.
    """
    settings = get_settings()
    try:
        return {
            "status": "ok",
            "order_count": get_order_store().count(),
            "gateway_configured": bool(settings.stripe_secret_key),
        }
    except Exception as e:
        return {
            "status": "error",
            "detail": str(e),
        }


# --- Checkout Endpoints ---


@app.post("/api/create-payment-session", response_model=PaymentSessionResponse, response_model_by_alias=True)
def create_payment_session(request: PaymentSessionRequest):
    """Open a hosted checkout session and return where to redirect the customer."""
    snapshot = snapshot_items(to_line_items(request.items))
    orchestrator = get_orchestrator()
    redirect = orchestrator.create_payment_session(
        snapshot,
        to_customer_info(request.customer_info),
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )
    return PaymentSessionResponse(session_id=redirect.session_id, url=redirect.redirect_url)


@app.post("/api/checkout", response_model=CheckoutResponse)
def checkout(request: CheckoutRequest, response: Response):
    """
    Start checkout.

    'gateway' returns a redirect (200); 'deferred' places the order at once (201).
    """
    orchestrator = get_orchestrator()
    result = orchestrator.initiate_checkout(
        to_line_items(request.items),
        to_customer_info(request.customer_info),
        request.payment_method,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )

    if isinstance(result, CheckoutRedirect):
        return CheckoutResponse(
            redirect=RedirectSchema(session_id=result.session_id, redirect_url=result.redirect_url)
        )

    response.status_code = 201
    return CheckoutResponse(order=order_to_schema(result))


@app.get("/api/checkout/session", response_model=OrderViewSchema)
def get_checkout_session(session_id: Optional[str] = Query(default=None)):
    """Look up a hosted checkout session and return the order view."""
    if not is_valid_session_id(session_id):
        raise InvalidSessionIdError(session_id)
    reconciler = SessionReconciler(get_gateway(), settings=get_settings())
    return view_to_schema(reconciler.resolve_session(session_id))


@app.get("/api/checkout/success", response_model=CheckoutSuccessResponse)
def checkout_success(session_id: Optional[str] = Query(default=None)):
    """
    Landing endpoint after a hosted checkout.

    Always answers 200: if the session can't be confirmed a placeholder order
    is returned instead of an error.
    """
    try:
        reconciler = get_reconciler()
    except StorefrontError as e:
        logger.warning("Checkout success without a usable gateway: %s", e)
        return CheckoutSuccessResponse(
            order=view_to_schema(placeholder_view(session_id, get_settings().currency))
        )

    view, order = reconciler.confirm_session_or_placeholder(session_id)
    return CheckoutSuccessResponse(order=view_to_schema(view), order_id=order.id if order else None)


# --- Admin Endpoints ---


@app.get("/api/admin/orders", response_model=OrderListResponse)
def list_orders(
    delivery_status: str = Query(default=ALL),
    payment_status: str = Query(default=ALL),
):
    """List orders, filtered by delivery and payment status."""
    orders = get_admin().list_orders(delivery_status, payment_status)
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


@app.get("/api/admin/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    return order_to_schema(get_admin().get_order(order_id))


@app.patch("/api/admin/orders/{order_id}/delivery-status", response_model=OrderSchema)
def update_delivery_status(order_id: str, request: StatusUpdateRequest):
    order = get_admin().set_delivery_status(
        order_id, request.status, expected_version=request.expected_version
    )
    return order_to_schema(order)


@app.patch("/api/admin/orders/{order_id}/payment-status", response_model=OrderSchema)
def update_payment_status(order_id: str, request: StatusUpdateRequest):
    order = get_admin().set_payment_status(
        order_id, request.status, expected_version=request.expected_version
    )
    return order_to_schema(order)


@app.get("/api/admin/summary", response_model=SummaryResponse)
def get_summary():
    """Dashboard counters, recomputed on every call."""
    return SummaryResponse(**get_admin().compute_summary().to_dict())


# --- Inventory Endpoints ---


@app.get("/api/inventory", response_model=InventoryResponse)
def list_inventory():
    return InventoryResponse(stock=get_inventory().list_stock())


@app.put("/api/inventory/{product_id}", response_model=InventoryResponse)
def set_inventory(product_id: str, request: StockUpdateRequest):
    inventory = get_inventory()
    inventory.set_stock(product_id, request.stock)
    return InventoryResponse(stock=inventory.list_stock())
