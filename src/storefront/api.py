"""FastAPI REST API for the storefront back office."""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .analytics import ANALYTICS_RETENTION_DAYS
from .checkout import Storefront, open_storefront
from .errors import (
    CartItemNotFoundError,
    EmptyCartError,
    InsufficientStockError,
    InvalidOrderItemError,
    InvalidPaymentMethodError,
    InvalidProductError,
    InvalidStatusError,
    OrderNotFoundError,
    ProductNotFoundError,
    SessionNotFoundError,
    StorageCorruptedError,
    StorefrontError,
    UnknownCouponError,
)
from .logging import add_context, clear_context, configure_logging
from .models import ORDER_STATUSES, PAYMENT_METHODS, DeviceInfo, Order, PaymentMethod, Product
from .orders import ORDER_RETENTION_DAYS
from .pricing import COUPONS
from .storage import JsonFileStore

logger = structlog.get_logger(__name__)


# --- Pydantic Schemas ---


class OrderItemSchema(BaseModel):
    product_id: str | int
    price: float
    quantity: int
    name: str = ""


class TimelineEntrySchema(BaseModel):
    status: str
    timestamp: str
    message: str


class OrderSchema(BaseModel):
    id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: str = ""
    customer_phone: str
    customer_address: str = ""
    items: list[OrderItemSchema]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    payment_method: str
    notes: str = ""
    status: str
    created_at: str
    updated_at: str
    timeline: list[TimelineEntrySchema]
    coupon_code: Optional[str] = None
    coupon_description: Optional[str] = None


class OrderCreateRequest(BaseModel):
    """Request body for creating an order."""

    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    customer_id: Optional[str] = None
    customer_email: str = ""
    items: list[OrderItemSchema] = Field(default_factory=list)
    shipping: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    payment_method: str = Field(
        default=PaymentMethod.WHATSAPP.value,
        description=f"One of: {', '.join(PAYMENT_METHODS)}",
    )
    notes: str = ""


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description=f"One of: {', '.join(ORDER_STATUSES)}")
    message: str = ""


class CouponRequest(BaseModel):
    code: str


class NoteRequest(BaseModel):
    text: str = Field(..., min_length=1)


class CustomerTotalsSchema(BaseModel):
    count: int
    total: float


class OrderStatisticsResponse(BaseModel):
    total_orders: int
    total_revenue: float
    average_order_value: float
    orders_by_status: dict[str, int]
    orders_by_payment_method: dict[str, int]
    top_customers: dict[str, CustomerTotalsSchema]
    recent_orders: list[OrderSchema]


class CleanupOrdersResponse(BaseModel):
    removed: int
    retention_days: int


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Analytics Schemas ---


class EventCreateRequest(BaseModel):
    type: str = Field(..., min_length=1, description="Event type, e.g. 'addToCart'")
    data: dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None


class EventSchema(BaseModel):
    id: str
    type: str
    data: dict[str, Any]
    timestamp: str
    url: str
    user_agent: str


class PageViewCreateRequest(BaseModel):
    page_name: str = Field(..., min_length=1)
    page_url: Optional[str] = None
    referrer: Optional[str] = None


class PageViewSchema(BaseModel):
    id: str
    page_name: str
    page_url: str
    timestamp: str
    referrer: str
    user_agent: str


class DeviceInfoSchema(BaseModel):
    user_agent: str = ""
    language: str = ""
    platform: str = ""
    screen_resolution: str = ""
    timezone: str = ""


class SessionStartRequest(BaseModel):
    user_id: Optional[str] = None
    device_info: Optional[DeviceInfoSchema] = None


class SessionStartResponse(BaseModel):
    session_id: str


class VisitStatisticsSchema(BaseModel):
    total_page_views: int
    unique_pages: int
    total_sessions: int
    average_session_duration: int
    top_pages: dict[str, int]
    referrers: dict[str, int]


class EventStatisticsSchema(BaseModel):
    total_events: int
    events_by_type: dict[str, int]
    events_by_date: dict[str, int]
    top_events: list[tuple[str, int]]


class UserBehaviorSchema(BaseModel):
    most_viewed_products: dict[str, int]
    most_searched_terms: dict[str, int]
    abandoned_carts: int
    completed_purchases: int


class ConversionRateResponse(BaseModel):
    conversion_rate: float


class ReportSummarySchema(BaseModel):
    total_events: int
    total_page_views: int
    total_sessions: int
    data_retention_days: int


class AnalyticsReportSchema(BaseModel):
    generated_at: str
    visit_statistics: VisitStatisticsSchema
    event_statistics: EventStatisticsSchema
    user_behavior: UserBehaviorSchema
    conversion_rate: float
    summary: ReportSummarySchema


class CleanupAnalyticsResponse(BaseModel):
    events_deleted: int
    page_views_deleted: int
    sessions_deleted: int


# --- Product Schemas ---


class ProductSchema(BaseModel):
    id: str | int
    name: str
    category: str
    price: float
    stock: int
    rating: float
    images: list[str]
    merchant_id: Optional[str] = None


class ProductListResponse(BaseModel):
    products: list[ProductSchema]
    count: int


class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    rating: float = Field(default=4.5, ge=0, le=5)
    images: list[str] = Field(default_factory=list)
    merchant_id: Optional[str] = None


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)
    images: Optional[list[str]] = None


# --- Cart Schemas ---


class CartItemSchema(BaseModel):
    product_id: str | int
    name: str
    price: float
    quantity: int


class CartResponse(BaseModel):
    items: list[CartItemSchema]
    item_count: int
    total: float


class CartAddRequest(BaseModel):
    product_id: str | int
    quantity: int = Field(default=1, ge=1)


class CartUpdateRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; 0 or less removes the line")


class CheckoutRequest(BaseModel):
    customer_name: str
    customer_phone: str = ""
    customer_address: str = ""
    customer_id: Optional[str] = None
    payment_method: str = PaymentMethod.WHATSAPP.value
    notes: str = ""


class DashboardResponse(BaseModel):
    orders: OrderStatisticsResponse
    analytics: AnalyticsReportSchema


# --- Helper Functions ---


def get_storefront() -> Storefront:
    """Build a Storefront over the file store; each request sees the latest saved data."""
    return open_storefront(JsonFileStore())


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(**order.to_dict())


def product_to_schema(product: Product) -> ProductSchema:
    return ProductSchema(**product.to_dict())


def cart_to_response(storefront: Storefront) -> CartResponse:
    cart = storefront.cart
    return CartResponse(
        items=[CartItemSchema(**i.to_dict()) for i in cart.items],
        item_count=cart.item_count,
        total=cart.total,
    )


def _require_order(storefront: Storefront, order_id: str) -> Order:
    order = storefront.ledger.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _require_product(storefront: Storefront, product_id: str) -> Product:
    product = storefront.catalog.get_product(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


# --- FastAPI App ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    lifespan=lifespan,
    title="storefront API",
    description="REST API for products, orders, analytics and the shopping cart",
    version=__version__,
)

# CORS for local development
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


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    """Tag every log line emitted while handling a request with its method and path."""
    clear_context()
    add_context(method=request.method, path=request.url.path)
    try:
        return await call_next(request)
    finally:
        clear_context()


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    OrderNotFoundError: 404,
    SessionNotFoundError: 404,
    ProductNotFoundError: 404,
    CartItemNotFoundError: 404,
    InvalidProductError: 400,
    InvalidOrderItemError: 400,
    InvalidPaymentMethodError: 400,
    InvalidStatusError: 400,
    UnknownCouponError: 400,
    EmptyCartError: 409,
    InsufficientStockError: 409,
    StorageCorruptedError: 500,
}


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error("Request failed", error_type=type(exc).__name__, detail=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check(storefront: Storefront = Depends(get_storefront)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "order_count": len(storefront.ledger.orders),
    }


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    min_total: Optional[float] = Query(None),
    max_total: Optional[float] = Query(None),
    search: Optional[str] = Query(None, description="Matches order ID, customer name or phone"),
    storefront: Storefront = Depends(get_storefront),
):
    """List orders. All supplied filters must match."""
    orders = storefront.ledger.search_orders(
        {
            "status": status,
            "customer_id": customer_id,
            "payment_method": payment_method,
            "min_total": min_total,
            "max_total": max_total,
            "search": search,
        }
    )
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
    )


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(request: OrderCreateRequest, storefront: Storefront = Depends(get_storefront)):
    """Create a pending order."""
    order = storefront.ledger.create_order(request.model_dump())
    return order_to_schema(order)


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str, storefront: Storefront = Depends(get_storefront)):
    return order_to_schema(_require_order(storefront, order_id))


@app.delete("/api/orders/{order_id}", response_model=OrderSchema)
def delete_order(order_id: str, storefront: Storefront = Depends(get_storefront)):
    """Delete an order permanently."""
    order = _require_order(storefront, order_id)
    storefront.ledger.delete_order(order_id)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    storefront: Storefront = Depends(get_storefront),
):
    """Move an order to a new status and append it to the timeline."""
    order = _require_order(storefront, order_id)
    if not storefront.ledger.update_order_status(order_id, request.status, request.message):
        raise InvalidStatusError(request.status, ORDER_STATUSES)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/coupon", response_model=OrderSchema)
def apply_coupon(
    order_id: str,
    request: CouponRequest,
    storefront: Storefront = Depends(get_storefront),
):
    order = _require_order(storefront, order_id)
    if not storefront.ledger.apply_coupon(order_id, request.code):
        raise UnknownCouponError(request.code)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/notes", response_model=OrderSchema)
def add_order_note(
    order_id: str,
    request: NoteRequest,
    storefront: Storefront = Depends(get_storefront),
):
    order = _require_order(storefront, order_id)
    storefront.ledger.add_note(order_id, request.text)
    return order_to_schema(order)


@app.get("/api/customers/{customer_id}/orders", response_model=OrderListResponse)
def list_customer_orders(customer_id: str, storefront: Storefront = Depends(get_storefront)):
    orders = storefront.ledger.get_customer_orders(customer_id)
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
    )


@app.get("/api/statistics/orders", response_model=OrderStatisticsResponse)
def order_statistics(storefront: Storefront = Depends(get_storefront)):
    return storefront.ledger.get_order_statistics().to_dict()


@app.get("/api/coupons")
def list_coupons():
    """List the coupon codes the ledger accepts."""
    return {
        "coupons": [
            {"code": c.code, "discount": c.discount, "description": c.description}
            for c in COUPONS.values()
        ]
    }


# --- Analytics Endpoints ---


@app.post("/api/analytics/events", response_model=EventSchema, status_code=201)
def track_event(request: EventCreateRequest, storefront: Storefront = Depends(get_storefront)):
    event = storefront.analytics.track_event(request.type, request.data, url=request.url)
    return EventSchema(**event.to_dict())


@app.post("/api/analytics/page-views", response_model=PageViewSchema, status_code=201)
def track_page_view(
    request: PageViewCreateRequest,
    storefront: Storefront = Depends(get_storefront),
):
    page_view = storefront.analytics.track_page_view(
        request.page_name, page_url=request.page_url, referrer=request.referrer
    )
    return PageViewSchema(**page_view.to_dict())


@app.post("/api/analytics/sessions", response_model=SessionStartResponse, status_code=201)
def start_session(request: SessionStartRequest, storefront: Storefront = Depends(get_storefront)):
    device_info = None
    if request.device_info is not None:
        device_info = DeviceInfo(**request.device_info.model_dump())
    session_id = storefront.analytics.start_session(request.user_id, device_info=device_info)
    return SessionStartResponse(session_id=session_id)


@app.post("/api/analytics/sessions/{session_id}/end")
def end_session(session_id: str, storefront: Storefront = Depends(get_storefront)):
    """Close a session. Ending an already closed session changes nothing."""
    if not any(s.id == session_id for s in storefront.analytics.sessions):
        raise SessionNotFoundError(session_id)
    closed = storefront.analytics.end_session(session_id)
    return {"session_id": session_id, "closed": closed}


@app.get("/api/analytics/visits", response_model=VisitStatisticsSchema)
def visit_statistics(storefront: Storefront = Depends(get_storefront)):
    return storefront.analytics.get_visit_statistics().to_dict()


@app.get("/api/analytics/events", response_model=EventStatisticsSchema)
def event_statistics(storefront: Storefront = Depends(get_storefront)):
    return storefront.analytics.get_event_statistics().to_dict()


@app.get("/api/analytics/conversion-rate", response_model=ConversionRateResponse)
def conversion_rate(storefront: Storefront = Depends(get_storefront)):
    return ConversionRateResponse(conversion_rate=storefront.analytics.get_conversion_rate())


@app.get("/api/analytics/behavior", response_model=UserBehaviorSchema)
def user_behavior(storefront: Storefront = Depends(get_storefront)):
    return storefront.analytics.get_user_behavior().to_dict()


@app.get("/api/analytics/report", response_model=AnalyticsReportSchema)
def analytics_report(storefront: Storefront = Depends(get_storefront)):
    return storefront.analytics.generate_comprehensive_report().to_dict()


# --- Maintenance Endpoints ---


@app.post("/api/maintenance/cleanup-orders", response_model=CleanupOrdersResponse)
def cleanup_orders(
    retention_days: int = Query(default=ORDER_RETENTION_DAYS, ge=0),
    storefront: Storefront = Depends(get_storefront),
):
    removed = storefront.ledger.cleanup_old_orders(retention_days)
    return CleanupOrdersResponse(removed=removed, retention_days=retention_days)


@app.post("/api/maintenance/cleanup-analytics", response_model=CleanupAnalyticsResponse)
def cleanup_analytics(
    retention_days: int = Query(default=ANALYTICS_RETENTION_DAYS, ge=0),
    storefront: Storefront = Depends(get_storefront),
):
    return storefront.analytics.cleanup_old_data(retention_days).to_dict()


# --- Product Endpoints ---


@app.get("/api/products", response_model=ProductListResponse)
def list_products(
    category: Optional[str] = Query(None, description="Category, or 'all'"),
    search: Optional[str] = Query(None, description="Match product names"),
    include_out_of_stock: bool = False,
    storefront: Storefront = Depends(get_storefront),
):
    """List in-stock products. A search term is recorded as a search event."""
    if search:
        products = storefront.search(search, category=category)
    elif include_out_of_stock:
        products = storefront.catalog.list_products(category=category, include_out_of_stock=True)
    else:
        products = storefront.browse(category)
    return ProductListResponse(
        products=[product_to_schema(p) for p in products],
        count=len(products),
    )


@app.get("/api/products/categories")
def list_categories(storefront: Storefront = Depends(get_storefront)):
    return {"categories": storefront.catalog.categories()}


@app.post("/api/products", response_model=ProductSchema, status_code=201)
def create_product(request: ProductCreateRequest, storefront: Storefront = Depends(get_storefront)):
    product = storefront.catalog.add_product(**request.model_dump())
    return product_to_schema(product)


@app.get("/api/products/{product_id}", response_model=ProductSchema)
def get_product(product_id: str, storefront: Storefront = Depends(get_storefront)):
    """Show a product and record a viewProduct event."""
    return product_to_schema(storefront.view_product(product_id))


@app.patch("/api/products/{product_id}", response_model=ProductSchema)
def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    storefront: Storefront = Depends(get_storefront),
):
    product = storefront.catalog.update_product(product_id, **request.model_dump())
    if product is None:
        raise ProductNotFoundError(product_id)
    return product_to_schema(product)


@app.delete("/api/products/{product_id}", response_model=ProductSchema)
def delete_product(product_id: str, storefront: Storefront = Depends(get_storefront)):
    product = _require_product(storefront, product_id)
    storefront.catalog.delete_product(product.id)
    return product_to_schema(product)


# --- Cart Endpoints ---


@app.get("/api/cart", response_model=CartResponse)
def get_cart(storefront: Storefront = Depends(get_storefront)):
    return cart_to_response(storefront)


@app.post("/api/cart/items", response_model=CartResponse, status_code=201)
def add_cart_item(request: CartAddRequest, storefront: Storefront = Depends(get_storefront)):
    """Add a catalog product to the cart and record an addToCart event."""
    storefront.add_to_cart(request.product_id, quantity=request.quantity)
    return cart_to_response(storefront)


@app.patch("/api/cart/items/{product_id}", response_model=CartResponse)
def update_cart_item(
    product_id: str,
    request: CartUpdateRequest,
    storefront: Storefront = Depends(get_storefront),
):
    if not storefront.update_cart_item(product_id, request.quantity):
        raise CartItemNotFoundError(product_id)
    return cart_to_response(storefront)


@app.delete("/api/cart/items/{product_id}", response_model=CartResponse)
def remove_cart_item(product_id: str, storefront: Storefront = Depends(get_storefront)):
    if not storefront.remove_from_cart(product_id):
        raise CartItemNotFoundError(product_id)
    return cart_to_response(storefront)


@app.post("/api/cart/checkout", response_model=OrderSchema, status_code=201)
def checkout(request: CheckoutRequest, storefront: Storefront = Depends(get_storefront)):
    """Convert the cart into an order and empty it."""
    order = storefront.checkout(**request.model_dump())
    return order_to_schema(order)


# --- Dashboard ---


@app.get("/api/dashboard", response_model=DashboardResponse)
def dashboard(storefront: Storefront = Depends(get_storefront)):
    """Order statistics and the analytics report in one response."""
    return storefront.dashboard_overview()
