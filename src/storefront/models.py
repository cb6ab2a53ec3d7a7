"""Data models for storefront."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
import uuid

from .errors import InvalidLineItemError, InvalidCustomerInfoError, InvalidStatusError
from .utils import to_decimal

ALL = "all"


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new order ID."""
    return f"sale_{uuid.uuid4().hex}"


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    DEFERRED = "deferred"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def parse_delivery_status(value: "str | DeliveryStatus") -> DeliveryStatus:
    """Parse a delivery status string, raising InvalidStatusError if unknown."""
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise InvalidStatusError("delivery", str(value), [s.value for s in DeliveryStatus])


def parse_payment_status(value: "str | PaymentStatus") -> PaymentStatus:
    """Parse a payment status string, raising InvalidStatusError if unknown."""
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidStatusError("payment", str(value), [s.value for s in PaymentStatus])


def parse_payment_method(value: "str | PaymentMethod") -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise InvalidStatusError("payment method", str(value), [m.value for m in PaymentMethod])


@dataclass(frozen=True)
class LineItem:
    """A product line captured at order time. Prices are major units."""

    id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_at_order_time: int = 0

    def __post_init__(self) -> None:
        try:
            price = to_decimal(self.unit_price)
        except ValueError as e:
            raise InvalidLineItemError(self.name or self.id, str(e))
        if price < 0:
            raise InvalidLineItemError(self.name or self.id, "unit price must not be negative")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidLineItemError(self.name or self.id, "quantity must be an integer")
        if self.quantity <= 0:
            raise InvalidLineItemError(self.name or self.id, "quantity must be positive")
        object.__setattr__(self, "unit_price", price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "stock_at_order_time": self.stock_at_order_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            unit_price=data["unit_price"],
            quantity=data["quantity"],
            stock_at_order_time=data.get("stock_at_order_time", 0),
        )


@dataclass(frozen=True)
class CustomerInfo:
    """Customer contact details collected at checkout."""

    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("name", "email", "phone", "address")
            if not (getattr(self, name) or "").strip()
        ]

    def validate(self) -> None:
        """
        Check that every field is a non-empty string.

        Raises:
            InvalidCustomerInfoError: Naming the missing fields.
        """
        missing = self.missing_fields()
        if missing:
            raise InvalidCustomerInfoError(missing)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomerInfo":
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            address=data.get("address", ""),
        )


@dataclass
class Order:
    """
    A placed order.

    Items and customer info are immutable once created; only the two status
    fields change afterwards. `total` is always derived from `items`.
    """

    id: str
    created_at: str
    items: tuple[LineItem, ...]
    customer_info: CustomerInfo
    payment_method: PaymentMethod
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    gateway_session_id: str | None = None
    version: int = 1
    updated_at: str = field(default_factory=_utc_now)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at,
            "items": [item.to_dict() for item in self.items],
            "total": str(self.total),
            "customer_info": self.customer_info.to_dict(),
            "payment_method": self.payment_method.value,
            "delivery_status": self.delivery_status.value,
            "payment_status": self.payment_status.value,
            "version": self.version,
            "updated_at": self.updated_at,
        }
        if self.gateway_session_id is not None:
            result["gateway_session_id"] = self.gateway_session_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        # "total" is written for readers of the file but never trusted on load
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            items=tuple(LineItem.from_dict(i) for i in data["items"]),
            customer_info=CustomerInfo.from_dict(data["customer_info"]),
            payment_method=parse_payment_method(data["payment_method"]),
            delivery_status=parse_delivery_status(data["delivery_status"]),
            payment_status=parse_payment_status(data["payment_status"]),
            gateway_session_id=data.get("gateway_session_id"),
            version=data.get("version", 1),
            updated_at=data.get("updated_at", data["created_at"]),
        )

    @classmethod
    def create(
        cls,
        items: "tuple[LineItem, ...] | list[LineItem]",
        customer_info: CustomerInfo,
        payment_method: PaymentMethod,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        gateway_session_id: str | None = None,
    ) -> "Order":
        """Create a new order with generated ID and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            created_at=now,
            items=tuple(items),
            customer_info=customer_info,
            payment_method=payment_method,
            delivery_status=DeliveryStatus.PENDING,
            payment_status=payment_status,
            gateway_session_id=gateway_session_id,
            version=1,
            updated_at=now,
        )


@dataclass(frozen=True)
class CheckoutRedirect:
    """Result of starting a hosted checkout: where to send the customer."""

    session_id: str
    redirect_url: str


# Models for gateway sessions


@dataclass
class SessionLineItem:
    """A line item as reported by the gateway (amounts in minor units)."""

    description: str | None
    quantity: int | None
    amount_total: int | None


@dataclass
class PaymentSession:
    """Read-only view of a gateway-owned checkout session."""

    id: str
    status: str | None  # "open" | "complete" | "expired"
    payment_status: str | None  # "paid" | "unpaid" | "no_payment_required"
    amount_total: int | None
    currency: str | None
    customer_email: str | None
    payment_intent_id: str | None = None
    line_items: list[SessionLineItem] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderViewItem:
    name: str
    quantity: int
    price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "price": str(self.price)}


@dataclass(frozen=True)
class OrderView:
    """What the order-success page shows after a hosted checkout."""

    id: str
    amount: Decimal
    currency: str
    status: str
    customer_email: str | None
    items: tuple[OrderViewItem, ...] = ()
    session_status: str | None = None
    placeholder: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status,
            "customer_email": self.customer_email,
            "items": [item.to_dict() for item in self.items],
            "session_status": self.session_status,
            "placeholder": self.placeholder,
        }


@dataclass(frozen=True)
class OrderSummary:
    """Aggregate counters for the admin dashboard."""

    total_orders: int
    pending_delivery_count: int
    delivered_count: int
    paid_count: int
    total_revenue: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_orders": self.total_orders,
            "pending_delivery_count": self.pending_delivery_count,
            "delivered_count": self.delivered_count,
            "paid_count": self.paid_count,
            "total_revenue": str(self.total_revenue),
        }
