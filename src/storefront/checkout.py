"""Checkout orchestration: hosted-payment redirect or direct order placement."""

from __future__ import annotations

import json
import logging
from typing import Iterable

from .cart import Cart, CartSnapshot
from .config import Settings
from .errors import (
    EmptyCartError,
    GatewayConfigurationError,
    InvalidLineItemError,
)
from .gateway import PaymentGateway, SessionLine, SessionRequest
from .inventory import Inventory
from .models import (
    CheckoutRedirect,
    CustomerInfo,
    LineItem,
    Order,
    PaymentMethod,
    PaymentStatus,
    parse_payment_method,
)
from .order_store import OrderStore
from .utils import to_minor_units

logger = logging.getLogger(__name__)

MANIFEST_METADATA_KEY = "order_items"

# Stripe caps metadata at 50 keys of up to 500 characters each
METADATA_VALUE_LIMIT = 500
MANIFEST_MAX_CHUNKS = 40


def snapshot_items(cart_items: Iterable[LineItem]) -> CartSnapshot:
    """
    Validate checkout items and freeze them.

    Raises:
        EmptyCartError: If there are no items.
        InvalidLineItemError: Naming the first item without a name or a positive price.
    """
    snapshot = CartSnapshot.of(cart_items)
    if not snapshot.items:
        raise EmptyCartError()
    for item in snapshot:
        if not (item.name or "").strip():
            raise InvalidLineItemError(item.id or item, "name is required")
        if item.unit_price <= 0:
            raise InvalidLineItemError(item.name, "unit price must be positive")
    return snapshot


def _manifest_metadata(snapshot: CartSnapshot) -> dict[str, str]:
    """
    Encode the item manifest into metadata values.

    A manifest that fits one value is stored under `order_items`; a longer one
    is cut into `order_items_0`, `order_items_1`, ... pieces. If even that
    would exceed the gateway's key budget the manifest is left out and the
    reconciler falls back to the gateway's own line items.
    """
    encoded = json.dumps(snapshot.manifest(), separators=(",", ":"))
    if len(encoded) <= METADATA_VALUE_LIMIT:
        return {MANIFEST_METADATA_KEY: encoded}

    chunks = [
        encoded[start:start + METADATA_VALUE_LIMIT]
        for start in range(0, len(encoded), METADATA_VALUE_LIMIT)
    ]
    if len(chunks) > MANIFEST_MAX_CHUNKS:
        logger.warning(
            "Item manifest of %d characters is too large for session metadata; omitting it",
            len(encoded),
        )
        return {}
    return {f"{MANIFEST_METADATA_KEY}_{index}": chunk for index, chunk in enumerate(chunks)}


def manifest_from_metadata(metadata: dict[str, str]) -> str | None:
    """Reassemble the manifest JSON written by `customer_metadata`, if present."""
    if MANIFEST_METADATA_KEY in metadata:
        return metadata[MANIFEST_METADATA_KEY]

    chunks = []
    while f"{MANIFEST_METADATA_KEY}_{len(chunks)}" in metadata:
        chunks.append(metadata[f"{MANIFEST_METADATA_KEY}_{len(chunks)}"])
    return "".join(chunks) or None


def customer_metadata(customer_info: CustomerInfo | None, snapshot: CartSnapshot) -> dict[str, str]:
    """Opaque metadata attached to a hosted checkout session."""
    customer = customer_info or CustomerInfo()
    metadata = {
        "customer_name": (customer.name or "")[:METADATA_VALUE_LIMIT],
        "customer_phone": (customer.phone or "")[:METADATA_VALUE_LIMIT],
        "customer_address": (customer.address or "")[:METADATA_VALUE_LIMIT],
    }
    metadata.update(_manifest_metadata(snapshot))
    return metadata


class CheckoutOrchestrator:
    """Turns a cart into either a hosted checkout redirect or a placed order."""

    def __init__(
        self,
        store: OrderStore,
        inventory: Inventory,
        gateway: PaymentGateway | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.inventory = inventory
        self.gateway = gateway
        self.settings = settings or Settings.from_env()

    def initiate_checkout(
        self,
        cart_items: Iterable[LineItem],
        customer_info: CustomerInfo,
        payment_method: PaymentMethod | str,
        cart: Cart | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutRedirect | Order:
        """
        Start checkout for `cart_items`.

        For the gateway method a hosted checkout session is opened and the
        redirect is returned; no order exists until the customer comes back.
        For the deferred method the order is placed immediately.

        Raises:
            ValidationError: For an empty cart, bad items, bad customer info
                or an unknown payment method.
            GatewayError: If the gateway rejects the session.
            NetworkError: If the gateway cannot be reached in time.
        """
        method = parse_payment_method(payment_method)
        snapshot = snapshot_items(cart_items)
        customer_info.validate()

        if method is PaymentMethod.GATEWAY:
            return self.create_payment_session(
                snapshot, customer_info, success_url=success_url, cancel_url=cancel_url
            )

        return self.place_order(snapshot, customer_info, PaymentMethod.DEFERRED, cart=cart)

    def build_session_request(
        self,
        snapshot: CartSnapshot,
        customer_info: CustomerInfo | None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> SessionRequest:
        return SessionRequest(
            lines=[
                SessionLine(
                    name=item.name,
                    unit_amount=to_minor_units(item.unit_price),
                    quantity=item.quantity,
                )
                for item in snapshot
            ],
            success_url=success_url or self.settings.success_url,
            cancel_url=cancel_url or self.settings.cancel_url,
            currency=self.settings.currency,
            customer_email=(customer_info.email or None) if customer_info else None,
            metadata=customer_metadata(customer_info, snapshot),
        )

    def create_payment_session(
        self,
        snapshot: CartSnapshot,
        customer_info: CustomerInfo | None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutRedirect:
        """Open a hosted checkout session for an already validated snapshot."""
        if self.gateway is None:
            raise GatewayConfigurationError("no payment gateway configured")

        request = self.build_session_request(snapshot, customer_info, success_url, cancel_url)
        redirect = self.gateway.create_session(request)
        logger.info(
            "Checkout session %s opened for %d item(s), total %s",
            redirect.session_id, len(snapshot), snapshot.total,
        )
        return redirect

    def place_order(
        self,
        snapshot: CartSnapshot,
        customer_info: CustomerInfo,
        payment_method: PaymentMethod,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        gateway_session_id: str | None = None,
        cart: Cart | None = None,
        enforce_stock: bool | None = None,
    ) -> Order:
        """
        Reserve stock, persist the order and clear the cart as one unit.

        If persisting fails the stock reservation is released and the cart is
        left as it was. Stock is only enforced when `enforce_stock` (or, if
        that is None, the `enforce_stock` setting) is true; otherwise tracked
        stock may go negative.
        """
        order = Order.create(
            items=snapshot.items,
            customer_info=customer_info,
            payment_method=payment_method,
            payment_status=payment_status,
            gateway_session_id=gateway_session_id,
        )

        reservation = self.inventory.reserve(
            snapshot.items,
            enforce=self.settings.enforce_stock if enforce_stock is None else enforce_stock,
        )
        try:
            self.store.append(order)
        except Exception:
            logger.exception("Failed to store order %s; releasing stock", order.id)
            self.inventory.release(reservation)
            raise

        if cart is not None:
            cart.clear()

        logger.info(
            "Placed %s order %s for %s (total %s)",
            payment_method.value, order.id, customer_info.email or "<no email>", order.total,
        )
        return order
