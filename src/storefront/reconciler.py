"""Reconcile hosted checkout sessions after the customer returns."""

from __future__ import annotations

import json
import logging
from decimal import Decimal

from .cart import CartSnapshot
from .checkout import CheckoutOrchestrator, manifest_from_metadata
from .config import Settings
from .errors import GatewayConfigurationError, InvalidSessionIdError, StorefrontError
from .gateway import PaymentGateway
from .models import (
    CustomerInfo,
    LineItem,
    Order,
    OrderView,
    OrderViewItem,
    PaymentMethod,
    PaymentSession,
    PaymentStatus,
)
from .utils import epoch_millis, from_minor_units, is_valid_session_id

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL = "customer@example.com"
UNKNOWN_ITEM_NAME = "Unknown Item"

# Gateway payment statuses that mean the money has been collected
_SETTLED = {"paid", "no_payment_required"}


def session_to_view(session: PaymentSession, default_currency: str) -> OrderView:
    """Map a gateway session onto the order-success view."""
    items = []
    for line in session.line_items:
        quantity = line.quantity or 1
        line_total = from_minor_units(line.amount_total or 0)
        items.append(
            OrderViewItem(
                name=line.description or UNKNOWN_ITEM_NAME,
                quantity=quantity,
                price=line_total / quantity,
            )
        )

    return OrderView(
        id=session.payment_intent_id or session.id,
        amount=from_minor_units(session.amount_total or 0),
        currency=session.currency or default_currency,
        status=session.payment_status or "unknown",
        customer_email=session.customer_email,
        items=tuple(items),
        session_status=session.status,
    )


def placeholder_view(session_id: str | None, currency: str) -> OrderView:
    """A best-effort view for when the real session can't be read."""
    return OrderView(
        id=session_id or f"order_{epoch_millis()}",
        amount=Decimal("0"),
        currency=currency,
        status="paid",
        customer_email=PLACEHOLDER_EMAIL,
        items=(),
        placeholder=True,
    )


def items_from_session(session: PaymentSession) -> list[LineItem]:
    """
    Rebuild order line items for a session.

    The manifest written at session creation is preferred; the gateway's own
    line items are the fallback when it is missing or unreadable.
    """
    raw = manifest_from_metadata(session.metadata)
    if raw:
        try:
            manifest = json.loads(raw)
            return [
                LineItem(
                    id=str(entry.get("id") or f"{session.id}:{index}"),
                    name=entry["name"],
                    unit_price=entry["price"],
                    quantity=int(entry["quantity"]),
                )
                for index, entry in enumerate(manifest)
            ]
        except (ValueError, KeyError, TypeError, StorefrontError) as e:
            logger.warning("Session %s has an unreadable item manifest: %s", session.id, e)

    items = []
    for index, line in enumerate(session.line_items):
        quantity = line.quantity or 1
        items.append(
            LineItem(
                id=f"{session.id}:{index}",
                name=line.description or UNKNOWN_ITEM_NAME,
                unit_price=from_minor_units(line.amount_total or 0) / quantity,
                quantity=quantity,
            )
        )
    return items


class SessionReconciler:
    """Looks up a hosted checkout session and records the resulting order."""

    def __init__(
        self,
        gateway: PaymentGateway,
        orchestrator: CheckoutOrchestrator | None = None,
        settings: Settings | None = None,
    ):
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.settings = settings or (orchestrator.settings if orchestrator else Settings.from_env())

    def _retrieve(self, session_id: str | None) -> PaymentSession:
        if not is_valid_session_id(session_id):
            raise InvalidSessionIdError(session_id)
        return self.gateway.retrieve_session(session_id)

    def resolve_session(self, session_id: str | None) -> OrderView:
        """
        Build the order view for a hosted checkout session.

        Raises:
            InvalidSessionIdError: Without contacting the gateway, if the id is malformed.
            SessionNotFoundError: If the gateway doesn't know the session.
            GatewayError: For other gateway-reported errors.
            NetworkError: If the gateway cannot be reached in time.
        """
        session = self._retrieve(session_id)
        return session_to_view(session, self.settings.currency)

    def resolve_session_or_placeholder(self, session_id: str | None) -> OrderView:
        """Like resolve_session, but never fails: a placeholder view stands in."""
        try:
            return self.resolve_session(session_id)
        except StorefrontError as e:
            logger.warning("Showing placeholder order for session %s: %s", session_id, e)
            return placeholder_view(session_id, self.settings.currency)

    def confirm_session(self, session_id: str | None) -> tuple[OrderView, Order | None]:
        """
        Resolve a session and, once it is complete, record its order.

        Calling this again for the same session returns the order recorded the
        first time instead of creating another.

        Returns:
            The view and the order, or None while the session is not complete.
        """
        session = self._retrieve(session_id)
        view = session_to_view(session, self.settings.currency)

        if session.status != "complete" or self.orchestrator is None:
            return view, None

        existing = self.orchestrator.store.find_by_session(session.id)
        if existing is not None:
            return view, existing

        return view, self._materialize(session)

    def confirm_session_or_placeholder(
        self, session_id: str | None
    ) -> tuple[OrderView, Order | None]:
        """Like confirm_session, but never fails: a placeholder view stands in."""
        try:
            return self.confirm_session(session_id)
        except StorefrontError as e:
            logger.warning("Could not confirm session %s, showing placeholder: %s", session_id, e)
            return placeholder_view(session_id, self.settings.currency), None

    def _materialize(self, session: PaymentSession) -> Order:
        if self.orchestrator is None:
            raise GatewayConfigurationError("no checkout orchestrator to record the order")

        customer = CustomerInfo(
            name=session.metadata.get("customer_name", ""),
            email=session.customer_email or "",
            phone=session.metadata.get("customer_phone", ""),
            address=session.metadata.get("customer_address", ""),
        )
        payment_status = (
            PaymentStatus.PAID if session.payment_status in _SETTLED else PaymentStatus.PENDING
        )

        # Payment is already collected; stock may go negative
        order = self.orchestrator.place_order(
            CartSnapshot.of(items_from_session(session)),
            customer,
            PaymentMethod.GATEWAY,
            payment_status=payment_status,
            gateway_session_id=session.id,
            enforce_stock=False,
        )
        logger.info("Materialized order %s from session %s", order.id, session.id)
        return order
