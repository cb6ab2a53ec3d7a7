"""
Hosted checkout gateway.

`PaymentGateway` is the boundary the checkout orchestrator and the session
reconciler talk to. `StripeGateway` implements it on top of Stripe Checkout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import stripe

from .config import DEFAULT_CURRENCY, DEFAULT_GATEWAY_TIMEOUT
from .errors import (
    GatewayConfigurationError,
    GatewayError,
    NetworkError,
    SessionNotFoundError,
)
from .models import CheckoutRedirect, PaymentSession, SessionLineItem

logger = logging.getLogger(__name__)

# Placeholder Stripe substitutes with the real session id on redirect
SESSION_ID_TEMPLATE = "{CHECKOUT_SESSION_ID}"


@dataclass(frozen=True)
class SessionLine:
    """One line of a session-creation request. `unit_amount` is in minor units."""

    name: str
    unit_amount: int
    quantity: int


@dataclass
class SessionRequest:
    """Everything the gateway needs to open a hosted checkout session."""

    lines: list[SessionLine]
    success_url: str
    cancel_url: str
    currency: str = DEFAULT_CURRENCY
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentGateway(Protocol):
    def create_session(self, request: SessionRequest) -> CheckoutRedirect:
        ...

    def retrieve_session(self, session_id: str) -> PaymentSession:
        ...


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_dict(obj: Any) -> dict[str, str]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return {str(k): str(v) for k, v in obj.items()}
    if hasattr(obj, "to_dict"):
        return {str(k): str(v) for k, v in obj.to_dict().items()}
    return {}


def _with_session_id(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}session_id={SESSION_ID_TEMPLATE}"


class StripeGateway:
    """
    Stripe Checkout implementation of PaymentGateway.

    Requests are bounded by a single client timeout and never retried here;
    the caller decides whether to try again.
    """

    def __init__(
        self,
        secret_key: str | None,
        timeout: float = DEFAULT_GATEWAY_TIMEOUT,
    ) -> None:
        if not secret_key:
            raise GatewayConfigurationError("Stripe secret key not configured")
        self.timeout = timeout
        self.client = stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )
        self.sessions = self.client.checkout.sessions

    def _translate(self, exc: stripe.StripeError, session_id: str | None = None) -> Exception:
        """Map a Stripe SDK exception to the storefront error taxonomy."""
        message = exc.user_message or str(exc)
        if isinstance(exc, stripe.APIConnectionError):
            return NetworkError(message)
        if isinstance(exc, stripe.AuthenticationError):
            return GatewayConfigurationError(message)
        if (
            session_id is not None
            and isinstance(exc, stripe.InvalidRequestError)
            and exc.code == "resource_missing"
        ):
            return SessionNotFoundError(session_id)
        return GatewayError(message, code=exc.code)

    def create_session(self, request: SessionRequest) -> CheckoutRedirect:
        """
        Create a Stripe Checkout session.

        Raises:
            GatewayError: If Stripe rejects the request.
            NetworkError: If Stripe cannot be reached in time.
        """
        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {
                            "name": line.name,
                            "description": f"Quantity: {line.quantity}",
                        },
                        "unit_amount": line.unit_amount,
                    },
                    "quantity": line.quantity,
                }
                for line in request.lines
            ],
            "success_url": _with_session_id(request.success_url),
            "cancel_url": _with_session_id(request.cancel_url),
            "metadata": request.metadata,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        try:
            session = self.sessions.create(params=params)
        except stripe.StripeError as e:
            logger.error("Stripe session creation failed: %s", e)
            raise self._translate(e) from e

        logger.info("Created Stripe checkout session %s", session.id)
        return CheckoutRedirect(session_id=session.id, redirect_url=session.url)

    def retrieve_session(self, session_id: str) -> PaymentSession:
        """
        Retrieve a Stripe Checkout session with its line items expanded.

        Raises:
            SessionNotFoundError: If Stripe doesn't know the session.
            GatewayError: For other Stripe-reported errors.
            NetworkError: If Stripe cannot be reached in time.
        """
        try:
            session = self.sessions.retrieve(
                session_id, params={"expand": ["line_items", "payment_intent"]}
            )
        except stripe.StripeError as e:
            logger.error("Stripe session retrieval failed for %s: %s", session_id, e)
            raise self._translate(e, session_id=session_id) from e

        payment_intent = _field(session, "payment_intent")
        if isinstance(payment_intent, str):
            payment_intent_id = payment_intent
        else:
            payment_intent_id = _field(payment_intent, "id")

        line_items = _field(_field(session, "line_items"), "data") or []

        logger.info(
            "Retrieved Stripe session %s (status=%s, payment_status=%s)",
            session_id, _field(session, "status"), _field(session, "payment_status"),
        )
        return PaymentSession(
            id=_field(session, "id") or session_id,
            status=_field(session, "status"),
            payment_status=_field(session, "payment_status"),
            amount_total=_field(session, "amount_total"),
            currency=_field(session, "currency"),
            customer_email=_field(session, "customer_email"),
            payment_intent_id=payment_intent_id,
            line_items=[
                SessionLineItem(
                    description=_field(item, "description"),
                    quantity=_field(item, "quantity"),
                    amount_total=_field(item, "amount_total"),
                )
                for item in line_items
            ],
            metadata=_as_dict(_field(session, "metadata")),
        )
