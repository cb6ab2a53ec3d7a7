"""Pytest fixtures for storefront tests."""

import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

from storefront.admin import AdminStatusManager
from storefront.checkout import CheckoutOrchestrator
from storefront.config import Settings
from storefront.errors import SessionNotFoundError
from storefront.inventory import Inventory
from storefront.models import (
    CheckoutRedirect,
    CustomerInfo,
    LineItem,
    PaymentSession,
    SessionLineItem,
)
from storefront.order_store import MemoryBackend, OrderStore
from storefront.reconciler import SessionReconciler


class FakeGateway:
    """In-memory stand-in for the hosted checkout gateway."""

    def __init__(self):
        self.requests = []
        self.sessions: dict[str, PaymentSession] = {}
        self.create_calls = 0
        self.retrieve_calls = 0
        self.create_error: Exception | None = None
        self.retrieve_error: Exception | None = None

    def create_session(self, request):
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        self.requests.append(request)

        session_id = f"cs_test_{len(self.requests)}"
        self.sessions[session_id] = PaymentSession(
            id=session_id,
            status="open",
            payment_status="unpaid",
            amount_total=sum(line.unit_amount * line.quantity for line in request.lines),
            currency=request.currency,
            customer_email=request.customer_email,
            line_items=[
                SessionLineItem(
                    description=line.name,
                    quantity=line.quantity,
                    amount_total=line.unit_amount * line.quantity,
                )
                for line in request.lines
            ],
            metadata=dict(request.metadata),
        )
        return CheckoutRedirect(
            session_id=session_id,
            redirect_url=f"https://checkout.stripe.test/pay/{session_id}",
        )

    def retrieve_session(self, session_id):
        self.retrieve_calls += 1
        if self.retrieve_error is not None:
            raise self.retrieve_error
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.sessions[session_id]

    def complete(self, session_id, payment_status="paid", payment_intent_id="pi_test_123"):
        """Simulate the customer finishing payment on the hosted page."""
        session = self.sessions[session_id]
        session.status = "complete"
        session.payment_status = payment_status
        session.payment_intent_id = payment_intent_id


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir):
    return Settings(data_dir=temp_dir, stripe_secret_key=None)


@pytest.fixture
def store():
    return OrderStore(MemoryBackend())


@pytest.fixture
def inventory():
    return Inventory(stock={"gpu-4090": 5, "gpu-4080": 10})


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(store, inventory, gateway, settings):
    return CheckoutOrchestrator(store=store, inventory=inventory, gateway=gateway, settings=settings)


@pytest.fixture
def reconciler(gateway, orchestrator, settings):
    return SessionReconciler(gateway, orchestrator, settings=settings)


@pytest.fixture
def admin(store):
    return AdminStatusManager(store)


@pytest.fixture
def customer():
    return CustomerInfo(
        name="Ada Lovelace",
        email="ada@example.com",
        phone="+44 20 7946 0000",
        address="12 Analytical Row, London",
    )


@pytest.fixture
def rtx_4090():
    return LineItem(
        id="gpu-4090",
        name="RTX 4090",
        unit_price=Decimal("1599.99"),
        quantity=1,
        stock_at_order_time=5,
    )


@pytest.fixture
def rtx_4080():
    return LineItem(
        id="gpu-4080",
        name="RTX 4080",
        unit_price=Decimal("1199.50"),
        quantity=2,
        stock_at_order_time=10,
    )
