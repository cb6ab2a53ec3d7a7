"""Administrative order-status management."""

import logging
from decimal import Decimal

from .models import (
    ALL,
    DeliveryStatus,
    Order,
    OrderSummary,
    PaymentStatus,
    parse_delivery_status,
    parse_payment_status,
)
from .order_store import OrderStore

logger = logging.getLogger(__name__)


class AdminStatusManager:
    """
    Delivery and payment status are two independent axes.

    Any status may be set from any other; there are no transition guards so
    that administrators can correct mistakes.
    """

    def __init__(self, store: OrderStore):
        self.store = store

    def get_order(self, order_id: str) -> Order:
        return self.store.get(order_id)

    def set_delivery_status(
        self,
        order_id: str,
        new_status: "DeliveryStatus | str",
        expected_version: int | None = None,
    ) -> Order:
        status = parse_delivery_status(new_status)
        order = self.store.update_status(
            order_id, delivery_status=status, expected_version=expected_version
        )
        logger.info("Order %s delivery status set to %s", order_id, status.value)
        return order

    def set_payment_status(
        self,
        order_id: str,
        new_status: "PaymentStatus | str",
        expected_version: int | None = None,
    ) -> Order:
        status = parse_payment_status(new_status)
        order = self.store.update_status(
            order_id, payment_status=status, expected_version=expected_version
        )
        logger.info("Order %s payment status set to %s", order_id, status.value)
        return order

    def list_orders(
        self,
        delivery_filter: "DeliveryStatus | str | None" = None,
        payment_filter: "PaymentStatus | str | None" = None,
    ) -> list[Order]:
        """
        List orders matching both filters, in store order.

        A filter of None or "all" matches every order.
        """
        delivery = None if delivery_filter in (None, ALL) else parse_delivery_status(delivery_filter)
        payment = None if payment_filter in (None, ALL) else parse_payment_status(payment_filter)

        return [
            order
            for order in self.store.list_orders()
            if (delivery is None or order.delivery_status is delivery)
            and (payment is None or order.payment_status is payment)
        ]

    def compute_summary(self) -> OrderSummary:
        orders = self.store.list_orders()
        return OrderSummary(
            total_orders=len(orders),
            pending_delivery_count=sum(
                1 for o in orders if o.delivery_status is DeliveryStatus.PENDING
            ),
            delivered_count=sum(
                1 for o in orders if o.delivery_status is DeliveryStatus.DELIVERED
            ),
            paid_count=sum(1 for o in orders if o.payment_status is PaymentStatus.PAID),
            total_revenue=sum(
                (o.total for o in orders if o.payment_status is PaymentStatus.PAID),
                Decimal("0"),
            ),
        )
