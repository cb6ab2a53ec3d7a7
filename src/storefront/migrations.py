"""Upgrade historical order records to the canonical Order shape.

Two record shapes predate the current schema:

- v0 "sale": ``{id, date, items, total, customerInfo, status}`` where
  ``status`` is ``pending|delivered|cancelled`` and payment status lived in a
  separate ``{order_id: payment_status}`` sidecar mapping.
- v1 "sale": the same plus ``paymentMethod`` and a ``status`` that may also
  be ``paid``, with optional ``deliveryStatus``/``paymentStatus`` fields.

Records that cannot be upgraded are rejected with InvalidOrderRecordError.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from .errors import InvalidOrderRecordError, StorefrontError
from .models import DeliveryStatus, Order, PaymentMethod, PaymentStatus
from .utils import to_decimal

logger = logging.getLogger(__name__)

_GATEWAY_METHODS = {"gateway", "stripe", "card", "online"}
_DEFERRED_METHODS = {"deferred", "cod", "cash_on_delivery", "pay_on_delivery", "manual"}


def is_canonical(data: dict[str, Any]) -> bool:
    """Check whether a record already uses the current field names."""
    return "created_at" in data and "payment_method" in data and "customer_info" in data


def _legacy_payment_method(value: Any) -> str:
    if value is None:
        # v0 sales only came from the pay-on-delivery form
        return PaymentMethod.DEFERRED.value
    normalized = str(value).strip().lower()
    if normalized in _GATEWAY_METHODS:
        return PaymentMethod.GATEWAY.value
    if normalized in _DEFERRED_METHODS:
        return PaymentMethod.DEFERRED.value
    raise ValueError(f"unknown payment method '{value}'")


def _legacy_statuses(
    data: dict[str, Any], sidecar_status: str | None
) -> tuple[str, str]:
    """Work out (delivery_status, payment_status) for a legacy sale."""
    delivery = data.get("deliveryStatus")
    payment = data.get("paymentStatus")

    legacy_status = data.get("status")
    if legacy_status == PaymentStatus.PAID.value:
        payment = payment or PaymentStatus.PAID.value
    elif legacy_status is not None and delivery is None:
        delivery = legacy_status

    if sidecar_status is not None:
        payment = sidecar_status

    delivery = delivery or DeliveryStatus.PENDING.value
    payment = payment or PaymentStatus.PENDING.value

    # Validate against the enums here so the error names the record
    DeliveryStatus(delivery)
    PaymentStatus(payment)
    return delivery, payment


def _legacy_item(item: dict[str, Any]) -> dict[str, Any]:
    price = item.get("unit_price", item.get("price"))
    if price is None:
        raise ValueError(f"item {item.get('id') or item.get('name')!r} has no price")
    return {
        "id": str(item.get("id", "")),
        "name": item.get("name", ""),
        "unit_price": str(to_decimal(price)),
        "quantity": item.get("quantity"),
        "stock_at_order_time": item.get("stock_at_order_time", item.get("stock", 0)),
    }


def upgrade_record(
    data: Any, payment_statuses: dict[str, str] | None = None
) -> dict[str, Any]:
    """
    Return a canonical order record for `data`.

    Args:
        data: A stored record in any known shape.
        payment_statuses: Optional legacy sidecar mapping order id to payment status.

    Raises:
        InvalidOrderRecordError: If the record is malformed.
    """
    if not isinstance(data, dict):
        raise InvalidOrderRecordError(None, "record is not an object")

    record_id = data.get("id")
    if not record_id:
        raise InvalidOrderRecordError(None, "missing id")

    sidecar = (payment_statuses or {}).get(record_id)

    if is_canonical(data):
        upgraded = dict(data)
        if sidecar is not None:
            upgraded["payment_status"] = sidecar
        return upgraded

    try:
        items = data["items"]
        if not isinstance(items, list):
            raise ValueError("items is not a list")
        customer = data.get("customerInfo", data.get("customer_info"))
        if not isinstance(customer, dict):
            raise ValueError("missing customer information")
        created_at = data.get("date", data.get("createdAt"))
        if not created_at:
            raise ValueError("missing creation date")

        delivery, payment = _legacy_statuses(data, sidecar)
        upgraded = {
            "id": record_id,
            "created_at": created_at,
            "items": [_legacy_item(i) for i in items],
            "customer_info": {
                "name": customer.get("name", ""),
                "email": customer.get("email", ""),
                "phone": customer.get("phone", ""),
                "address": customer.get("address", ""),
            },
            "payment_method": _legacy_payment_method(data.get("paymentMethod")),
            "delivery_status": delivery,
            "payment_status": payment,
            "version": 1,
            "updated_at": created_at,
        }
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidOrderRecordError(record_id, str(e))

    stored_total = data.get("total")
    if stored_total is not None:
        recomputed = sum(
            (Decimal(i["unit_price"]) * i["quantity"] for i in upgraded["items"]
             if isinstance(i["quantity"], int)),
            Decimal("0"),
        )
        try:
            if to_decimal(stored_total) != recomputed:
                logger.warning(
                    "Order %s: stored total %s differs from items (%s); using items",
                    record_id, stored_total, recomputed,
                )
        except ValueError:
            logger.warning("Order %s: unreadable stored total %r ignored", record_id, stored_total)

    return upgraded


def load_order(data: Any, payment_statuses: dict[str, str] | None = None) -> Order:
    """
    Upgrade a stored record and build the Order.

    Raises:
        InvalidOrderRecordError: If the record is malformed or fails validation.
    """
    upgraded = upgrade_record(data, payment_statuses)
    try:
        return Order.from_dict(upgraded)
    except StorefrontError as e:
        raise InvalidOrderRecordError(upgraded.get("id"), str(e))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidOrderRecordError(upgraded.get("id"), f"{type(e).__name__}: {e}")
