"""Tests for upgrading historical order records."""

import logging
from decimal import Decimal

import pytest

from storefront.errors import InvalidOrderRecordError
from storefront.migrations import is_canonical, load_order, upgrade_record
from storefront.models import DeliveryStatus, Order, PaymentMethod, PaymentStatus

CUSTOMER = {"name": "Grace", "email": "grace@example.com", "phone": "555", "address": "Navy Yard"}


def v0_sale(**overrides):
    record = {
        "id": "sale_v0",
        "date": "2023-11-02T09:30:00.000Z",
        "items": [{"id": "kb", "name": "Keyboard", "price": 49.99, "quantity": 2, "stock": 7}],
        "total": 99.98,
        "customerInfo": CUSTOMER,
        "status": "pending",
    }
    record.update(overrides)
    return record


def v1_sale(**overrides):
    record = v0_sale(id="sale_v1", paymentMethod="stripe", status="paid")
    record.update(overrides)
    return record


class TestV0Records:
    def test_fields_are_renamed(self):
        upgraded = upgrade_record(v0_sale())
        assert is_canonical(upgraded)
        assert upgraded["created_at"] == "2023-11-02T09:30:00.000Z"
        assert upgraded["customer_info"] == CUSTOMER
        assert upgraded["items"][0]["unit_price"] == "49.99"
        assert upgraded["items"][0]["stock_at_order_time"] == 7

    def test_defaults_to_deferred_payment(self):
        order = load_order(v0_sale())
        assert order.payment_method is PaymentMethod.DEFERRED
        assert order.delivery_status is DeliveryStatus.PENDING
        assert order.payment_status is PaymentStatus.PENDING
        assert order.total == Decimal("99.98")

    def test_delivered_status_is_delivery_axis(self):
        order = load_order(v0_sale(status="delivered"))
        assert order.delivery_status is DeliveryStatus.DELIVERED
        assert order.payment_status is PaymentStatus.PENDING

    def test_sidecar_supplies_payment_status(self):
        order = load_order(v0_sale(), {"sale_v0": "paid"})
        assert order.payment_status is PaymentStatus.PAID
        assert order.delivery_status is DeliveryStatus.PENDING


class TestV1Records:
    def test_paid_status_moves_to_payment_axis(self):
        order = load_order(v1_sale())
        assert order.payment_method is PaymentMethod.GATEWAY
        assert order.payment_status is PaymentStatus.PAID
        assert order.delivery_status is DeliveryStatus.PENDING

    def test_explicit_statuses_win(self):
        order = load_order(v1_sale(deliveryStatus="shipped", paymentStatus="failed", status="pending"))
        assert order.delivery_status is DeliveryStatus.SHIPPED
        assert order.payment_status is PaymentStatus.FAILED

    @pytest.mark.parametrize("method", ["cod", "cash_on_delivery", "COD"])
    def test_deferred_aliases(self, method):
        assert load_order(v1_sale(paymentMethod=method)).payment_method is PaymentMethod.DEFERRED


class TestCanonicalRecords:
    def test_passes_through(self, rtx_4090, customer):
        order = Order.create([rtx_4090], customer, PaymentMethod.GATEWAY)
        data = order.to_dict()
        assert upgrade_record(data) == data

    def test_sidecar_overrides_canonical(self, rtx_4090, customer):
        order = Order.create([rtx_4090], customer, PaymentMethod.DEFERRED)
        loaded = load_order(order.to_dict(), {order.id: "paid"})
        assert loaded.payment_status is PaymentStatus.PAID


class TestMalformedRecords:
    @pytest.mark.parametrize(
        "record",
        [
            "not a record",
            {"date": "2024-01-01", "items": []},
            v0_sale(items=None),
            v0_sale(customerInfo=None),
            v0_sale(date=None),
            v0_sale(status="lost"),
            v0_sale(paymentMethod="barter"),
            v0_sale(items=[{"id": "x", "name": "No price", "quantity": 1}]),
            v0_sale(items=[{"id": "x", "name": "Zero", "price": 5, "quantity": 0}]),
        ],
    )
    def test_rejected(self, record):
        with pytest.raises(InvalidOrderRecordError):
            load_order(record)

    def test_total_mismatch_is_logged_not_trusted(self, caplog):
        with caplog.at_level(logging.WARNING, logger="storefront.migrations"):
            order = load_order(v0_sale(total=1))
        assert order.total == Decimal("99.98")
        assert "differs from items" in caplog.text
