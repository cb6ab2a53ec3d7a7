"""Tests for data models and money helpers."""

from decimal import Decimal

import pytest

from storefront.errors import InvalidCustomerInfoError, InvalidLineItemError, InvalidStatusError
from storefront.models import (
    CustomerInfo,
    DeliveryStatus,
    LineItem,
    Order,
    PaymentMethod,
    PaymentStatus,
    parse_delivery_status,
    parse_payment_status,
)
from storefront.utils import from_minor_units, is_valid_session_id, to_decimal, to_minor_units


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, expected",
        [
            ("19.995", 2000),
            ("19.994", 1999),
            ("1599.99", 159999),
            ("0.125", 12),  # half goes to the even cent
            ("0.135", 14),
            ("10", 1000),
        ],
    )
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(Decimal(amount)) == expected

    def test_float_prices_keep_their_decimal_spelling(self):
        assert to_decimal(19.995) == Decimal("19.995")
        assert to_minor_units(to_decimal(19.995)) == 2000

    def test_from_minor_units(self):
        assert from_minor_units(159999) == Decimal("1599.99")

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal("abc")
        with pytest.raises(ValueError):
            to_decimal(True)
        with pytest.raises(ValueError):
            to_decimal("NaN")


class TestLineItem:
    def test_price_is_coerced_to_decimal(self):
        item = LineItem(id="a", name="A", unit_price="9.99", quantity=3)
        assert item.unit_price == Decimal("9.99")
        assert item.line_total == Decimal("29.97")

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidLineItemError) as exc_info:
            LineItem(id="a", name="Widget", unit_price=Decimal("1"), quantity=0)
        assert "Widget" in str(exc_info.value)

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidLineItemError):
            LineItem(id="a", name="Widget", unit_price=Decimal("-1"), quantity=1)

    def test_free_item_allowed(self):
        item = LineItem(id="a", name="Sticker", unit_price=Decimal("0"), quantity=1)
        assert item.line_total == Decimal("0")

    def test_non_integer_quantity_rejected(self):
        with pytest.raises(InvalidLineItemError):
            LineItem(id="a", name="Widget", unit_price=Decimal("1"), quantity=1.5)


class TestCustomerInfo:
    def test_missing_fields_reported(self):
        info = CustomerInfo(name="Ada", email="", phone="  ", address="Somewhere")
        with pytest.raises(InvalidCustomerInfoError) as exc_info:
            info.validate()
        assert exc_info.value.missing == ["email", "phone"]

    def test_complete_info_passes(self, customer):
        customer.validate()


class TestOrder:
    def test_total_is_derived_from_items(self, rtx_4090, rtx_4080, customer):
        order = Order.create([rtx_4090, rtx_4080], customer, PaymentMethod.DEFERRED)
        assert order.total == Decimal("3998.99")

    def test_create_defaults(self, rtx_4090, customer):
        order = Order.create([rtx_4090], customer, PaymentMethod.DEFERRED)
        assert order.id.startswith("sale_")
        assert order.delivery_status is DeliveryStatus.PENDING
        assert order.payment_status is PaymentStatus.PENDING
        assert order.version == 1
        assert order.created_at.endswith("Z")

    def test_ids_are_unique(self, rtx_4090, customer):
        ids = {Order.create([rtx_4090], customer, PaymentMethod.DEFERRED).id for _ in range(50)}
        assert len(ids) == 50

    def test_dict_round_trip_ignores_stored_total(self, rtx_4090, customer):
        order = Order.create([rtx_4090], customer, PaymentMethod.GATEWAY, gateway_session_id="cs_x")
        data = order.to_dict()
        assert data["total"] == "1599.99"

        data["total"] = "1.00"
        restored = Order.from_dict(data)
        assert restored.total == Decimal("1599.99")
        assert restored.gateway_session_id == "cs_x"
        assert restored.items == order.items


class TestStatusParsing:
    def test_valid_values(self):
        assert parse_delivery_status("shipped") is DeliveryStatus.SHIPPED
        assert parse_payment_status("failed") is PaymentStatus.FAILED

    def test_invalid_value(self):
        with pytest.raises(InvalidStatusError) as exc_info:
            parse_delivery_status("lost")
        assert "lost" in str(exc_info.value)
        assert "delivered" in exc_info.value.allowed


class TestSessionIdFormat:
    @pytest.mark.parametrize("value", ["cs_test_a1b2", "cs_live_123"])
    def test_valid(self, value):
        assert is_valid_session_id(value)

    @pytest.mark.parametrize("value", [None, "", "cs_", "pi_123", "session"])
    def test_invalid(self, value):
        assert not is_valid_session_id(value)
