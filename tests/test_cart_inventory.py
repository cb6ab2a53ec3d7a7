"""Tests for Cart, CartSnapshot and Inventory."""

import json
from decimal import Decimal

import pytest

from storefront.cart import Cart, CartSnapshot
from storefront.errors import InsufficientStockError, InvalidSchemaVersionError
from storefront.inventory import INVENTORY_FILE, Inventory
from storefront.models import LineItem


def item(product_id, quantity=1, price="10.00"):
    return LineItem(id=product_id, name=product_id.title(), unit_price=Decimal(price), quantity=quantity)


class TestCart:
    def test_add_merges_quantity(self):
        cart = Cart()
        cart.add(item("pen", 1))
        cart.add(item("pen", 2))
        assert len(cart) == 1
        assert cart.items[0].quantity == 3
        assert cart.total == Decimal("30.00")

    def test_update_quantity(self):
        cart = Cart([item("pen"), item("ink")])
        cart.update_quantity("pen", 4)
        assert cart.items[0].quantity == 4

    def test_zero_quantity_removes(self):
        cart = Cart([item("pen"), item("ink")])
        cart.update_quantity("pen", 0)
        assert [i.id for i in cart.items] == ["ink"]

    def test_update_unknown_product(self):
        with pytest.raises(KeyError):
            Cart().update_quantity("pen", 1)

    def test_remove_and_clear(self):
        cart = Cart([item("pen"), item("ink")])
        cart.remove("pen")
        cart.remove("missing")
        assert len(cart) == 1
        cart.clear()
        assert cart.is_empty()

    def test_snapshot_is_independent_of_cart(self):
        cart = Cart([item("pen", 2)])
        snapshot = cart.snapshot()
        cart.clear()
        assert len(snapshot) == 1
        assert snapshot.total == Decimal("20.00")


class TestCartSnapshot:
    def test_manifest(self):
        snapshot = CartSnapshot.of([item("pen", 2, "1.50"), item("ink", 1, "7")])
        assert snapshot.manifest() == [
            {"id": "pen", "name": "Pen", "quantity": 2, "price": "1.50"},
            {"id": "ink", "name": "Ink", "quantity": 1, "price": "7"},
        ]
        assert snapshot.total == Decimal("10.00")


class TestInventoryMemory:
    def test_reserve_and_release(self):
        inventory = Inventory(stock={"pen": 5, "ink": 2})
        reservation = inventory.reserve([item("pen", 3), item("ink", 1)])
        assert inventory.list_stock() == {"pen": 2, "ink": 1}

        inventory.release(reservation)
        assert inventory.list_stock() == {"pen": 5, "ink": 2}

    def test_release_adds_back_after_other_changes(self):
        inventory = Inventory(stock={"pen": 5})
        reservation = inventory.reserve([item("pen", 2)])
        inventory.set_stock("pen", 10)
        inventory.release(reservation)
        assert inventory.get_stock("pen") == 12

    def test_same_product_on_two_lines_is_summed(self):
        inventory = Inventory(stock={"pen": 3})
        with pytest.raises(InsufficientStockError) as exc_info:
            inventory.reserve([item("pen", 2), item("pen", 2)])
        assert exc_info.value.requested == 4
        assert inventory.get_stock("pen") == 3

    def test_nothing_changes_when_one_line_fails(self):
        inventory = Inventory(stock={"pen": 5, "ink": 0})
        with pytest.raises(InsufficientStockError):
            inventory.reserve([item("pen", 1), item("ink", 1)])
        assert inventory.list_stock() == {"pen": 5, "ink": 0}

    def test_untracked_products_ignored(self):
        inventory = Inventory(stock={})
        reservation = inventory.reserve([item("mug", 100)])
        assert reservation.taken == {}
        assert inventory.get_stock("mug") is None

    def test_negative_stock_rejected(self):
        with pytest.raises(ValueError):
            Inventory().set_stock("pen", -1)


class TestInventoryFile:
    def test_persists(self, temp_dir):
        path = temp_dir / INVENTORY_FILE
        Inventory(path).set_stock("pen", 7)
        Inventory(path).reserve([item("pen", 2)])

        assert Inventory(path).get_stock("pen") == 5
        data = json.loads(path.read_text())
        assert data == {"schema_version": 1, "stock": {"pen": 5}}

    def test_missing_file_is_empty(self, temp_dir):
        assert Inventory(temp_dir / INVENTORY_FILE).list_stock() == {}

    def test_unknown_schema_rejected(self, temp_dir):
        path = temp_dir / INVENTORY_FILE
        path.write_text(json.dumps({"schema_version": 9, "stock": {}}))
        with pytest.raises(InvalidSchemaVersionError):
            Inventory(path)
