"""Integration tests for CLI."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from storefront.models import Order, PaymentMethod
from storefront.order_store import ORDERS_FILE, JsonFileBackend, OrderStore


def run_storefront(args: list[str], data_dir: Path, **extra_env: str) -> subprocess.CompletedProcess:
    """Run storefront CLI command against `data_dir`."""
    env = dict(os.environ, **extra_env)
    env["STOREFRONT_DATA_DIR"] = str(data_dir)
    env.pop("STRIPE_SECRET_KEY", None)
    return subprocess.run(
        [sys.executable, "-m", "storefront.cli"] + args,
        env=env,
        capture_output=True,
        text=True,
    )


@pytest.fixture
def data_dir(temp_dir, rtx_4090, rtx_4080, customer):
    """A data directory holding two deferred orders."""
    store = OrderStore(JsonFileBackend(temp_dir / ORDERS_FILE))
    store.append(Order.create([rtx_4090], customer, PaymentMethod.DEFERRED))
    store.append(Order.create([rtx_4080], customer, PaymentMethod.DEFERRED))
    return temp_dir


def stored_orders(data_dir: Path) -> list[Order]:
    return OrderStore(JsonFileBackend(data_dir / ORDERS_FILE)).list_orders()


class TestOrdersCommands:
    def test_list_empty(self, temp_dir):
        result = run_storefront(["orders", "list"], temp_dir)
        assert result.returncode == 0
        assert "No orders found" in result.stdout

    def test_unknown_log_level_is_ignored(self, temp_dir):
        result = run_storefront(["orders", "list"], temp_dir, STOREFRONT_LOG_LEVEL="VERBOSE")
        assert result.returncode == 0
        assert "No orders found" in result.stdout

    def test_list(self, data_dir):
        result = run_storefront(["orders", "list", "-v"], data_dir)
        assert result.returncode == 0
        assert "Orders (2):" in result.stdout
        assert "1,599.99 USD" in result.stdout
        assert "2 x RTX 4080 @ 1199.50" in result.stdout

    def test_list_json_filtered(self, data_dir):
        first = stored_orders(data_dir)[0]
        run_storefront(["orders", "set-payment", first.id, "paid"], data_dir)

        result = run_storefront(["orders", "list", "--payment", "paid", "--json"], data_dir)
        assert result.returncode == 0
        orders = json.loads(result.stdout)
        assert [o["id"] for o in orders] == [first.id]

    def test_list_rejects_unknown_status(self, data_dir):
        result = run_storefront(["orders", "list", "--delivery", "lost"], data_dir)
        assert result.returncode == 2

    def test_show(self, data_dir):
        order = stored_orders(data_dir)[1]
        result = run_storefront(["orders", "show", order.id, "--json"], data_dir)
        assert result.returncode == 0
        assert json.loads(result.stdout)["total"] == "2399.00"

    def test_show_unknown(self, data_dir):
        result = run_storefront(["orders", "show", "sale_nope"], data_dir)
        assert result.returncode == 1
        assert "Order not found" in result.stderr

    def test_set_delivery(self, data_dir):
        order = stored_orders(data_dir)[0]
        result = run_storefront(["orders", "set-delivery", order.id, "shipped"], data_dir)
        assert result.returncode == 0
        assert "delivery status is now shipped" in result.stdout

        updated = stored_orders(data_dir)[0]
        assert updated.delivery_status.value == "shipped"
        assert updated.payment_status.value == "pending"

    def test_validate(self, data_dir):
        result = run_storefront(["orders", "validate"], data_dir)
        assert result.returncode == 0
        assert "All order records are valid" in result.stdout

    def test_validate_reports_bad_record(self, temp_dir):
        (temp_dir / ORDERS_FILE).write_text(json.dumps({"schema_version": 2, "orders": [{"id": "x"}]}))
        result = run_storefront(["orders", "validate"], temp_dir)
        assert result.returncode == 1
        assert "1 invalid record" in result.stderr


class TestSummaryCommand:
    def test_summary_json(self, data_dir):
        order = stored_orders(data_dir)[1]
        run_storefront(["orders", "set-payment", order.id, "paid"], data_dir)

        result = run_storefront(["summary", "--json"], data_dir)
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["total_orders"] == 2
        assert data["paid_count"] == 1
        assert data["total_revenue"] == "2399.00"


class TestImportLegacy:
    def test_import(self, temp_dir):
        sales = temp_dir / "sales.json"
        sales.write_text(json.dumps([
            {
                "id": "sale_1700000000000",
                "date": "2023-11-14T22:13:20.000Z",
                "items": [{"id": "p1", "name": "Monitor", "price": 199.99, "quantity": 1, "stock": 3}],
                "total": 199.99,
                "customerInfo": {"name": "Lin", "email": "lin@x.io", "phone": "1", "address": "A"},
                "status": "pending",
            }
        ]))
        statuses = temp_dir / "statuses.json"
        statuses.write_text(json.dumps({"sale_1700000000000": "paid"}))

        result = run_storefront(["import-legacy", str(sales), "-p", str(statuses)], temp_dir)
        assert result.returncode == 0
        assert "Imported 1 order(s)" in result.stdout

        again = run_storefront(["import-legacy", str(sales)], temp_dir)
        assert "Imported 0 order(s)" in again.stdout
        assert "Skipped 1" in again.stdout

        orders = stored_orders(temp_dir)
        assert len(orders) == 1
        assert orders[0].payment_status.value == "paid"

    def test_import_missing_file(self, temp_dir):
        result = run_storefront(["import-legacy", str(temp_dir / "nope.json")], temp_dir)
        assert result.returncode == 1
        assert "Error:" in result.stderr


class TestInventoryCommands:
    def test_set_and_list(self, temp_dir):
        result = run_storefront(["inventory", "set", "gpu-4090", "4"], temp_dir)
        assert result.returncode == 0

        result = run_storefront(["inventory", "list", "--json"], temp_dir)
        assert json.loads(result.stdout) == {"gpu-4090": 4}

    def test_negative_stock(self, temp_dir):
        result = run_storefront(["inventory", "set", "gpu-4090", "-1"], temp_dir)
        assert result.returncode != 0
