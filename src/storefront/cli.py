"""Command-line interface for storefront administration."""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .admin import AdminStatusManager
from .config import Settings
from .errors import StorefrontError
from .inventory import INVENTORY_FILE, Inventory
from .models import ALL, DeliveryStatus, Order, PaymentStatus
from .order_store import ORDERS_FILE, JsonFileBackend, OrderStore
from .utils import format_money

DELIVERY_CHOICES = [ALL] + [s.value for s in DeliveryStatus]
PAYMENT_CHOICES = [ALL] + [s.value for s in PaymentStatus]


def get_store() -> OrderStore:
    """Get the OrderStore for the configured data directory."""
    return OrderStore(JsonFileBackend(Settings.from_env().data_dir / ORDERS_FILE))


def get_inventory() -> Inventory:
    return Inventory(Settings.from_env().data_dir / INVENTORY_FILE)


def format_order(order: Order, verbose: bool = False, currency: str = "usd") -> str:
    """Format an order for terminal display."""
    lines = [
        f"  {order.id}  {order.created_at[:19]}  "
        f"{format_money(order.total, currency):>16}  "
        f"delivery={order.delivery_status.value:<9}  payment={order.payment_status.value}",
    ]
    customer = order.customer_info
    lines.append(f"      {customer.name or '-'} <{customer.email or '-'}>  ({order.payment_method.value})")
    if verbose:
        for item in order.items:
            lines.append(f"      {item.quantity} x {item.name} @ {item.unit_price}")
        if customer.address:
            lines.append(f"      Ship to: {customer.address}")
        if order.gateway_session_id:
            lines.append(f"      Session: {order.gateway_session_id}")
    return "\n".join(lines)


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders."""
    try:
        admin = AdminStatusManager(get_store())
        orders = admin.list_orders(args.delivery, args.payment)

        if not orders:
            print("No orders found.")
            return 0

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2))
        else:
            print(f"Orders ({len(orders)}):")
            print()
            for order in orders:
                print(format_order(order, verbose=args.verbose, currency=Settings.from_env().currency))

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show a single order."""
    try:
        order = get_store().get(args.order_id)
        if args.json:
            print(json.dumps(order.to_dict(), indent=2))
        else:
            print(format_order(order, verbose=True, currency=Settings.from_env().currency))
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_set_delivery(args: argparse.Namespace) -> int:
    """Set an order's delivery status."""
    try:
        admin = AdminStatusManager(get_store())
        order = admin.set_delivery_status(args.order_id, args.status)
        print(f"Order {order.id}: delivery status is now {order.delivery_status.value}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_set_payment(args: argparse.Namespace) -> int:
    """Set an order's payment status."""
    try:
        admin = AdminStatusManager(get_store())
        order = admin.set_payment_status(args.order_id, args.status)
        print(f"Order {order.id}: payment status is now {order.payment_status.value}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_validate(args: argparse.Namespace) -> int:
    """Check every stored order record."""
    try:
        problems = get_store().validate()
    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not problems:
        print("All order records are valid.")
        return 0

    print(f"Found {len(problems)} invalid record(s):", file=sys.stderr)
    for problem in problems:
        print(f"  {problem}", file=sys.stderr)
    return 1


def cmd_summary(args: argparse.Namespace) -> int:
    """Print dashboard counters."""
    try:
        summary = AdminStatusManager(get_store()).compute_summary()

        if args.json:
            print(json.dumps(summary.to_dict(), indent=2))
        else:
            print(f"Total orders:      {summary.total_orders}")
            print(f"Pending delivery:  {summary.pending_delivery_count}")
            print(f"Delivered:         {summary.delivered_count}")
            print(f"Paid:              {summary.paid_count}")
            print(f"Revenue (paid):    {format_money(summary.total_revenue, Settings.from_env().currency)}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_import_legacy(args: argparse.Namespace) -> int:
    """Import orders exported from the old browser storage."""
    try:
        with open(args.sales_file, "r", encoding="utf-8") as f:
            records = json.load(f)
        payment_statuses = None
        if args.payment_statuses:
            with open(args.payment_statuses, "r", encoding="utf-8") as f:
                payment_statuses = json.load(f)

        if not isinstance(records, list):
            print("Error: sales file must contain a JSON array", file=sys.stderr)
            return 1

        imported, skipped = get_store().import_records(records, payment_statuses)
        print(f"Imported {imported} order(s)")
        if skipped:
            print(f"Skipped {skipped} order(s) already present")
        return 0

    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_inventory_list(args: argparse.Namespace) -> int:
    """List stock levels."""
    try:
        stock = get_inventory().list_stock()
        if args.json:
            print(json.dumps(stock, indent=2))
        elif not stock:
            print("No products tracked.")
        else:
            for product_id, quantity in sorted(stock.items()):
                print(f"  {product_id:<24} {quantity:>6}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_inventory_set(args: argparse.Namespace) -> int:
    """Set stock for a product."""
    if args.stock < 0:
        print("Error: stock must not be negative", file=sys.stderr)
        return 1
    try:
        get_inventory().set_stock(args.product_id, args.stock)
        print(f"Stock for {args.product_id} set to {args.stock}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = Settings.from_env()
        orders_path = settings.data_dir / ORDERS_FILE
        if not settings.stripe_secret_key:
            print("Warning: STRIPE_SECRET_KEY is not set; only deferred checkout will work.", file=sys.stderr)

        print("Starting storefront API server...")
        print(f"Orders: {orders_path}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "storefront.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # Single worker to avoid concurrent write issues
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Manage storefront orders, stock and the checkout API server.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # orders
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    # orders list
    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--delivery", choices=DELIVERY_CHOICES, default=ALL, help="Filter by delivery status"
    )
    orders_list_parser.add_argument(
        "--payment", choices=PAYMENT_CHOICES, default=ALL, help="Filter by payment status"
    )
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    orders_list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show items and addresses"
    )

    # orders show
    orders_show_parser = orders_subparsers.add_parser("show", help="Show one order")
    orders_show_parser.add_argument("order_id", help="Order ID")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders set-delivery
    set_delivery_parser = orders_subparsers.add_parser(
        "set-delivery", help="Set an order's delivery status"
    )
    set_delivery_parser.add_argument("order_id", help="Order ID")
    set_delivery_parser.add_argument("status", choices=[s.value for s in DeliveryStatus])

    # orders set-payment
    set_payment_parser = orders_subparsers.add_parser(
        "set-payment", help="Set an order's payment status"
    )
    set_payment_parser.add_argument("order_id", help="Order ID")
    set_payment_parser.add_argument("status", choices=[s.value for s in PaymentStatus])

    # orders validate
    orders_subparsers.add_parser("validate", help="Check stored order records")

    # summary
    summary_parser = subparsers.add_parser("summary", help="Show dashboard counters")
    summary_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # import-legacy
    import_parser = subparsers.add_parser(
        "import-legacy", help="Import orders exported from browser storage"
    )
    import_parser.add_argument("sales_file", type=Path, help="JSON array of sale records")
    import_parser.add_argument(
        "--payment-statuses", "-p", type=Path,
        help="JSON object mapping order ID to payment status",
    )

    # inventory
    inventory_parser = subparsers.add_parser("inventory", help="Manage stock levels")
    inventory_subparsers = inventory_parser.add_subparsers(dest="inventory_command")

    inventory_list_parser = inventory_subparsers.add_parser("list", help="List stock levels")
    inventory_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    inventory_set_parser = inventory_subparsers.add_parser("set", help="Set stock for a product")
    inventory_set_parser.add_argument("product_id", help="Product ID")
    inventory_set_parser.add_argument("stock", type=int, help="Units in stock")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=Settings.from_env().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        orders_commands = {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "set-delivery": cmd_orders_set_delivery,
            "set-payment": cmd_orders_set_payment,
            "validate": cmd_orders_validate,
        }
        cmd_func = orders_commands.get(getattr(args, "orders_command", None))
        if cmd_func is None:
            parser.parse_args(["orders", "--help"])
            return 0
        return cmd_func(args)

    # Handle inventory subcommands
    if args.command == "inventory":
        if getattr(args, "inventory_command", None) == "list":
            return cmd_inventory_list(args)
        if getattr(args, "inventory_command", None) == "set":
            return cmd_inventory_set(args)
        parser.parse_args(["inventory", "--help"])
        return 0

    commands = {
        "summary": cmd_summary,
        "import-legacy": cmd_import_legacy,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
