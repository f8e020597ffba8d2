"""Command-line interface for storefront."""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .analytics import ANALYTICS_RETENTION_DAYS
from .checkout import Storefront, open_storefront
from .errors import (
    InvalidStatusError,
    OrderNotFoundError,
    ProductNotFoundError,
    StorefrontError,
    UnknownCouponError,
)
from .logging import configure_logging
from .models import ORDER_STATUSES, PAYMENT_METHODS
from .orders import ORDER_RETENTION_DAYS
from .storage import DATA_DIR_ENV, JsonFileStore
from .utils import (
    format_money,
    format_order,
    format_product,
    parse_data_pair,
    parse_item_spec,
)


def get_storefront(args: argparse.Namespace) -> Storefront:
    """Open the storefront over the data directory selected on the command line."""
    return open_storefront(JsonFileStore(args.data_dir))


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _require_order(storefront: Storefront, order_id: str):
    order = storefront.ledger.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


# --- Products ---


def cmd_products_list(args: argparse.Namespace) -> int:
    """List catalog products."""
    try:
        storefront = get_storefront(args)
        if args.search:
            products = storefront.search(args.search, category=args.category)
        else:
            products = storefront.catalog.list_products(
                category=args.category, include_out_of_stock=args.all
            )

        if args.json:
            print_json([p.to_dict() for p in products])
            return 0

        if not products:
            print("No products found.")
            return 0

        print(f"Products ({len(products)}):")
        print()
        for product in products:
            print(format_product(product))

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_products_add(args: argparse.Namespace) -> int:
    """Add a product to the catalog."""
    try:
        storefront = get_storefront(args)
        product = storefront.catalog.add_product(
            name=args.name,
            category=args.category,
            price=args.price,
            stock=args.stock,
            images=args.image,
        )

        if args.json:
            print_json(product.to_dict())
        else:
            print(f"Added product: {format_product(product)}")

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_products_stock(args: argparse.Namespace) -> int:
    """Set the stock of a product."""
    try:
        storefront = get_storefront(args)
        product = storefront.catalog.update_product(args.product_id, stock=args.stock)
        if product is None:
            raise ProductNotFoundError(args.product_id)

        print(f"Updated product: {format_product(product)}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_products_delete(args: argparse.Namespace) -> int:
    """Delete a product from the catalog."""
    try:
        storefront = get_storefront(args)
        if not storefront.catalog.delete_product(args.product_id):
            raise ProductNotFoundError(args.product_id)

        print(f"Deleted product: {args.product_id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- Orders ---


def cmd_orders_create(args: argparse.Namespace) -> int:
    """Create a new order."""
    try:
        storefront = get_storefront(args)
        items = [parse_item_spec(spec) for spec in args.item or []]

        order = storefront.ledger.create_order(
            {
                "customer_name": args.name,
                "customer_phone": args.phone,
                "customer_address": args.address,
                "customer_id": args.customer_id,
                "customer_email": args.email,
                "items": items,
                "shipping": args.shipping,
                "discount": args.discount,
                "payment_method": args.payment,
                "notes": args.notes,
            }
        )

        if args.json:
            print_json(order.to_dict())
        else:
            print(f"Created order: {order.id}")
            print(f"  Customer: {order.customer_name}")
            print(f"  Items: {len(order.items)}")
            print(f"  Total: {format_money(order.total)}")

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders, optionally filtered."""
    try:
        storefront = get_storefront(args)
        orders = storefront.ledger.search_orders(
            {
                "status": args.status,
                "customer_id": args.customer_id,
                "payment_method": args.payment,
                "min_total": args.min_total,
                "max_total": args.max_total,
                "search": args.search,
            }
        )

        if args.json:
            print_json([o.to_dict() for o in orders])
            return 0

        if not orders:
            print("No orders found.")
            return 0

        print(f"Orders ({len(orders)}):")
        print()
        for order in orders:
            print(format_order(order, verbose=args.verbose))

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show a single order."""
    try:
        storefront = get_storefront(args)
        order = _require_order(storefront, args.order_id)

        if args.json:
            print_json(order.to_dict())
        else:
            print(format_order(order, verbose=True))

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_status(args: argparse.Namespace) -> int:
    """Change the status of an order."""
    try:
        storefront = get_storefront(args)
        _require_order(storefront, args.order_id)

        if not storefront.ledger.update_order_status(args.order_id, args.status, args.message):
            raise InvalidStatusError(args.status, ORDER_STATUSES)

        print(f"Order {args.order_id} is now {args.status}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_coupon(args: argparse.Namespace) -> int:
    """Apply a coupon code to an order."""
    try:
        storefront = get_storefront(args)
        order = _require_order(storefront, args.order_id)

        if not storefront.ledger.apply_coupon(args.order_id, args.code):
            raise UnknownCouponError(args.code)

        print(f"Applied {order.coupon_code}: {order.coupon_description}")
        print(f"  Discount: {format_money(order.discount)}")
        print(f"  Total: {format_money(order.total)}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_note(args: argparse.Namespace) -> int:
    """Append a note to an order."""
    try:
        storefront = get_storefront(args)
        _require_order(storefront, args.order_id)
        storefront.ledger.add_note(args.order_id, args.text)

        print(f"Added note to order {args.order_id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_delete(args: argparse.Namespace) -> int:
    """Delete an order."""
    try:
        storefront = get_storefront(args)
        order = _require_order(storefront, args.order_id)
        storefront.ledger.delete_order(order.id)

        print(f"Deleted order: {order.id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_stats(args: argparse.Namespace) -> int:
    """Show order statistics."""
    try:
        storefront = get_storefront(args)
        stats = storefront.ledger.get_order_statistics()

        if args.json:
            print_json(stats.to_dict())
            return 0

        print(f"Orders: {stats.total_orders}")
        print(f"Revenue: {format_money(stats.total_revenue)}")
        print(f"Average order: {format_money(round(stats.average_order_value, 2))}")
        print()
        print("By status:")
        for status, count in stats.orders_by_status.items():
            print(f"  {status:<18} {count}")
        print("By payment method:")
        for method, count in stats.orders_by_payment_method.items():
            print(f"  {method:<18} {count}")
        if stats.top_customers:
            print("Customers:")
            for name, totals in stats.top_customers.items():
                print(f"  {name or '(no name)'}: {totals.count} order(s), {format_money(totals.total)}")

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_cleanup(args: argparse.Namespace) -> int:
    """Remove orders older than the retention window."""
    try:
        storefront = get_storefront(args)
        removed = storefront.ledger.cleanup_old_orders(args.days)

        print(f"Removed {removed} order(s) older than {args.days} days")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- Analytics ---


def cmd_analytics_track(args: argparse.Namespace) -> int:
    """Record a behavioral event."""
    try:
        data = dict(parse_data_pair(pair) for pair in args.data or [])
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        storefront = get_storefront(args)
        event = storefront.analytics.track_event(args.event_type, data, url=args.url)

        print(f"Tracked {event.type} event: {event.id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_analytics_pageview(args: argparse.Namespace) -> int:
    """Record a page view."""
    try:
        storefront = get_storefront(args)
        page_view = storefront.analytics.track_page_view(
            args.page_name, page_url=args.url, referrer=args.referrer
        )

        print(f"Tracked page view: {page_view.id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_analytics_stats(args: argparse.Namespace) -> int:
    """Show visit, event and behavior statistics."""
    try:
        analytics = get_storefront(args).analytics
        visits = analytics.get_visit_statistics()
        events = analytics.get_event_statistics()
        behavior = analytics.get_user_behavior()
        conversion = analytics.get_conversion_rate()

        if args.json:
            print_json(
                {
                    "visit_statistics": visits.to_dict(),
                    "event_statistics": events.to_dict(),
                    "user_behavior": behavior.to_dict(),
                    "conversion_rate": conversion,
                }
            )
            return 0

        print(f"Page views: {visits.total_page_views} ({visits.unique_pages} unique pages)")
        print(f"Sessions: {visits.total_sessions}")
        print(f"Average session: {visits.average_session_duration} ms")
        print(f"Events: {events.total_events}")
        for event_type, count in events.top_events:
            print(f"  {event_type:<18} {count}")
        print(f"Conversion rate: {conversion}%")
        print(f"Abandoned carts: {behavior.abandoned_carts}")
        print(f"Completed purchases: {behavior.completed_purchases}")

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_analytics_report(args: argparse.Namespace) -> int:
    """Print the comprehensive analytics report."""
    try:
        report = get_storefront(args).analytics.generate_comprehensive_report()

        if args.json:
            print_json(report.to_dict())
            return 0

        summary = report.summary
        print(f"Analytics report ({report.generated_at})")
        print(f"  Events: {summary.total_events}")
        print(f"  Page views: {summary.total_page_views}")
        print(f"  Sessions: {summary.total_sessions}")
        print(f"  Conversion rate: {report.conversion_rate}%")
        print(f"  Retention: {summary.data_retention_days} days")

        behavior = report.user_behavior
        if behavior.most_viewed_products:
            print("  Most viewed products:")
            for product_id, count in behavior.most_viewed_products.items():
                print(f"    {product_id}: {count}")
        if behavior.most_searched_terms:
            print("  Most searched terms:")
            for term, count in behavior.most_searched_terms.items():
                print(f"    {term}: {count}")

        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_analytics_cleanup(args: argparse.Namespace) -> int:
    """Remove analytics records older than the retention window."""
    try:
        counts = get_storefront(args).analytics.cleanup_old_data(args.days)

        print(f"Removed records older than {args.days} days:")
        print(f"  Events: {counts.events_deleted}")
        print(f"  Page views: {counts.page_views_deleted}")
        print(f"  Sessions: {counts.sessions_deleted}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        # The API opens its store from the environment, including reload workers
        if args.data_dir:
            os.environ[DATA_DIR_ENV] = str(Path(args.data_dir).resolve())
        data_dir = JsonFileStore().data_dir

        print("Starting storefront API server...")
        print(f"Data directory: {data_dir}")
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
            workers=1,  # Single worker; every request rewrites whole collections
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Manage storefront products, orders and analytics.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir",
        help=f"Data directory (default: ${DATA_DIR_ENV} or ./data)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # products (subcommand group)
    products_parser = subparsers.add_parser("products", help="Manage the product catalog")
    products_subparsers = products_parser.add_subparsers(dest="products_command")

    # products list
    products_list_parser = products_subparsers.add_parser("list", help="List products")
    products_list_parser.add_argument("--category", "-c", help="Filter by category")
    products_list_parser.add_argument(
        "--search", "-s", help="Match product names (recorded as a search event)"
    )
    products_list_parser.add_argument(
        "--all", action="store_true", help="Include out-of-stock products"
    )
    products_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # products add
    products_add_parser = products_subparsers.add_parser("add", help="Add a product")
    products_add_parser.add_argument("name", help="Product name")
    products_add_parser.add_argument("--category", "-c", required=True, help="Category")
    products_add_parser.add_argument("--price", type=float, required=True, help="Unit price")
    products_add_parser.add_argument(
        "--stock", type=int, default=0, help="Units available (default: 0)"
    )
    products_add_parser.add_argument(
        "--image", action="append", help="Image URL (repeatable)"
    )
    products_add_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # products stock
    products_stock_parser = products_subparsers.add_parser(
        "stock", help="Set the stock of a product"
    )
    products_stock_parser.add_argument("product_id", help="Product ID")
    products_stock_parser.add_argument("stock", type=int, help="Units available")

    # products delete
    products_delete_parser = products_subparsers.add_parser("delete", help="Delete a product")
    products_delete_parser.add_argument("product_id", help="Product ID")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    # orders create
    create_parser_ = orders_subparsers.add_parser("create", help="Create an order")
    create_parser_.add_argument("--name", "-n", default="", help="Customer name")
    create_parser_.add_argument("--phone", default="", help="Customer phone")
    create_parser_.add_argument("--address", "-a", default="", help="Delivery address")
    create_parser_.add_argument("--email", default="", help="Customer email")
    create_parser_.add_argument("--customer-id", help="Customer ID")
    create_parser_.add_argument(
        "--item", "-i", action="append",
        help="Line item as 'PRODUCT_ID:PRICE[:QTY[:NAME]]' (repeatable)",
    )
    create_parser_.add_argument(
        "--shipping", type=float, default=0, help="Shipping amount (default: 0)"
    )
    create_parser_.add_argument(
        "--discount", type=float, default=0, help="Discount amount (default: 0)"
    )
    create_parser_.add_argument(
        "--payment", "-p", default="whatsapp",
        help=f"Payment method: {', '.join(PAYMENT_METHODS)} (default: whatsapp)",
    )
    create_parser_.add_argument("--notes", default="", help="Order notes")
    create_parser_.add_argument("--json", action="store_true", help="Output as JSON")

    # orders list
    list_parser = orders_subparsers.add_parser("list", help="List orders")
    list_parser.add_argument("--status", "-s", help="Filter by status")
    list_parser.add_argument("--customer-id", help="Filter by customer ID")
    list_parser.add_argument("--payment", help="Filter by payment method")
    list_parser.add_argument("--min-total", type=float, help="Minimum order total")
    list_parser.add_argument("--max-total", type=float, help="Maximum order total")
    list_parser.add_argument(
        "--search", help="Match order ID, customer name or phone"
    )
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show items, totals and timeline"
    )

    # orders show
    show_parser = orders_subparsers.add_parser("show", help="Show an order")
    show_parser.add_argument("order_id", help="Order ID")
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders status
    status_parser = orders_subparsers.add_parser("status", help="Change an order's status")
    status_parser.add_argument("order_id", help="Order ID")
    status_parser.add_argument("status", help=f"New status: {', '.join(ORDER_STATUSES)}")
    status_parser.add_argument(
        "--message", "-m", default="", help="Timeline message (default: per status)"
    )

    # orders coupon
    coupon_parser = orders_subparsers.add_parser("coupon", help="Apply a coupon code")
    coupon_parser.add_argument("order_id", help="Order ID")
    coupon_parser.add_argument("code", help="Coupon code (case-sensitive)")

    # orders note
    note_parser = orders_subparsers.add_parser("note", help="Append a note to an order")
    note_parser.add_argument("order_id", help="Order ID")
    note_parser.add_argument("text", help="Note text")

    # orders delete
    delete_parser = orders_subparsers.add_parser("delete", help="Delete an order")
    delete_parser.add_argument("order_id", help="Order ID")

    # orders stats
    stats_parser = orders_subparsers.add_parser("stats", help="Show order statistics")
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders cleanup
    orders_cleanup_parser = orders_subparsers.add_parser(
        "cleanup", help="Remove orders older than the retention window"
    )
    orders_cleanup_parser.add_argument(
        "--days", "-d", type=int, default=ORDER_RETENTION_DAYS,
        help=f"Retention in days (default: {ORDER_RETENTION_DAYS})",
    )

    # analytics (subcommand group)
    analytics_parser = subparsers.add_parser("analytics", help="Track and report analytics")
    analytics_subparsers = analytics_parser.add_subparsers(dest="analytics_command")

    # analytics track
    track_parser = analytics_subparsers.add_parser("track", help="Record an event")
    track_parser.add_argument("event_type", help="Event type, e.g. addToCart")
    track_parser.add_argument(
        "--data", "-d", action="append",
        help="Payload entry as KEY=VALUE (repeatable)",
    )
    track_parser.add_argument("--url", help="Page URL the event came from")

    # analytics pageview
    pageview_parser = analytics_subparsers.add_parser("pageview", help="Record a page view")
    pageview_parser.add_argument("page_name", help="Page name")
    pageview_parser.add_argument("--url", help="Page URL")
    pageview_parser.add_argument("--referrer", help="Referrer URL")

    # analytics stats
    analytics_stats_parser = analytics_subparsers.add_parser(
        "stats", help="Show visit, event and behavior statistics"
    )
    analytics_stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # analytics report
    report_parser = analytics_subparsers.add_parser(
        "report", help="Print the comprehensive report"
    )
    report_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # analytics cleanup
    analytics_cleanup_parser = analytics_subparsers.add_parser(
        "cleanup", help="Remove records older than the retention window"
    )
    analytics_cleanup_parser.add_argument(
        "--days", type=int, default=ANALYTICS_RETENTION_DAYS,
        help=f"Retention in days (default: {ANALYTICS_RETENTION_DAYS})",
    )

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    configure_logging()

    if not args.command:
        parser.print_help()
        return 0

    # Handle products subcommands
    if args.command == "products":
        products_commands = {
            "list": cmd_products_list,
            "add": cmd_products_add,
            "stock": cmd_products_stock,
            "delete": cmd_products_delete,
        }
        cmd_func = products_commands.get(args.products_command)
        if cmd_func is None:
            parser.parse_args(["products", "--help"])
            return 0
        return cmd_func(args)

    # Handle orders subcommands
    if args.command == "orders":
        orders_commands = {
            "create": cmd_orders_create,
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "status": cmd_orders_status,
            "coupon": cmd_orders_coupon,
            "note": cmd_orders_note,
            "delete": cmd_orders_delete,
            "stats": cmd_orders_stats,
            "cleanup": cmd_orders_cleanup,
        }
        cmd_func = orders_commands.get(args.orders_command)
        if cmd_func is None:
            parser.parse_args(["orders", "--help"])
            return 0
        return cmd_func(args)

    # Handle analytics subcommands
    if args.command == "analytics":
        analytics_commands = {
            "track": cmd_analytics_track,
            "pageview": cmd_analytics_pageview,
            "stats": cmd_analytics_stats,
            "report": cmd_analytics_report,
            "cleanup": cmd_analytics_cleanup,
        }
        cmd_func = analytics_commands.get(args.analytics_command)
        if cmd_func is None:
            parser.parse_args(["analytics", "--help"])
            return 0
        return cmd_func(args)

    if args.command == "serve":
        return cmd_serve(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
