#!/usr/bin/env python3
"""
Mill Orders — CLI entry point.

Usage examples:
  python main.py check                              # Verify setup (database/API, roles, catalog)
  python main.py quote order.json                   # Price an order file without saving it
  python main.py validate order.json                # List every problem with an order file
  python main.py create order.json                  # Price, validate and save a new order
  python main.py quick quick_order.json             # Create an order from catalog picks

  python main.py list --status pending --remember   # Filter the list and keep the filter
  python main.py show ORD-20260301-0001
  python main.py actions ORD-20260301-0001
  python main.py --role production transition ORD-20260301-0001 startProduction
  python main.py transition ORD-20260301-0001 reject --notes "Credit limit exceeded"
  python main.py pay ORD-20260301-0001 500
  python main.py stats
"""
import functools
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import click
from pydantic import ValidationError

from config import Config
from models.catalog import QuickOrderItemInput
from models.order import Order
from orders.api_client import OrderApiClient
from orders.database import OrderDatabase
from orders.errors import OrderError, OrderValidationFailed
from orders.filters import FilterStore, JsonFileKeyValueStore
from orders.permissions import RoleDirectory
from orders.pricing import apply_pricing, format_currency
from orders.quick_order import QuickProductCatalog
from orders.service import OrderService
from orders.status_machine import ALL_STATUSES
from orders.validator import validate_order

_LIST_FILTERS = ("status", "payment_status", "search")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _reports_errors(func):
    """Print order errors to stderr and exit 1 instead of a traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OrderValidationFailed as e:
            click.echo("✗ Order is invalid:", err=True)
            for issue in e.issues:
                click.echo(f"    - {issue.message}", err=True)
            sys.exit(1)
        except (OrderError, ValidationError, ValueError, OSError) as e:
            click.echo(f"✗ {e}", err=True)
            sys.exit(1)
    return wrapper


# --------------------------------------------------------------------
# Wiring helpers
# --------------------------------------------------------------------

def _repository(config: Config, actor: str):
    if config.uses_api:
        return OrderApiClient(config.api_base_url, token=config.api_token, timeout=config.api_timeout)
    config.ensure_output_dir()
    return OrderDatabase(config.db_path, actor=actor)


def _service(ctx: click.Context) -> OrderService:
    config: Config = ctx.obj["config"]
    role: str = ctx.obj["role"]
    permissions = RoleDirectory.load(config.roles_file).permissions_for(role)
    return OrderService(_repository(config, actor=role), permissions)


def _load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _load_order(path: str, config: Config) -> Order:
    """Read an order JSON file (camelCase or snake_case keys)."""
    raw = _load_json(path)
    order = Order.model_validate(raw)
    if order.is_taxable and "taxPercentage" not in raw and "tax_percentage" not in raw:
        order = order.model_copy(update={"tax_percentage": config.default_tax_percentage})
    return order


def _load_catalog(config: Config, repository) -> QuickProductCatalog:
    if isinstance(repository, OrderApiClient):
        return QuickProductCatalog(repository.get_quick_products())
    return QuickProductCatalog.from_json(config.quick_products_file)


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"'{value}' is not a number") from None


def _print_totals(order: Order, symbol: str) -> None:
    money = functools.partial(format_currency, symbol=symbol)
    click.echo(f"  Subtotal:    {money(order.subtotal)}")
    if order.discount:
        pct = f" ({order.discount_percentage.normalize():f}%)" if order.discount_percentage else ""
        click.echo(f"  Discount:   -{money(order.discount)}{pct}")
    if order.is_taxable:
        click.echo(f"  Tax:         {money(order.tax_amount)} ({order.tax_percentage.normalize():f}%)")
    click.echo(f"  Total:       {money(order.total_amount)}")
    click.echo(f"  Paid:        {money(order.paid_amount)}  [{order.payment_status}]")
    if order.remaining_amount:
        click.echo(f"  Remaining:   {money(order.remaining_amount)}")


def _print_order(order: Order, symbol: str) -> None:
    click.echo()
    click.echo(f"  Order:       {order.order_number or order.id or '(new)'}")
    click.echo(f"  Customer:    {order.customer or '(none)'}")
    click.echo(f"  Status:      {order.status}" + (f"  ({order.status_notes})" if order.status_notes else ""))
    click.echo(f"  Priority:    {order.priority}")
    click.echo(f"  Terms:       {order.payment_terms or '(none)'}")
    click.echo()
    for pos, item in enumerate(order.items, start=1):
        bags = f"  [{item.bag_pieces} bags]" if item.is_bag_selection and item.bag_pieces else ""
        click.echo(
            f"  {pos:>2}. {item.product_name:<28} {item.quantity.normalize():f} {item.unit}"
            f" × {format_currency(item.rate_per_unit, symbol)}"
            f" = {format_currency(item.total_amount, symbol)}  {item.packaging}{bags}"
        )
    click.echo()
    _print_totals(order, symbol)
    click.echo()


def _summary(order: Order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer": order.customer,
        "status": order.status,
        "payment_status": order.payment_status,
        "total_amount": order.total_amount,
        "item_count": len(order.items),
        "created_at": order.created_at,
    }


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--role", "-r", default=None, help="Act as this role (default: ORDERS_ROLE or manager)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, role: Optional[str]) -> None:
    """Mill Orders — price, validate and move orders through their lifecycle."""
    ctx.ensure_object(dict)
    _setup_logging(verbose)
    config = ctx.obj.get("config") or Config()
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    ctx.obj["role"] = role or config.default_role


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that storage, roles and the quick-order catalog are ready."""
    config: Config = ctx.obj["config"]
    ok = True

    click.echo("\n=== Mill Orders Setup Check ===\n")

    if config.uses_api:
        client = OrderApiClient(config.api_base_url, token=config.api_token, timeout=config.api_timeout)
        click.echo(f"  Order API:     {config.api_base_url}")
        try:
            stats = client.get_stats()
            click.echo(f"  Reachable:     ✓ ({stats.get('totalOrders', stats.get('total_orders', '?'))} orders)")
        except OrderError as e:
            ok = False
            click.echo(f"  Reachable:     ✗ ({e})")
            click.echo("  → Check ORDERS_API_URL and ORDERS_API_TOKEN")
    else:
        try:
            config.ensure_output_dir()
            db = OrderDatabase(config.db_path)
            click.echo(f"  Database:      ✓  {config.db_path} ({db.get_stats()['total_orders']} orders)")
        except Exception as e:
            ok = False
            click.echo(f"  Database:      ✗  {config.db_path} ({e})")

    roles = RoleDirectory.load(config.roles_file)
    source = config.roles_file if config.roles_file.exists() else "built-in defaults"
    click.echo(f"  Roles:         {', '.join(roles.role_names)}  ({source})")
    try:
        granted = roles.permissions_for(ctx.obj["role"])
        click.echo(f"  Acting as:     {ctx.obj['role']} → {', '.join(granted) or '(no permissions)'}")
    except OrderError as e:
        ok = False
        click.echo(f"  Acting as:     ✗ {e}")

    if config.quick_products_file.exists():
        try:
            catalog = QuickProductCatalog.from_json(config.quick_products_file)
            click.echo(f"  Quick catalog: ✓  {len(catalog)} products")
        except (OSError, ValueError) as e:
            ok = False
            click.echo(f"  Quick catalog: ✗  {e}")
    else:
        click.echo(f"  Quick catalog: -  (not found at {config.quick_products_file})")

    click.echo()
    if not ok:
        sys.exit(1)


# --------------------------------------------------------------------
# offline commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the priced order as JSON")
@click.pass_context
@_reports_errors
def quote(ctx: click.Context, file: str, as_json: bool) -> None:
    """Price an order FILE without saving it."""
    config: Config = ctx.obj["config"]
    priced = apply_pricing(_load_order(file, config))
    if as_json:
        click.echo(json.dumps(priced.to_wire(), indent=2 if config.pretty_json else None, ensure_ascii=False))
        return
    _print_order(priced, config.currency_symbol)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@_reports_errors
def validate(ctx: click.Context, file: str) -> None:
    """Check an order FILE and list every problem found."""
    issues = validate_order(_load_order(file, ctx.obj["config"]))
    if not issues:
        click.echo("✓ Order is valid")
        return
    click.echo(f"✗ {len(issues)} problem(s):")
    for issue in issues:
        click.echo(f"    - [{issue.code}] {issue.message}")
    sys.exit(1)


# --------------------------------------------------------------------
# write commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@_reports_errors
def create(ctx: click.Context, file: str) -> None:
    """Price, validate and save the order in FILE."""
    config: Config = ctx.obj["config"]
    order = _service(ctx).create_order(_load_order(file, config))
    click.echo(f"✓ Created {order.order_number or order.id}  total {format_currency(order.total_amount, config.currency_symbol)}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@_reports_errors
def quick(ctx: click.Context, file: str) -> None:
    """
    Create an order from quick-order picks in FILE.

    \b
    FILE holds {"customer": "...", "paymentTerms": "Cash",
                "items": [{"productKey": "atta-50", "bags": 4}, ...]}
    """
    config: Config = ctx.obj["config"]
    raw = dict(_load_json(file))
    entries = [QuickOrderItemInput.model_validate(e) for e in raw.pop("items", [])]
    customer = raw.pop("customer", None)

    service = _service(ctx)
    catalog = _load_catalog(config, service.repository)
    extra = Order.model_validate(raw)
    fields = {name: getattr(extra, name) for name in extra.model_fields_set}
    order = service.create_quick_order(customer, entries, catalog, **fields)
    click.echo(f"✓ Created {order.order_number or order.id}  total {format_currency(order.total_amount, config.currency_symbol)}")


@cli.command()
@click.argument("order_id")
@click.option("--discount-percentage", default=None, help="Percentage discount (0-100)")
@click.option("--discount", "discount_fixed", default=None, help="Fixed discount amount")
@click.option("--tax-percentage", default=None, help="Tax percentage (0-100)")
@click.option("--taxable/--not-taxable", default=None, help="Whether tax applies")
@click.option("--priority", type=click.Choice(["low", "normal", "high", "urgent"]), default=None)
@click.option("--notes", default=None, help="Replace the order notes")
@click.pass_context
@_reports_errors
def edit(
    ctx: click.Context,
    order_id: str,
    discount_percentage: Optional[str],
    discount_fixed: Optional[str],
    tax_percentage: Optional[str],
    taxable: Optional[bool],
    priority: Optional[str],
    notes: Optional[str],
) -> None:
    """Change pricing inputs or details of ORDER_ID and reprice it."""
    config: Config = ctx.obj["config"]
    changes: dict[str, Any] = {}
    if discount_percentage is not None:
        changes["discount_percentage"] = _parse_amount(discount_percentage)
    if tax_percentage is not None:
        changes["tax_percentage"] = _parse_amount(tax_percentage)
    if taxable is not None:
        changes["is_taxable"] = taxable
    if priority:
        changes["priority"] = priority
    if discount_fixed is not None:
        changes["discount_fixed"] = _parse_amount(discount_fixed)
    if notes is not None:
        changes["notes"] = notes

    order = _service(ctx).update_order(order_id, **changes)
    _print_order(order, config.currency_symbol)


@cli.command()
@click.argument("order_id")
@click.argument("action")
@click.option("--notes", "-n", default=None, help="Reason for the change (required for reject)")
@click.pass_context
@_reports_errors
def transition(ctx: click.Context, order_id: str, action: str, notes: Optional[str]) -> None:
    """Run lifecycle ACTION (approve, reject, startProduction, ...) on ORDER_ID."""
    order = _service(ctx).transition(order_id, action, notes)
    click.echo(f"✓ {order.order_number or order.id} is now {order.status}")


@cli.command()
@click.argument("order_id")
@click.argument("amount")
@click.pass_context
@_reports_errors
def pay(ctx: click.Context, order_id: str, amount: str) -> None:
    """Record a payment of AMOUNT against ORDER_ID."""
    config: Config = ctx.obj["config"]
    order = _service(ctx).record_payment(order_id, _parse_amount(amount))
    click.echo(
        f"✓ {order.order_number or order.id}: paid {format_currency(order.paid_amount, config.currency_symbol)}"
        f" of {format_currency(order.total_amount, config.currency_symbol)} [{order.payment_status}]"
    )


# --------------------------------------------------------------------
# read commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("order_id")
@click.option("--json", "as_json", is_flag=True, help="Print the order as JSON")
@click.pass_context
@_reports_errors
def show(ctx: click.Context, order_id: str, as_json: bool) -> None:
    """Show one order by id or order number."""
    config: Config = ctx.obj["config"]
    order = _service(ctx).get_order(order_id)
    if as_json:
        click.echo(json.dumps(order.to_wire(), indent=2 if config.pretty_json else None, ensure_ascii=False))
        return
    _print_order(order, config.currency_symbol)


@cli.command()
@click.argument("order_id")
@click.pass_context
@_reports_errors
def actions(ctx: click.Context, order_id: str) -> None:
    """List the lifecycle actions the current role may run on ORDER_ID."""
    available = _service(ctx).available_actions(order_id)
    if not available:
        click.echo(f"No actions available for role '{ctx.obj['role']}'")
        return
    for name in available:
        click.echo(f"  {name}")


@cli.command("list")
@click.option("--status", type=click.Choice(ALL_STATUSES), default=None)
@click.option("--payment-status", type=click.Choice(["pending", "partial", "paid", "overdue"]), default=None)
@click.option("--search", "-s", default=None, help="Match order number or customer")
@click.option("--limit", default=50, show_default=True)
@click.option("--remember", is_flag=True, help="Keep these filters for next time")
@click.option("--clear", is_flag=True, help="Forget remembered filters")
@click.pass_context
@_reports_errors
def list_orders(
    ctx: click.Context,
    status: Optional[str],
    payment_status: Optional[str],
    search: Optional[str],
    limit: int,
    remember: bool,
    clear: bool,
) -> None:
    """List orders, newest first."""
    config: Config = ctx.obj["config"]
    store = FilterStore(JsonFileKeyValueStore(config.filters_file), "orders")
    if clear:
        store.clear()

    given = {"status": status, "payment_status": payment_status, "search": search}
    if remember:
        for key in _LIST_FILTERS:
            if given[key]:
                store.set(key, given[key])
            else:
                store.remove(key)
    filters = {key: given[key] or store.get(key) for key in _LIST_FILTERS}
    if any(filters.values()) and not any(given.values()):
        click.echo(f"  (remembered filters: {', '.join(f'{k}={v}' for k, v in filters.items() if v)})")

    service = _service(ctx)
    rows = service.list_orders(limit=limit, **filters)
    if isinstance(service.repository, OrderApiClient):
        rows = [_summary(o) for o in rows]

    if not rows:
        click.echo("No orders found.")
        return
    for row in rows:
        click.echo(
            f"  {row['order_number'] or row['id']:<20} {row['status']:<11} {row['payment_status']:<8}"
            f" {format_currency(row['total_amount'], config.currency_symbol):>12}  {row['customer'] or ''}"
        )


@cli.command()
@click.pass_context
@_reports_errors
def stats(ctx: click.Context) -> None:
    """Show order counts per status and revenue."""
    config: Config = ctx.obj["config"]
    data = _service(ctx).get_stats()
    click.echo()
    for status in ALL_STATUSES:
        if status in data:
            click.echo(f"  {status:<12} {data[status]}")
    for key, label in [("total_orders", "Orders"), ("order_value", "Order value"), ("collected", "Collected")]:
        if key in data and data[key] is not None:
            value = data[key] if key == "total_orders" else format_currency(data[key], config.currency_symbol)
            click.echo(f"  {label:<12} {value}")
    click.echo()


if __name__ == "__main__":
    cli()
