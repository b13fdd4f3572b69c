# Overview: Flask CLI command groups for bootstrap and seeding.

# backoffice/cli.py
# Commands Legend:
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (bash: export FLASK_APP="backoffice:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--business "Cafe"] [--tax-rate-bps 1000]
#   Idempotent bootstrap: creates all tables and the settings row.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --name "Ana" --email ana@example.com --role waitress
#   Create a user and print its API token (shown once).
# - python -m flask users rotate-token ana@example.com
#   Issue a new API token; the old one stops working.
#
# Products:
# - python -m flask products create --name "Latte" --price-cents 450 --stock 20
#   Create a product; the opening stock is booked as an "initial" transaction.
# - python -m flask products low-stock
#   List active products at or below their low stock alert.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import EngineError
from .models import User
from .services import products_service, token_service
from .services.settings_service import ensure_settings
from .validation import enforce_rules_product


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--business', 'business_name', default='My Business', help='Business name')
@click.option('--tax-rate-bps', type=int, default=0, help='Tax rate in basis points (1000 = 10%)')
@click.option('--currency', default='USD', help='ISO currency code')
@with_appcontext
def init_system(business_name, tax_rate_bps, currency):
    """
    Create tables and the settings row.

    Safe to run repeatedly; existing settings are left untouched.
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Tables created")

    settings = ensure_settings(business_name=business_name, tax_rate_bps=tax_rate_bps, currency=currency)
    db.session.commit()
    click.echo(f"PASS Settings: {settings.business_name} (tax {settings.tax_rate_bps} bps, {settings.currency})")

    click.echo("\nNext: python -m flask users create --name ... --email ... --role admin")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role:<10} {status}")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(token_service.VALID_ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, role):
    """Create a user and print its API token."""
    if db.session.query(User).filter_by(email=email.strip().lower()).first():
        click.echo(f"FAIL User '{email}' already exists")
        return

    try:
        user, token = token_service.create_user(name=name, email=email, role=role)
    except EngineError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")
    click.echo(f"TOKEN {token}")
    click.echo("   Store it now; it cannot be shown again.")


@users_group.command('rotate-token')
@click.argument('email')
@with_appcontext
def rotate_token_cli(email):
    """Issue a new API token for a user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    token = token_service.rotate_token(user)
    click.echo(f"PASS New token for {user.email}")
    click.echo(f"TOKEN {token}")


@click.group('products')
def products_group():
    """Product seeding and inspection commands."""


@products_group.command('create')
@click.option('--name', required=True, help='Product name')
@click.option('--price-cents', type=int, required=True, help='Unit price in cents')
@click.option('--sku', default=None, help='Unique SKU')
@click.option('--stock', type=int, default=0, help='Opening stock')
@click.option('--low-stock-alert', type=int, default=None, help='Low stock threshold')
@click.option('--variant', 'variants', multiple=True, help='Variant label (repeatable)')
@with_appcontext
def create_product_cli(name, price_cents, sku, stock, low_stock_alert, variants):
    """Create a product with opening stock."""
    patch = {
        "name": name,
        "price_cents": price_cents,
        "sku": sku,
        "low_stock_alert": low_stock_alert,
        "has_variants": bool(variants),
        "variants": list(variants) or None,
    }

    try:
        enforce_rules_product(patch)
        product = products_service.create_product(patch=patch, initial_stock=stock)
    except EngineError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, stock {product.stock})")


@products_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List active products at or below their low stock alert."""
    result = products_service.list_products(active=True, low_stock=True)
    if not result["items"]:
        click.echo("No products below their alert level.")
        return
    for item in result["items"]:
        click.echo(f"{item['id']:>4}  {item['name']:<32} stock {item['stock']} (alert {item['low_stock_alert']})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
