# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/teranga/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent). Use "flask db upgrade" for migrated deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role admin]
#   List users with role and active status.
# - python -m flask users create --email admin@teranga.local --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
#
# Catalog:
# - python -m flask products list
# - python -m flask products create --name "Ciment 50kg" --price 5500 --sku CIM-50
#
# Orders maintenance:
# - python -m flask orders recompute [--order-id 12]
#   Recompute item line totals and order totals from stored items.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .services.access_service import ROLES
from .services.auth_service import create_user
from .services.catalog_service import create_product
from .services.totals_service import recompute_all
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='client', show_default=True, help='Role')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(email, password, role, first_name, last_name):
    """
    Create a user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        user = create_user(
            email=email,
            password=password,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Role':<8} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<40} {user.role:<8} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('products')
def products_group():
    """Catalog commands."""


@products_group.command('create')
@click.option('--name', required=True, help='Product name')
@click.option('--price', required=True, help='Unit price')
@click.option('--sku', default=None, help='SKU (unique)')
@with_appcontext
def create_product_cli(name, price, sku):
    try:
        product = create_product(name=name, price=price, sku=sku)
    except ConflictError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, price: {product.price})")


@products_group.command('list')
@with_appcontext
def list_products():
    products = db.session.query(Product).order_by(Product.id).all()
    if not products:
        click.echo("No products found.")
        return

    for product in products:
        active_str = "" if product.is_active else " (inactive)"
        click.echo(f"{product.id:<5} {product.sku or '-':<16} {product.name:<40} {product.price}{active_str}")


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('recompute')
@click.option('--order-id', type=int, default=None, help='Only this order')
@with_appcontext
def recompute_orders(order_id):
    """Recompute line totals and order totals from the stored items."""
    count = recompute_all(order_id=order_id)
    click.echo(f"PASS Recomputed {count} order(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(orders_group)
