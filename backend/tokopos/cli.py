# Overview: Flask CLI command groups for bootstrap, seeding and stock inspection.

# backend/tokopos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store-name "Toko Utama" --store-code TK01]
#   Idempotent bootstrap: central warehouse, general customer, optional first store.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Seeding:
# - python -m flask stores create --name "Toko Cabang" --code TK02
# - python -m flask users create --name "Siti" --username siti --role ATTENDANT --store-id 1
#
# Warehouse stock:
# - python -m flask warehouse stock
#   List central warehouse stock.
# - python -m flask warehouse restock --product-id 3 --quantity 50
#   Add quantity to the central warehouse.

import click
from flask.cli import with_appcontext

from .errors import CoreError
from .extensions import db
from .models import Store, User, WarehouseProduct
from .services import provisioning_service, stock_service
from .services.concurrency import run_atomic

USER_ROLES = ["CASHIER", "ATTENDANT", "ADMIN", "WAREHOUSE", "MANAGER"]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store-name', default=None, help='Create a first store with this name')
@click.option('--store-code', default=None, help='Code for the first store (used in invoice numbers)')
@with_appcontext
def init_system(store_name, store_code):
    """
    Provision the fixed resources every installation needs.

    Creates (if missing):
    - the central warehouse ("Gudang Pusat" unless CENTRAL_WAREHOUSE_NAME says otherwise)
    - the general walk-in customer (is_default_customer=True)
    - optionally a first store
    """
    click.echo("START Initializing tokopos...")

    provisioned = provisioning_service.provision_defaults()
    warehouse = provisioned["warehouse"]
    customer = provisioned["default_customer"]
    click.echo(f"PASS Central warehouse: {warehouse.name} (ID: {warehouse.id})")
    click.echo(f"PASS General customer: {customer.name} (ID: {customer.id})")

    if store_name and store_code:
        store = db.session.query(Store).filter_by(code=store_code.upper()).first()
        if store is None:
            store = Store(name=store_name, code=store_code.upper(), is_active=True)
            db.session.add(store)
            db.session.commit()
            click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")
        else:
            click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")
    elif store_name or store_code:
        click.echo("WARN Both --store-name and --store-code are needed to create a store; skipped")

    click.echo("PASS Initialization complete")


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


@click.group('stores')
def stores_group():
    """Store seeding commands."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', required=True, help='Short code (unique, used in invoice numbers)')
@with_appcontext
def create_store_cli(name, code):
    code = code.upper()
    if db.session.query(Store).filter_by(code=code).first():
        click.echo(f"FAIL Store code '{code}' already exists")
        return
    store = Store(name=name, code=code, is_active=True)
    db.session.add(store)
    db.session.commit()
    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")


@click.group('users')
def users_group():
    """User seeding commands."""


@users_group.command('create')
@click.option('--name', required=True, help='Display name')
@click.option('--username', required=True, help='Username (unique)')
@click.option('--role', type=click.Choice(USER_ROLES, case_sensitive=False), default='CASHIER', show_default=True)
@click.option('--store-id', type=int, default=None, help='Home store')
@with_appcontext
def create_user_cli(name, username, role, store_id):
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL Username '{username}' already exists")
        return
    if store_id is not None and db.session.get(Store, store_id) is None:
        click.echo(f"FAIL Store ID {store_id} not found")
        return
    user = User(name=name, username=username, role=role.upper(), store_id=store_id, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Role: {user.role})")


@click.group('warehouse')
def warehouse_group():
    """Central warehouse stock commands."""


@warehouse_group.command('stock')
@with_appcontext
def list_stock():
    """List central warehouse stock."""
    warehouse = provisioning_service.get_or_create_central_warehouse()
    db.session.commit()
    rows = (
        db.session.query(WarehouseProduct)
        .filter_by(warehouse_id=warehouse.id)
        .order_by(WarehouseProduct.product_id)
        .all()
    )
    click.echo(f"\nSTOCK {warehouse.name}:")
    click.echo("=" * 60)
    if not rows:
        click.echo("  (empty)")
    for row in rows:
        click.echo(f"  [{row.product_id}] {row.product.code:<16} {row.product.name:<28} {row.quantity:>8}")


@warehouse_group.command('restock')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--quantity', type=int, required=True, help='Quantity to add')
@with_appcontext
def restock(product_id, quantity):
    """Add quantity to the central warehouse (seeding and corrections)."""
    def _op() -> int:
        warehouse = provisioning_service.get_or_create_central_warehouse()
        row = stock_service.increment_warehouse_stock(
            warehouse.id,
            product_id,
            quantity,
            reference="CLI-RESTOCK",
            movement_type=stock_service.MOVEMENT_RESTOCK,
        )
        return row.quantity

    try:
        new_quantity = run_atomic(_op)
    except CoreError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Product {product_id} now has {new_quantity} in the central warehouse")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouse_group)
