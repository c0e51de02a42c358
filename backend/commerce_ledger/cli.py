# Overview: Flask CLI command groups for schema bootstrap and ledger inspection.

# backend/commerce_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema bootstrap:
# - python -m flask db upgrade
#   Apply the Alembic migrations in backend/migrations.
# - python -m flask ledger init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Register inspection:
# - python -m flask registers list --store-id 1 [--status open]
#   List registers with balances and variance.
# - python -m flask registers status --store-id 1
#   Show the open register and its running balance.
#
# Stock inspection:
# - python -m flask stock low --store-id 1
#   List quantity products at or below their minimum.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import RegisterStatus
from .services import register_service, stock_service


def _cents(value) -> str:
    if value is None:
        return "-"
    return f"{value / 100:.2f}"


@click.group('ledger')
def ledger_group():
    """Schema bootstrap commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing data is left untouched."""
    db.create_all()
    click.echo("PASS Database schema is ready.")


@ledger_group.command('reset-db')
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


@click.group('registers')
def registers_group():
    """Cash register inspection commands."""


@registers_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--status', type=click.Choice([RegisterStatus.OPEN, RegisterStatus.CLOSED]), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_registers_cli(store_id, status, limit):
    """
    List registers of a store, newest first.

    Example:
        flask registers list --store-id 1
        flask registers list --store-id 1 --status closed
    """
    registers = register_service.list_registers(store_id, status=status, limit=limit)

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<22} {'Opening':>10} {'Expected':>10} {'Counted':>10} {'Variance':>10} {'Reconciled'}")
    click.echo("="*100)

    for register in registers:
        opened = register.opened_at.strftime("%Y-%m-%d %H:%M:%S") if register.opened_at else "-"
        click.echo(
            f"{register.id:<5} {register.status:<8} {opened:<22} "
            f"{_cents(register.opening_balance_cents):>10} {_cents(register.expected_balance_cents):>10} "
            f"{_cents(register.closing_balance_cents):>10} {_cents(register.variance_cents):>10} "
            f"{'Yes' if register.reconciled else 'No'}"
        )

    click.echo("="*100 + "\n")


@registers_group.command('status')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def register_status_cli(store_id):
    """Show the open register and its running balance."""
    register = register_service.get_open_register(store_id)
    if register is None:
        click.echo("No open register.")
        return

    balance, totals = register_service.running_balance(register)
    click.echo(f"Register {register.id} open since {register.opened_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"  Opening balance: {_cents(register.opening_balance_cents)}")
    click.echo(f"  Cash in:         {_cents(totals.total_in)}")
    click.echo(f"  Cash out:        {_cents(totals.total_out)}")
    click.echo(f"  Movements:       {totals.count}")
    click.echo(f"  Running balance: {_cents(balance)}")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('low')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def low_stock_cli(store_id):
    """List quantity products at or below their minimum quantity."""
    products = stock_service.get_low_stock(store_id)

    if not products:
        click.echo("No low stock products.")
        return

    click.echo(f"{'ID':<6} {'SKU':<16} {'Name':<32} {'Qty':>6} {'Min':>6}")
    for product in products:
        click.echo(f"{product.id:<6} {(product.sku or '-'):<16} {product.name[:32]:<32} {product.quantity:>6} {product.min_qty:>6}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(stock_group)
