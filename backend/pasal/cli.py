# Overview: Flask CLI command group for bootstrap and maintenance.

# backend/pasal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask pasal <command> [options]
#
# - python -m flask pasal init-db
#   Create all tables (if missing) and the default settings record.
# - python -m flask pasal reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask pasal seed
#   Insert a demo product and customer. Skips records that already exist.
# - python -m flask pasal check-balances [--fix]
#   Compare each customer's balance with the sum of their sales' due amounts.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product
from .services import products_service, receivables_service
from .services.settings_service import get_settings


@click.group('pasal')
def pasal_group():
    """Database bootstrap and maintenance commands."""


@pasal_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and the settings record. Safe to run repeatedly."""
    db.create_all()
    setting = get_settings()
    click.echo(f"PASS Database ready for {setting.store_name} ({setting.currency}, tax {setting.tax_rate})")


@pasal_group.command('reset-db')
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


@pasal_group.command('seed')
@with_appcontext
def seed():
    """Insert a demo product (pcs/pack/box) and a demo customer."""
    db.create_all()

    if db.session.query(Product).filter_by(name="Instant Noodles").first():
        click.echo("SKIP Demo product already exists")
    else:
        product = products_service.create_product({
            "name": "Instant Noodles",
            "category": "Dry Goods",
            "units": [
                {"name": "pcs", "multiplier": 1, "price": "0.50"},
                {"name": "pack", "multiplier": 5, "price": "2.25"},
                {"name": "box", "multiplier": 30},
            ],
            "quantity": 4,
            "stock_input_unit_level": 2,
        })
        click.echo(f"PASS Created product {product.name} (ID: {product.id}, stock: {product.quantity} pcs)")

    if db.session.query(Customer).filter_by(name="Walk-in Regular").first():
        click.echo("SKIP Demo customer already exists")
    else:
        customer = Customer(name="Walk-in Regular", phone="555-0100")
        db.session.add(customer)
        db.session.commit()
        click.echo(f"PASS Created customer {customer.name} (ID: {customer.id})")


@pasal_group.command('check-balances')
@click.option('--fix', is_flag=True, help='Overwrite mismatched balances with the sales total')
@with_appcontext
def check_balances(fix):
    """Report customers whose balance differs from the sum of their sales' due amounts."""
    mismatches = 0
    for customer in db.session.query(Customer).order_by(Customer.id.asc()).all():
        expected = receivables_service.outstanding_total(customer.id)
        balance = Decimal(customer.balance)
        if balance == expected:
            continue
        mismatches += 1
        click.echo(f"FAIL Customer {customer.id} ({customer.name}): balance {balance}, sales due {expected}")
        if fix:
            customer.balance = expected

    if fix and mismatches:
        db.session.commit()
        click.echo(f"PASS Fixed {mismatches} balance(s)")
    elif mismatches:
        click.echo(f"WARN {mismatches} mismatched balance(s); rerun with --fix to repair")
    else:
        click.echo("PASS All customer balances match their sales")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pasal_group)
