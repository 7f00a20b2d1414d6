# Overview: Flask CLI command groups for bootstrap, seeding, and ledger verification.

# backend/retail_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema/bootstrap:
# - python -m flask ledger init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask ledger seed --products 5 --variants-per-product 3
#   Create demo products and variants with opening stock.
#
# Consistency:
# - python -m flask ledger verify [--fix | --no-fix]
#   Replay every variant's stock ledger and every sale's line-items and compare
#   them with the cached stock and total_price. --no-fix exits non-zero on any
#   divergence instead of repairing.
#
# Users:
# - python -m flask users create --name "Admin" --email admin@example.com --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users list

import random

import click
from flask.cli import with_appcontext

from .core import get_ledger
from .errors import ConsistencyError
from .extensions import db
from .models import User
from .services.auth_service import register_user, PasswordValidationError
from .validation import ConflictError

SEED_COLORS = ["Black", "White", "Navy", "Red", "Olive"]
SEED_SIZES = ["S", "M", "L", "XL"]
SEED_CATEGORIES = ["Shirts", "Trousers", "Outerwear", "Accessories"]


@click.group('ledger')
def ledger_group():
    """Schema, seed data and consistency checks."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current models."""
    db.create_all()
    click.echo("PASS Tables created")


@ledger_group.command('seed')
@click.option('--products', 'product_count', default=5, show_default=True, type=click.IntRange(min=1))
@click.option('--variants-per-product', default=3, show_default=True, type=click.IntRange(min=1))
@click.option('--seed', 'random_seed', default=None, type=int, help='Random seed for repeatable data')
@with_appcontext
def seed(product_count, variants_per_product, random_seed):
    """Create demo products and variants; opening stock is booked as 'in' movements."""
    rng = random.Random(random_seed)
    ledger = get_ledger()

    for n in range(1, product_count + 1):
        product = ledger.catalog.create_product({
            "name": f"Demo Product {n}",
            "description": "Seeded demo product",
            "category": rng.choice(SEED_CATEGORIES),
        })
        for _ in range(variants_per_product):
            ledger.catalog.create_variant(
                product.id,
                {
                    "color": rng.choice(SEED_COLORS),
                    "size": rng.choice(SEED_SIZES),
                    "price": f"{rng.randint(500, 15000) / 100:.2f}",
                },
                initial_stock=rng.randint(0, 50),
            )
        click.echo(f"PASS Created product {product.name} (ID: {product.id}) with {variants_per_product} variants")


@ledger_group.command('verify')
@click.option('--fix/--no-fix', default=True, show_default=True, help='Repair caches instead of failing')
@with_appcontext
def verify(fix):
    """Compare cached stock and sale totals against their ledgers."""
    ledger = get_ledger()
    try:
        report = ledger.reconcile_all(strict=not fix)
    except ConsistencyError as e:
        click.echo(f"FAIL {e} {e.details}")
        raise SystemExit(1)

    bad = 0
    for row in report["stock"]:
        if not row["ok"]:
            bad += 1
            click.echo(f"FAIL variant {row['product_variant_id']}: {row.get('error')}")
        elif row["repaired"]:
            click.echo(f"FIXED variant {row['product_variant_id']}: cached={row['cached']} ledger={row['ledger']}")
    for row in report["sales"]:
        if row["repaired"]:
            click.echo(f"FIXED sale {row['sales_id']}: stored={row['stored']} recomputed={row['recomputed']}")

    click.echo(f"Checked {len(report['stock'])} variants and {len(report['sales'])} sales")
    if bad:
        raise SystemExit(1)


@click.group('users')
def users_group():
    """User inspection/bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role:<6} {status}  {user.name}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['admin', 'staff']), default='staff', show_default=True)
@with_appcontext
def create_user_cmd(name, email, password, role):
    """Create a user."""
    try:
        user = register_user(name=name, email=email, password=password, role=role)
    except (PasswordValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
    app.cli.add_command(users_group)
