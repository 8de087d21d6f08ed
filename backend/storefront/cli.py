# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app storefront <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app storefront system init --email admin@ehsaasjewellery.com --password "Password123!"
#   Idempotent bootstrap: creates tables (if missing) and the first super admin.
# - python -m flask --app storefront system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app storefront system cleanup-sessions
#   Delete expired/revoked sessions older than 30 days.
#
# User inspection/bootstrap:
# - python -m flask --app storefront users list [--role admin]
# - python -m flask --app storefront users create --email a@b.com --password "Password123!" --role admin
# - python -m flask --app storefront users set-role --email a@b.com --role customer
#
# Catalog:
# - python -m flask --app storefront catalog list
# - python -m flask --app storefront catalog seed-demo
#   Create a sample ring with size/color variants.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User, ACCOUNT_TYPES
from .services.auth_service import create_user, PasswordValidationError
from .services import catalog_service, session_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and maintenance."""


@system_group.command('init')
@click.option('--email', default='admin@ehsaasjewellery.com', help='Super admin email')
@click.option('--password', default='Password123!', help='Super admin password')
@with_appcontext
def init_system(email, password):
    """Create tables and the first super admin (safe to re-run)."""
    click.echo("START Initializing storefront...")

    db.create_all()
    click.echo("PASS Database tables ready")

    existing = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{existing.email}' already exists, skipping...")
    else:
        try:
            user = create_user(email, password, first_name="Store", last_name="Admin", account_type="super_admin")
            click.echo(f"PASS Created super admin: {user.email} (ID: {user.id})")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
            return
        except (ConflictError, ValidationError) as e:
            click.echo(f"FAIL Failed to create super admin: {str(e)}")
            return

    click.echo("DONE Storefront initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} expired/revoked sessions")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@click.option('--role', type=click.Choice(ACCOUNT_TYPES), help='Filter by account type')
@with_appcontext
def list_users(role):
    query = db.session.query(User)
    if role:
        query = query.filter(User.account_type == role)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Role':<12} {'Active':<8} {'Guest'}")
    click.echo("=" * 80)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.email:<40} {user.account_type:<12} "
            f"{'yes' if user.is_active else 'no':<8} {'yes' if user.is_guest else 'no'}"
        )
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--first-name', default='User', help='First name')
@click.option('--last-name', default='', help='Last name')
@click.option('--role', type=click.Choice(ACCOUNT_TYPES), default='customer', help='Account type')
@with_appcontext
def create_user_cli(email, password, first_name, last_name, role):
    try:
        user = create_user(email, password, first_name=first_name, last_name=last_name, account_type=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.account_type}'")


@users_group.command('set-role')
@click.option('--email', required=True, help='Email address')
@click.option('--role', type=click.Choice(ACCOUNT_TYPES), required=True, help='New account type')
@with_appcontext
def set_role_cli(email, role):
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    user.account_type = role
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Role changed")
    click.echo(f"PASS {user.email} is now '{role}' ({revoked} sessions revoked)")


@click.group('catalog')
def catalog_group():
    """Catalog inspection and demo data."""


@catalog_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products_cli(include_inactive):
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    products = query.order_by(Product.id.asc()).all()

    if not products:
        click.echo("No products found.")
        return

    for p in products:
        variant_count = len(catalog_service.load_variant_catalog(p.id).variants)
        price = p.sale_price_paise if p.sale_price_paise else p.price_paise
        click.echo(f"{p.id:<5} {p.sku:<16} {p.name:<40} ₹{price / 100:,.2f}  variants={variant_count}")


@catalog_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create a demo ring (base + size/color variants) if its SKU is free."""
    try:
        product = catalog_service.create_product(
            patch={
                "sku": "EJ-RING-001",
                "name": "Kundan Cocktail Ring",
                "description": "Handcrafted kundan ring in 925 silver.",
                "price_paise": 200000,
                "sale_price_paise": 160000,
                "stock_quantity": 10,
                "material": "925 Silver",
                "featured": True,
                "category": "Rings",
            },
            images=[{"url": "https://example.com/ring-front.jpg"}, {"url": "https://example.com/ring-side.jpg"}],
        )
    except ConflictError:
        click.echo("WARN  Demo product already exists, skipping...")
        return

    catalog_service.create_product_variants(
        product.id,
        options=[
            {"name": "size", "display_name": "Size", "values": [{"value": "S"}, {"value": "M"}]},
            {"name": "color", "display_name": "Color", "values": [{"value": "Red"}, {"value": "Green"}]},
        ],
        variants=[
            {"name": "Standard", "price_paise": None, "stock_quantity": 10, "option_values": []},
            {"name": "Red / M", "price_paise": 180000, "stock_quantity": 3,
             "option_values": [{"option_name": "color", "value": "Red"}, {"option_name": "size", "value": "M"}]},
            {"name": "Green / S", "price_paise": 175000, "stock_quantity": 0,
             "option_values": [{"option_name": "color", "value": "Green"}, {"option_name": "size", "value": "S"}]},
        ],
    )
    click.echo(f"PASS Created demo product {product.sku} (ID: {product.id}) with 3 variants")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
