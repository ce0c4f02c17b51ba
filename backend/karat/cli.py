# Overview: Flask CLI command groups for bootstrap, inspection, and periodic jobs.

# backend/karat/cli.py
# Commands (run from the backend directory with FLASK_APP=wsgi.py):
#
# - python -m flask system init [--shop "Shop Name"] [--shop-code MAIN]
#   Idempotent bootstrap: creates a shop and one user per role.
# - python -m flask users create --shop-id 1 --username sara --email sara@shop.local --password "..." --role SALES
#   Create a staff account (prompts for the password if omitted).
# - python -m flask emi mark-overdue [--shop-id 1]
#   Mark past-due installments OVERDUE. Safe to run repeatedly; schedule daily from cron.
# - python -m flask rates list --shop-id 1
#   Show the current rate per metal type and purity.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, User
from .models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES, VALID_ROLES
from .services import emi_service, rate_service
from .services.auth_service import PasswordValidationError, create_user
from .services.errors import KaratError
from .services.metrics import resolve


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--shop', 'shop_name', default='Main Showroom', help='Shop name')
@click.option('--shop-code', default='MAIN', help='Shop code')
@with_appcontext
def init_system(shop_name, shop_code):
    """
    Create the schema if missing, a shop, and owner/sales/accounts users.

    All default passwords are "Password123!". Change them.
    """
    db.create_all()

    shop = db.session.query(Shop).filter_by(code=shop_code).first()
    if not shop:
        shop = Shop(name=shop_name, code=shop_code)
        db.session.add(shop)
        db.session.commit()
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Code: {shop.code})")
    else:
        click.echo(f"PASS Using existing shop: {shop.name} (ID: {shop.id})")

    for username, role in (("owner", ROLE_OWNER), ("sales", ROLE_SALES), ("accounts", ROLE_ACCOUNTS)):
        if db.session.query(User).filter_by(shop_id=shop.id, username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping")
            continue
        user = create_user(shop.id, username, f"{username}@{shop_code.lower()}.local", DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role {role}")

    click.echo(f"\nDefault password for all users: {DEFAULT_PASSWORD} (change it)")


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--username', required=True)
@click.option('--email', required=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(VALID_ROLES), default=ROLE_SALES, show_default=True)
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cli(shop_id, username, email, password, role, name):
    try:
        user = create_user(shop_id, username, email, password, role=role, name=name)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except KaratError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Role: {user.role})")


@users_group.command('list')
@click.option('--shop-id', type=int, default=None)
@with_appcontext
def list_users(shop_id):
    query = db.session.query(User)
    if shop_id is not None:
        query = query.filter_by(shop_id=shop_id)
    users = query.order_by(User.shop_id, User.id).all()
    if not users:
        click.echo("No users found.")
        return
    click.echo(f"{'ID':<5} {'Shop':<6} {'Username':<20} {'Role':<10} {'Active'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.shop_id:<6} {user.username:<20} {user.role:<10} {'yes' if user.is_active else 'no'}")


@click.group('emi')
def emi_group():
    """EMI maintenance commands."""


@emi_group.command('mark-overdue')
@click.option('--shop-id', type=int, default=None, help='Limit to one shop')
@with_appcontext
def mark_overdue(shop_id):
    """Mark past-due unpaid installments OVERDUE (idempotent)."""
    metrics = resolve(current_app.extensions.get("karat.metrics"))
    result = emi_service.mark_overdue_installments(shop_id=shop_id, metrics=metrics)
    current_app.logger.info(
        "overdue sweep: %s installments, %s plans marked", result.installments_marked, result.plans_marked
    )
    click.echo(f"PASS Marked {result.installments_marked} installment(s) and {result.plans_marked} plan(s) overdue")


@click.group('rates')
def rates_group():
    """Rate master inspection."""


@rates_group.command('list')
@click.option('--shop-id', type=int, required=True)
@with_appcontext
def list_current_rates(shop_id):
    rates = rate_service.get_all_current_rates(shop_id)
    if not rates:
        click.echo("No current rates.")
        return
    click.echo(f"{'Metal':<10} {'Purity':<8} {'Rate/g':>12}  {'Since'}")
    for rate in rates:
        click.echo(f"{rate.metal_type:<10} {rate.purity:<8} {rate.rate_per_gram:>12}  {rate.effective_date:%Y-%m-%d %H:%M}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(emi_group)
    app.cli.add_command(rates_group)
