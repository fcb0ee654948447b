# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/genepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (existing data is kept).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--shop-id 1]
#   List users with role, shop and active status.
# - python -m flask users create --name "Owner" --email owner@genepos.local --password "Password123!" --role owner
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, User, USER_ROLES
from .services.auth_service import PasswordValidationError, email_taken, hash_password
from .services.session_service import cleanup_expired_sessions


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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


@users_group.command('list')
@click.option('--shop-id', type=int, help='Only users affiliated with this shop')
@with_appcontext
def list_users_cli(shop_id):
    """List users with role, shop and active status."""
    query = db.session.query(User).order_by(User.id.asc())
    if shop_id is not None:
        query = query.filter(User.shop_id == shop_id)
    users = query.all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<32} {'Role':<14} {'Shop':<6} {'Active'}")
    click.echo("="*90)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        shop_str = str(user.shop_id) if user.shop_id is not None else "-"
        click.echo(f"{user.id:<5} {user.name[:24]:<24} {user.email[:32]:<32} {user.role:<14} {shop_str:<6} {active_str}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), prompt=True, help='Role')
@click.option('--shop-id', type=int, help='Shop to affiliate the user with')
@with_appcontext
def create_user_cli(name, email, password, role, shop_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    email = email.strip().lower()
    if email_taken(email):
        click.echo(f"FAIL A user with email '{email}' already exists")
        raise SystemExit(1)

    if shop_id is not None and db.session.get(Shop, shop_id) is None:
        click.echo(f"FAIL Shop ID {shop_id} not found")
        raise SystemExit(1)

    try:
        password_hash = hash_password(password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)

    user = User(
        name=name.strip(),
        email=email,
        password_hash=password_hash,
        role=role,
        shop_id=shop_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{role}' (ID: {user.id})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Delete expired or revoked sessions older than the retention window.

    Default retention: 30 days.
    """
    deleted = cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
