# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storefront (PowerShell: $env:FLASK_APP="storefront").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent). Use `flask db upgrade` for migrated deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role admin]
#   List accounts with role and active status.
# - python -m flask users create --email admin@shop.local --password "Password123!" --role admin
#   Create an account (prompts if options are omitted).
# - python -m flask users set-role admin@shop.local admin
#   Promote or demote an existing account.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired or revoked sessions older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services.auth_service import create_user, set_role, PasswordValidationError
from .services import session_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create every table that doesn't exist yet."""
    click.echo("START Initializing storefront database...")
    db.create_all()
    click.echo("PASS Tables ready")


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

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@click.option('--role', type=click.Choice(list(ROLES)), default='customer', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, password, name, role):
    """
    Create a new account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email=email, password=password, name=name, role=role)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(ROLES)))
@with_appcontext
def set_role_cli(email, role):
    """Change the role of an existing account."""
    try:
        user = set_role(email, role)
        click.echo(f"PASS {user.email} is now '{user.role}'")
    except ValidationError as e:
        click.echo(f"FAIL {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all accounts."""
    query = db.session.query(User).order_by(User.id.asc())
    if role:
        query = query.filter_by(role=role)

    users = query.all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {(user.name or '-'):<25} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked sessions older than 30 days."""
    count = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {count} stale session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
