# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "Password123!"]
#   Idempotent bootstrap: creates tables, default payment types and the super-admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with unit links and active status.
# - python -m flask users create --name "Jane" --user-name jane --password "Password123!" [--super-admin]
#   Create a user (prompts if options are omitted).
# - python -m flask users grant-units jane 1 2 3
#   Replace the units a user may work with.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
# - python -m flask maintenance cleanup-security-events --retention-days 90
# - python -m flask maintenance cleanup-images [--dry-run]
#   Delete stored image files that no expense image row refers to.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, PaymentType
from .permissions import CAPABILITY_FLAGS
from .services import maintenance_service, session_service, user_service
from .services.unit_access_service import set_user_units
from .validation import ValidationError, ConflictError


DEFAULT_PAYMENT_TYPES = [
    ("Cash", "CA"),
    ("Card", "CC"),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-user-name', default='admin', show_default=True, help='Super-admin login name')
@click.option('--admin-password', default='Password123!', help='Super-admin password')
@with_appcontext
def init_system(admin_user_name, admin_password):
    """
    Initialize the database: tables, default payment types and the super-admin.

    Safe to run repeatedly; existing rows are left alone.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing unitops...")

    db.create_all()
    click.echo("PASS Tables created")

    for name, abbreviation in DEFAULT_PAYMENT_TYPES:
        if db.session.query(PaymentType).filter_by(name=name).first():
            click.echo(f"WARN  Payment type '{name}' already exists, skipping...")
            continue
        db.session.add(PaymentType(name=name, abbreviation=abbreviation, active=True))
        click.echo(f"PASS Created payment type: {name} ({abbreviation})")
    db.session.commit()

    if db.session.query(User).filter_by(is_super_admin=True).first():
        click.echo("WARN  A super-admin already exists, skipping...")
    else:
        try:
            user = _create_user("Administrator", admin_user_name, admin_password, super_admin=True)
            click.echo(f"PASS Created super-admin: {user.user_name} (ID: {user.id})")
        except (ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create super-admin '{admin_user_name}': {e}")

    click.echo("\nDONE unitops initialized. Change the default password in production!")


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


def _create_user(name, user_name, password, *, super_admin=False):
    """
    Create a user through the regular user service.

    The super-admin gets every page flag; the role itself is only settable here.
    """
    page_access = {flag: True for flag in CAPABILITY_FLAGS.values()} if super_admin else {}
    user = user_service.create_user({
        "name": name,
        "user_name": user_name,
        "password": password,
        "page_access": page_access,
    })
    if super_admin:
        user.is_super_admin = True
        db.session.commit()
    return user


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--user-name', prompt=True, help='Login name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--super-admin', is_flag=True, help='Grant the super-admin role')
@with_appcontext
def create_user_cli(name, user_name, password, super_admin):
    """Create a user."""
    try:
        user = _create_user(name, user_name, password, super_admin=super_admin)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    role = "super-admin" if user.is_super_admin else "user"
    click.echo(f"PASS Created {role}: {user.user_name} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their unit links."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'User name':<20} {'Name':<25} {'Active':<8} {'Super':<7} {'Units'}")
    click.echo("="*90)

    for user in users:
        unit_ids = sorted(link.unit_id for link in user.unit_access)
        units_str = ", ".join(str(u) for u in unit_ids) if unit_ids else "none"
        active_str = "Yes" if user.active else "No"
        super_str = "Yes" if user.is_super_admin else "No"

        click.echo(f"{user.id:<5} {user.user_name:<20} {user.name:<25} {active_str:<8} {super_str:<7} {units_str}")

    click.echo("="*90 + "\n")


@users_group.command('grant-units')
@click.argument('user_name')
@click.argument('unit_ids', nargs=-1, type=int)
@with_appcontext
def grant_units_cli(user_name, unit_ids):
    """Replace the units USER_NAME may work with."""
    user = db.session.query(User).filter_by(user_name=user_name).first()
    if not user:
        raise click.ClickException(f"User '{user_name}' not found")

    try:
        set_user_units(user, list(unit_ids))
    except ValueError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    db.session.commit()

    click.echo(f"PASS {user.user_name} -> units {', '.join(str(u) for u in unit_ids) or 'none'}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('cleanup-images')
@click.option('--dry-run', is_flag=True, help='List orphaned files without deleting them')
@with_appcontext
def cleanup_images_cli(dry_run):
    """Delete image files that no expense image row refers to."""
    if dry_run:
        orphans = maintenance_service.find_orphaned_image_files()
        for name in orphans:
            click.echo(name)
        click.echo(f"{len(orphans)} orphaned files.")
        return

    removed = maintenance_service.remove_orphaned_image_files()
    click.echo(f"Removed {removed} orphaned files.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
