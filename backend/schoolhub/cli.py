# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--school "Amman Academy"] [--school-code AMM]
#   Idempotent bootstrap: super admin, a first school, and its school admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Schools (tenants):
# - python -m flask schools list
# - python -m flask schools create --name "Amman Academy" --code AMM
#
# Users:
# - python -m flask users list [--school-id 1]
# - python -m flask users create --school-id 1 --email finance@school.local --full-name "Finance Office" --role finance
#
# Notifications:
# - python -m flask notifications dispatch [--batch-size 100]
#   Deliver one batch of pending outbox notifications.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked sessions older than the retention window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ApiError
from .extensions import db
from .models import School, Student, User
from .roles import Role, SUPER_ADMIN_ROLE
from .services import notification_service, school_service, session_service
from .services.auth_service import create_user


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--school', 'school_name', default='Demo School', help='First school name')
@click.option('--school-code', default='DEMO', help='First school code')
@click.option('--password', default=DEFAULT_PASSWORD, help='Password for the bootstrap accounts')
@with_appcontext
def init_system(school_name, school_code, password):
    """
    Initialize SchoolHub: a super admin, a first school, and its admin.

    Creates (if missing):
    - superadmin@schoolhub.local (super_admin, no school)
    - The first school
    - admin@<code>.schoolhub.local (school_admin of that school)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing SchoolHub...")

    try:
        super_admin = db.session.query(User).filter_by(role=SUPER_ADMIN_ROLE.value).first()
        if not super_admin:
            super_admin = create_user(
                email="superadmin@schoolhub.local",
                password=password,
                full_name="Super Admin",
                role=SUPER_ADMIN_ROLE,
            )
            click.echo(f"PASS Created super admin: {super_admin.email}")
        else:
            click.echo(f"PASS Using existing super admin: {super_admin.email}")

        school = db.session.query(School).filter_by(code=school_code.upper()).first()
        if not school:
            school = school_service.create_school(school_name, school_code)
            click.echo(f"PASS Created school: {school.name} (ID: {school.id}, Code: {school.code})")
        else:
            click.echo(f"PASS Using existing school: {school.name} (ID: {school.id})")

        admin_email = f"admin@{school.code.lower()}.schoolhub.local"
        admin = db.session.query(User).filter_by(email=admin_email).first()
        if not admin:
            admin = create_user(
                email=admin_email,
                password=password,
                full_name=f"{school.name} Admin",
                role=Role.SCHOOL_ADMIN,
                school_id=school.id,
            )
            click.echo(f"PASS Created school admin: {admin.email}")
        else:
            click.echo(f"PASS Using existing school admin: {admin.email}")

    except ApiError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo("DONE SchoolHub initialized.")


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


# =============================================================================
# SCHOOL (TENANT) COMMANDS
# =============================================================================

@click.group('schools')
def schools_group():
    """School (tenant) management commands."""


@schools_group.command('list')
@with_appcontext
def list_schools_cli():
    """List all schools."""
    schools = school_service.list_schools()

    if not schools:
        click.echo("No schools found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<12} {'Active':<8} {'Students':<10} {'Users'}")
    click.echo("="*80)

    for school in schools:
        student_count = db.session.query(Student).filter_by(school_id=school.id).count()
        user_count = db.session.query(User).filter_by(school_id=school.id).count()
        active_str = "Yes" if school.is_active else "No"

        click.echo(f"{school.id:<5} {school.name:<30} {school.code or '-':<12} {active_str:<8} {student_count:<10} {user_count}")

    click.echo("="*80 + "\n")


@schools_group.command('create')
@click.option('--name', required=True, help='School name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_school_cli(name, code):
    """Create a new school (tenant)."""
    try:
        school = school_service.create_school(name, code)
    except ApiError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created school: {school.name} (ID: {school.id}, Code: {school.code})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--school-id', type=int, help='School ID (omit only for super_admin)')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(school_id, email, full_name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            school_id=school_id,
        )
    except ApiError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    if user.school_id:
        click.echo(f"     School ID: {user.school_id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--school-id', type=int, help='Filter by school ID')
@with_appcontext
def list_users(school_id):
    """List all users with their roles."""
    query = db.session.query(User)

    if school_id:
        query = query.filter_by(school_id=school_id)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'School':<7} {'Email':<35} {'Role':<16} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        school_str = str(user.school_id) if user.school_id else "-"
        click.echo(f"{user.id:<5} {school_str:<7} {user.email:<35} {user.role:<16} {active_str}")

    click.echo("="*90 + "\n")


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@click.group('notifications')
def notifications_group():
    """Notification outbox commands."""


@notifications_group.command('dispatch')
@click.option('--batch-size', type=int, default=None, help='Max rows to process (default from config)')
@with_appcontext
def dispatch_notifications_cli(batch_size):
    """Deliver pending notifications using the logging sender."""
    size = batch_size or current_app.config.get("NOTIFICATION_BATCH_SIZE", 100)
    counts = notification_service.dispatch_pending(batch_size=size)
    click.echo(
        "Dispatched: {sent} sent, {skipped} skipped, {failed} failed, {retry} queued for retry.".format(**counts)
    )


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired and revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(schools_group)
    app.cli.add_command(users_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(maintenance_group)
