# Overview: Flask CLI command groups for administrator bootstrap and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Administrators:
# - python -m flask admins create --email admin@example.com --name "Store Admin"
#   Create an administrator (prompts for the password).
# - python -m flask admins list
#   List administrators with verification status and live session count.
#
# Maintenance:
# - python -m flask maintenance cleanup-expired
#   Delete expired admin/customer sessions and expired verification tokens.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import AuthError
from .models import Admin, PrincipalClass
from .services import auth_service, session_service
from .services import maintenance_service


@click.group('admins')
def admins_group():
    """Administrator bootstrap and inspection commands."""


@admins_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(email, name, password):
    """Create an administrator with a password credential."""
    try:
        admin = auth_service.create_admin(email=email, password=password, name=name)
    except AuthError as e:
        db.session.rollback()
        raise click.ClickException(f"{e.code.value}: {e.message}")

    click.echo(f"PASS Created admin {admin.email} (ID: {admin.id})")


@admins_group.command('list')
@with_appcontext
def list_admins_cli():
    """List administrators."""
    admins = db.session.query(Admin).order_by(Admin.created_at.asc()).all()
    if not admins:
        click.echo("No administrators found.")
        return

    for admin in admins:
        sessions = session_service.list_active_sessions(PrincipalClass.ADMIN, admin.id)
        verified = "verified" if admin.email_verified else "unverified"
        click.echo(f"{admin.id}  {admin.email:<40} {admin.name:<24} {verified:<10} sessions={len(sessions)}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-expired')
@with_appcontext
def cleanup_expired_cli():
    """Delete expired sessions and verification tokens."""
    counts = maintenance_service.cleanup_expired()
    click.echo(
        f"Deleted {counts['admin_sessions']} admin sessions, "
        f"{counts['customer_sessions']} customer sessions, "
        f"{counts['verification_tokens']} verification tokens."
    )


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


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(admins_group)
    app.cli.add_command(maintenance_group)
