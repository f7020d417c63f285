# Overview: Flask CLI command groups for bootstrap, inspection, and reporting.

# backend/shoptally/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email owner@shoptally.local]
#   Idempotent bootstrap: creates tables, an owner user and its default business profile.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and business profiles:
# - python -m flask users list
# - python -m flask users create --email a@b.c [--company "Acme"]
# - python -m flask users add-business --user-id 1 --business-id shop2 --name "Second Shop" [--low-stock 5]
#
# Sessions:
# - python -m flask sessions issue --user-id 1
#   Print a bearer token for API calls.
# - python -m flask sessions revoke <token>
#
# Reports:
# - python -m flask reports finance --user-id 1 [--business-id default] [--yearly] [--year 2026] [--month 3]

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import BusinessProfile, User
from .models.auth import DEFAULT_BUSINESS_ID
from .services import reporting_service, session_service
from .services.scope_service import Scope


def _ensure_default_profile(user: User) -> BusinessProfile:
    profile = db.session.query(BusinessProfile).filter_by(
        user_id=user.id, business_id=DEFAULT_BUSINESS_ID
    ).first()
    if not profile:
        profile = BusinessProfile(
            user_id=user.id,
            business_id=DEFAULT_BUSINESS_ID,
            name=user.company_name or "My Business",
        )
        db.session.add(profile)
    return profile


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='owner@shoptally.local', help='Owner email')
@click.option('--company', default='My Business', help='Company name')
@with_appcontext
def init_system(email, company):
    """Create tables, an owner user and its default business profile."""
    click.echo("START Initializing shoptally...")
    db.create_all()

    user = db.session.query(User).filter_by(email=email).first()
    if user:
        click.echo(f"PASS Using existing user: {user.email} (ID: {user.id})")
    else:
        user = User(email=email, company_name=company, active_business_id=DEFAULT_BUSINESS_ID)
        db.session.add(user)
        db.session.flush()
        click.echo(f"PASS Created user: {user.email} (ID: {user.id})")

    _ensure_default_profile(user)
    db.session.commit()

    click.echo("DONE shoptally initialized. Issue a token with: python -m flask sessions issue "
               f"--user-id {user.id}")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Active business':<20} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.email:<35} {user.active_business_id:<20} {active_str}")
    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--company', default=None, help='Company name')
@with_appcontext
def create_user_cli(email, company):
    """Create a user with a default business profile."""
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User '{email}' already exists")
        return

    user = User(email=email, company_name=company, active_business_id=DEFAULT_BUSINESS_ID)
    db.session.add(user)
    db.session.flush()
    _ensure_default_profile(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@users_group.command('add-business')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--business-id', required=True, help='Business profile key')
@click.option('--name', required=True, help='Display name')
@click.option('--low-stock', type=int, default=None, help='Low stock threshold for this business')
@with_appcontext
def add_business_cli(user_id, business_id, name, low_stock):
    user = db.session.get(User, user_id)
    if not user:
        click.echo(f"FAIL User ID {user_id} not found")
        return

    existing = db.session.query(BusinessProfile).filter_by(user_id=user_id, business_id=business_id).first()
    if existing:
        click.echo(f"FAIL Business '{business_id}' already exists for this user")
        return

    db.session.add(BusinessProfile(
        user_id=user_id,
        business_id=business_id,
        name=name,
        low_stock_threshold=low_stock,
    ))
    db.session.commit()
    click.echo(f"PASS Added business '{business_id}' ({name}) to user {user.email}")


@click.group('sessions')
def sessions_group():
    """Bearer token commands."""


@sessions_group.command('issue')
@click.option('--user-id', type=int, required=True, help='User ID')
@with_appcontext
def issue_session_cli(user_id):
    try:
        session, token = session_service.issue_session(user_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Session {session.id} expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@sessions_group.command('revoke')
@click.argument('token')
@with_appcontext
def revoke_session_cli(token):
    if session_service.revoke_session(token):
        click.echo("PASS Session revoked")
    else:
        click.echo("FAIL Unknown or already revoked token")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('finance')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--business-id', default=DEFAULT_BUSINESS_ID, help='Business profile key')
@click.option('--yearly', is_flag=True, help='Whole-year view instead of one month')
@click.option('--year', type=int, default=None)
@click.option('--month', type=int, default=None, help='1-12')
@with_appcontext
def finance_report_cli(user_id, business_id, yearly, year, month):
    """Print the finance overview as JSON."""
    try:
        report = reporting_service.finance_overview(
            Scope(user_id=user_id, business_id=business_id),
            view_type="yearly" if yearly else "monthly",
            year=year,
            month=month,
        )
    except reporting_service.ReportError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(json.dumps(report, indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(reports_group)
