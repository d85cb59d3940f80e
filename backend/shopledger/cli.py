# Overview: Flask CLI command groups for bootstrap, scheduled jobs, and shop accounts.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables (if missing) and default roles (admin, manager, shop).
# - python -m flask system set-config ftp --value '{"host": "...", "user": "...", "password": "..."}'
#   Store a runtime configuration document.
#
# Scheduled jobs (cron, Asia/Tokyo):
# - python -m flask jobs sync-shops                      (daily 00:00)
#   Pull the KKB shop roster and upsert shops in batches of 100.
# - python -m flask jobs update-avg-cost [--date 2024/05/01]   (daily 01:00)
#   Fold a day's purchases into average cost prices (default: yesterday).
#   WARNING: not idempotent; never run twice for the same date.
# - python -m flask jobs monthly-stocks [--month 2024-04]      (day 1, 06:00)
#   Snapshot live stock (default: the month that just ended).
# - python -m flask jobs daily-closing --shop 0101 [--date 2024/05/01]
#   Build, upload and trigger the daily closing of one shop.
#
# Shop accounts:
# - python -m flask accounts ensure 0101
#   Provision the login identity of a shop (no-op if it exists).
# - python -m flask accounts show 0101
# - python -m flask accounts set-password 0101
#   Reset a shop password (prompts).

import json
import sys

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Role
from .services.auth_service import (
    create_default_roles,
    ensure_shop_account,
    get_user_by_code,
    set_password,
    PasswordValidationError,
)
from .services import closing_service, cost_service, shop_sync_service, stock_service
from .services.errors import JobError
from .services.external_system import build_external_system
from .services.file_transfer import set_config_document
from .time_utils import local_yesterday


def _run_job(name: str, func, *args, **kwargs):
    """Run a scheduled job; failures are logged and exit non-zero."""
    try:
        result = func(*args, **kwargs)
    except JobError as exc:
        db.session.rollback()
        current_app.logger.exception("Job %s failed (%s)", name, exc.kind)
        click.echo(f"FAIL {name}: {exc.kind}: {exc.message}", err=True)
        sys.exit(1)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Job %s failed", name)
        click.echo(f"FAIL {name}: unexpected error (see log)", err=True)
        sys.exit(1)
    click.echo(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    return result


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create missing tables and default roles (idempotent)."""
    db.create_all()
    create_default_roles()
    roles = db.session.query(Role).order_by(Role.name).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")


@system_group.command('set-config')
@click.argument('key')
@click.option('--value', required=True, help='JSON object')
@with_appcontext
def set_config(key, value):
    """Store a runtime configuration document."""
    try:
        document = json.loads(value)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--value")
    if not isinstance(document, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--value")
    row = set_config_document(key, document)
    click.echo(f"PASS {key}: {json.dumps(row.to_dict()['value'], ensure_ascii=False)}")


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

@click.group('jobs')
def jobs_group():
    """Scheduled data synchronization and reporting jobs."""


@jobs_group.command('sync-shops')
@with_appcontext
def sync_shops_cli():
    """Sync the shop roster from KKB."""
    _run_job("sync-shops", shop_sync_service.sync_shops, build_external_system())


@jobs_group.command('update-avg-cost')
@click.option('--date', 'target_date', help='Business date (default: yesterday)')
@with_appcontext
def update_avg_cost_cli(target_date):
    """Recompute average cost prices from one day's purchases."""
    _run_job("update-avg-cost", cost_service.update_avg_cost_prices, target_date or local_yesterday())


@jobs_group.command('monthly-stocks')
@click.option('--month', help='Month label YYYY-MM (default: previous month)')
@with_appcontext
def monthly_stocks_cli(month):
    """Snapshot every shop's live stock."""
    _run_job("monthly-stocks", stock_service.create_monthly_stocks, month)


@jobs_group.command('daily-closing')
@click.option('--shop', 'shop_code', required=True, help='Shop code')
@click.option('--date', 'target_date', help='Business date (default: yesterday)')
@with_appcontext
def daily_closing_cli(shop_code, target_date):
    """Send the daily closing of one shop."""
    _run_job(
        "daily-closing",
        closing_service.send_daily_closing,
        shop_code,
        target_date or local_yesterday(),
        build_external_system(),
    )


# =============================================================================
# SHOP ACCOUNTS
# =============================================================================

@click.group('accounts')
def accounts_group():
    """Shop login identities."""


@accounts_group.command('ensure')
@click.argument('code')
@with_appcontext
def ensure_account(code):
    """Provision the login identity of a shop code."""
    user, created = ensure_shop_account(code)
    state = "created" if created else "exists"
    click.echo(f"PASS {user.email} ({state})")


@accounts_group.command('show')
@click.argument('code')
@with_appcontext
def show_account(code):
    """Show the login identity of a shop code."""
    try:
        user = get_user_by_code(code)
    except JobError as exc:
        click.echo(f"FAIL {exc.message}")
        sys.exit(1)
    roles = ", ".join(user.role_names) or "none"
    active = "Yes" if user.is_active else "No"
    click.echo(f"{user.id:<5} {user.username:<12} {user.email:<36} {active:<4} {roles}")


@accounts_group.command('set-password')
@click.argument('code')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='New password')
@with_appcontext
def set_account_password(code, password):
    """Reset the password of a shop identity."""
    try:
        user = get_user_by_code(code)
        set_password(user, password)
    except PasswordValidationError as exc:
        click.echo(f"FAIL {exc}")
        sys.exit(1)
    except JobError as exc:
        click.echo(f"FAIL {exc.message}")
        sys.exit(1)
    click.echo(f"PASS Password updated for {user.email}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(jobs_group)
    app.cli.add_command(accounts_group)
