# Overview: Flask CLI command groups for sync cron jobs, pattern cache upkeep, staff bootstrap, and schema setup.

# backend/bonusboard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "bonusboard:create_app".
# - Use: python -m flask <group> <command> [options]
#
# Sales sync (cron entry points):
# - python -m flask sync today
#   Replace-sync today's sales for every store.
# - python -m flask sync month
#   Replace-sync the current calendar month for every store.
# - python -m flask sync full
#   Replace-sync everything since 2024-01-01 for every store.
# - python -m flask sync store --store-id saron1 --start 2024-03-01 --end 2024-03-31 [--additive]
#   Sync one store over a date range.
# - python -m flask sync check --days 10
#   Compare local sale counts with Dapic and list mismatching days.
#
# Patterns:
# - python -m flask patterns clear-cache
#
# Staff directory:
# - python -m flask users list
# - python -m flask users create --username ana --full-name "Ana Souza" --role vendor --store-id saron1 --achieved 2.5 --not-achieved 1
# - python -m flask users assign-store --username carla --store-id saron2
#
# Schema:
# - python -m flask system init-db

import click
from flask import current_app
from flask.cli import with_appcontext

from .config import STORE_IDS
from .extensions import db, get_pattern_service, get_sync_service
from .models import User, USER_ROLES
from .services import user_service
from .validation import ValidationError


def _echo_results(results) -> None:
    for result in results:
        status = "PASS" if result.success else "FAIL"
        line = (
            f"{status} {result.store} {result.start}..{result.end} [{result.mode}] "
            f"saved={result.sales_count} skipped={result.skipped_count} failed={result.failed_count}"
        )
        if result.error:
            line += f" error={result.error}"
        click.echo(line)
    if not all(result.success for result in results):
        raise SystemExit(1)


@click.group('sync')
def sync_group():
    """Dapic sales synchronization."""


@sync_group.command('today')
@with_appcontext
def sync_today():
    _echo_results(get_sync_service().sync_today())


@sync_group.command('month')
@with_appcontext
def sync_month():
    _echo_results(get_sync_service().sync_current_month())


@sync_group.command('full')
@with_appcontext
def sync_full():
    """Replace-sync the whole history; slow."""
    current_app.logger.info("Full history sync started from CLI")
    _echo_results(get_sync_service().sync_full_history())


@sync_group.command('store')
@click.option('--store-id', required=True, type=click.Choice(STORE_IDS))
@click.option('--start', 'start', required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option('--end', 'end', required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option('--additive', is_flag=True, help='Insert only sales not stored yet')
@with_appcontext
def sync_store(store_id, start, end, additive):
    service = get_sync_service()
    run = service.sync_store_additive if additive else service.sync_store
    _echo_results([run(store_id, start.date(), end.date())])


@sync_group.command('check')
@click.option('--days', type=int, default=10, show_default=True)
@with_appcontext
def sync_check(days):
    report = get_sync_service().check_discrepancies(days=days)
    for item in report["discrepancies"]:
        click.echo(
            f"{item['store']} {item['date']}: local={item['local_count']} dapic={item['dapic_count']}"
        )
    for item in report["errors"]:
        click.echo(f"ERROR {item['store']} {item['date']}: {item['error']}")
    click.echo(f"{report['total_discrepancies']} discrepancies over {report['days_checked']} days.")


@click.group('patterns')
def patterns_group():
    """Sales pattern cache."""


@patterns_group.command('clear-cache')
@with_appcontext
def clear_pattern_cache():
    get_pattern_service().clear_cache()
    click.echo("Pattern cache cleared.")


@click.group('users')
def users_group():
    """Staff directory."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id}\t{user.username}\t{user.full_name}\t{user.role}\t{user.store_id or '-'}\t{status}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--full-name', prompt=True)
@click.option('--role', type=click.Choice(USER_ROLES), default='vendor', show_default=True)
@click.option('--store-id', type=click.Choice(STORE_IDS), default=None)
@click.option('--achieved', type=float, default=None, help='Bonus percent when the goal is met')
@click.option('--not-achieved', type=float, default=None, help='Bonus percent when the goal is missed')
@with_appcontext
def create_user(username, full_name, role, store_id, achieved, not_achieved):
    try:
        user = user_service.create_user(
            username=username,
            full_name=full_name,
            role=role,
            store_id=store_id,
            bonus_percentage_achieved=achieved,
            bonus_percentage_not_achieved=not_achieved,
        )
    except ValidationError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Created user {user.username} (id={user.id}, role={user.role}).")


@users_group.command('assign-store')
@click.option('--username', required=True)
@click.option('--store-id', required=True, type=click.Choice(STORE_IDS))
@with_appcontext
def assign_store(username, store_id):
    user = db.session.query(User).filter(User.username == username).first()
    if user is None:
        raise click.ClickException(f"User not found: {username}")
    user_service.assign_store(user, store_id)
    click.echo(f"{username} now manages {store_id}.")


@click.group('system')
def system_group():
    """Schema setup."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables; prefer 'flask db upgrade' for managed databases."""
    db.create_all()
    click.echo("PASS Tables created.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(sync_group)
    app.cli.add_command(patterns_group)
    app.cli.add_command(users_group)
    app.cli.add_command(system_group)
