# Overview: Flask CLI command groups for bootstrap, user management, imports and profit analysis.

# backend/portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username admin --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#
# Imports (upload + confirm + post in one step, no interactive review):
# - python -m flask imports inventory stock.xlsx --reason purchase --user admin [--map sku="Item Code"]
# - python -m flask imports cost-sheet costs.xlsx --user admin
#
# Finance:
# - python -m flask finance profit payouts.xlsx --date-column "Statement Date" --amount-column "Amount"
#   [--start 2024-04-01 --end 2024-04-30] [--json report.json] [--cleaned cleaned.xlsx]

from datetime import date
from pathlib import Path

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .models.imports import IMPORT_TYPE_COST_SHEET, IMPORT_TYPE_INVENTORY
from .services.auth_service import create_user, PasswordValidationError
from .services import import_service, profit_service
from .services.import_service import ImportBatchError
from .services.spreadsheet_reader import read_spreadsheet
from .validation import MappingIncompleteError, NoValidDataError, PipelineError


def _fail(message: str) -> None:
    click.echo(f"FAIL {message}")
    raise click.exceptions.Exit(1)


def _parse_map_options(pairs) -> dict:
    mapping = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected field=Header, got {pair!r}", param_hint="--map")
        field_name, header = pair.split("=", 1)
        mapping[field_name.strip()] = header.strip()
    return mapping


def _user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        _fail(f"User {username!r} not found")
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Create an admin with 'python -m flask users create'.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--email', default=None, help='Email address')
@click.option('--display-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, password, role, email, display_name):
    """
    Create a portal account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        create_user(username=username, password=password, role=role, email=email, display_name=display_name)
    except PasswordValidationError as e:
        _fail(f"Password validation failed: {e}")
    except ValueError as e:
        _fail(f"Failed to create user: {e}")

    click.echo(f"PASS Created user: {username} with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {(user.email or '-'):<30} {active_str:<8} {user.role}")
    click.echo("=" * 80 + "\n")


@click.group('imports')
def imports_group():
    """Spreadsheet import commands."""


def _run_import(path: Path, import_type: str, username: str, mapping: dict, reason: str | None) -> None:
    user = _user_by_username(username)
    try:
        sheet = read_spreadsheet(path.read_bytes(), path.name)
        summary = import_service.import_sheet(
            sheet=sheet,
            import_type=import_type,
            actor_user_id=user.id,
            mapping=mapping,
            in_reason=reason,
            source_file_name=path.name,
        )
    except MappingIncompleteError as e:
        _fail(f"{e}. Pass --map field=Header for each missing field.")
    except NoValidDataError as e:
        click.echo(f"FAIL {e}")
        for rejected in e.rejected:
            click.echo(f"  row {rejected['row_number']}: {'; '.join(rejected['errors'])}")
        raise click.exceptions.Exit(1)
    except (PipelineError, ImportBatchError) as e:
        _fail(str(e))

    for rejected in summary["rejected"]:
        click.echo(f"  SKIP row {rejected['row_number']}: {'; '.join(rejected['errors'])}")
    click.echo(
        f"PASS Batch {summary['batch_id']}: posted {summary['posted']} "
        f"(new {summary['inserted']}, updated {summary['updated']}), "
        f"rejected {len(summary['rejected'])}, errors {summary['errors']}"
    )
    if summary["errors"]:
        _fail(f"{summary['errors']} row(s) failed; inspect batch {summary['batch_id']} rows and re-post")


@imports_group.command('inventory')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--reason', required=True, help='In-reason: purchase, return, gift, stocktake, transfer, other')
@click.option('--user', 'username', required=True, help='Username recorded on every change')
@click.option('--map', 'map_pairs', multiple=True, help='Override a column: field=Header (repeatable)')
@with_appcontext
def import_inventory_cli(path, reason, username, map_pairs):
    """Import inventory rows; existing SKUs have their quantity increased."""
    _run_import(path, IMPORT_TYPE_INVENTORY, username, _parse_map_options(map_pairs), reason)


@imports_group.command('cost-sheet')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--user', 'username', required=True, help='Username recorded as uploader')
@click.option('--map', 'map_pairs', multiple=True, help='Override a column: field=Header (repeatable)')
@with_appcontext
def import_cost_sheet_cli(path, username, map_pairs):
    """Upsert per-SKU product costs."""
    _run_import(path, IMPORT_TYPE_COST_SHEET, username, _parse_map_options(map_pairs), None)


@click.group('finance')
def finance_group():
    """Finance reporting commands."""


@finance_group.command('profit')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--date-column', required=True, help='Header of the statement date column')
@click.option('--amount-column', required=True, help='Header of the settlement amount column')
@click.option('--start', type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help='First date (inclusive)')
@click.option('--end', type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help='Last date (inclusive)')
@click.option('--json', 'json_path', type=click.Path(dir_okay=False, path_type=Path), help='Write the JSON report here')
@click.option('--cleaned', 'cleaned_path', type=click.Path(dir_okay=False, path_type=Path), help='Write cleaned xlsx here')
@with_appcontext
def profit_cli(path, date_column, amount_column, start, end, json_path, cleaned_path):
    """Profit analysis of a settlement sheet against stored fixed costs and payroll."""
    start_date: date | None = start.date() if start else None
    end_date: date | None = end.date() if end else None
    try:
        sheet = read_spreadsheet(path.read_bytes(), path.name)
        analysis, rows = profit_service.analyze_settlement(
            sheet,
            {"statement_date": date_column, "settlement_amount": amount_column},
            start=start_date,
            end=end_date,
        )
    except PipelineError as e:
        _fail(str(e))

    for key, value in profit_service.analysis_as_dict(analysis).items():
        shown = f"{value:,.2f}" if isinstance(value, float) else value
        click.echo(f"  {key:<24} {shown}")

    if json_path:
        json_path.write_text(profit_service.export_analysis_json(analysis), encoding="utf-8")
        click.echo(f"PASS Wrote {json_path}")
    if cleaned_path:
        cleaned_path.write_bytes(profit_service.export_cleaned_workbook(rows))
        click.echo(f"PASS Wrote {cleaned_path}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(imports_group)
    app.cli.add_command(finance_group)
