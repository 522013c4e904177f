# Overview: Flask CLI command groups for register inspection and closing maintenance.

# backend/daybook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Register inspection/bootstrap:
# - python -m flask registers list --tenant acme
#   List registers with their time zone and today's lock state.
# - python -m flask registers create --tenant acme --id REG-01 --name "Front" --timezone Africa/Dakar
#   Create a register.
# - python -m flask registers lock-status --tenant acme --register REG-01
#   Show whether the register is closed for today and when it reopens.
#
# Closings:
# - python -m flask closings list --tenant acme [--register REG-01]
#   List closings, most recent day first.
# - python -m flask closings sweep --tenant acme --register REG-01
#   Auto-close every forgotten past day of the register.
# - python -m flask closings repair --tenant acme [--register REG-01] [--dry-run]
#   Relock transactions left unlocked inside closed days.

import click
from flask.cli import with_appcontext

from .services import register_service, repair_service, sweeper_service, document_store
from .services.closing_service import PersistenceFailure
from .services.lock_service import is_locked
from .time_utils import format_remaining


@click.group('registers')
def registers_group():
    """Register inspection and bootstrap commands."""


@registers_group.command('list')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@with_appcontext
def list_registers_cli(tenant_id):
    """
    List all active registers.

    Example:
        flask registers list --tenant acme
    """
    registers = register_service.list_registers(tenant_id)

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<15} {'Name':<25} {'Timezone':<22} {'Today'}")
    click.echo("="*80)

    for register in registers:
        context = register_service.build_context(tenant_id, register.id)
        state = "CLOSED" if is_locked(context).locked else "OPEN"
        click.echo(f"{register.id:<15} {register.name:<25} {register.timezone:<22} {state}")

    click.echo("="*80 + "\n")


@registers_group.command('create')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@click.option('--id', 'register_id', required=True, help='Register id (e.g., REG-01)')
@click.option('--name', default=None, help='Display name')
@click.option('--timezone', default=None, help='IANA time zone (defaults to DEFAULT_REGISTER_TIMEZONE)')
@with_appcontext
def create_register_cli(tenant_id, register_id, name, timezone):
    """
    Create a register.

    Example:
        flask registers create --tenant acme --id REG-01 --timezone Africa/Dakar
    """
    try:
        register = register_service.create_register(tenant_id, register_id, name=name, timezone=timezone)
    except register_service.RegisterError as e:
        click.echo(f"Error: {e}")
        raise SystemExit(1)

    click.echo(f"Created register {register.id} ({register.timezone})")


@registers_group.command('lock-status')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@click.option('--register', 'register_id', required=True, help='Register id')
@with_appcontext
def lock_status_cli(tenant_id, register_id):
    """Show today's lock state for a register."""
    context = register_service.build_context(tenant_id, register_id)
    status = is_locked(context)

    if status.locked:
        click.echo(
            f"{register_id}: CLOSED ({status.closing_id}), reopens at 00:00 "
            f"in {format_remaining(status.remaining)}"
        )
    else:
        click.echo(f"{register_id}: OPEN")


@click.group('closings')
def closings_group():
    """Daily closing maintenance commands."""


@closings_group.command('list')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@click.option('--register', 'register_id', default=None, help='Filter by register id')
@click.option('--limit', type=int, default=20, help='Max closings to show')
@with_appcontext
def list_closings_cli(tenant_id, register_id, limit):
    """
    List closings, most recent first.

    Example:
        flask closings list --tenant acme
        flask closings list --tenant acme --register REG-01
    """
    closings = document_store.get_closings(tenant_id, register_id)[:limit]

    if not closings:
        click.echo("No closings found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'Closing':<28} {'Closed by':<22} {'Expected':>12} {'Counted':>12} {'Difference':>12} {'Auto':<6} {'Locked'}")
    click.echo("="*110)

    for c in closings:
        auto_str = "Yes" if c.auto_closed else "No"
        click.echo(
            f"{c.id:<28} {(c.closed_by or '-')[:22]:<22} {c.cash_expected:>12.2f} "
            f"{c.cash_real:>12.2f} {c.difference:>+12.2f} {auto_str:<6} {c.locked_transaction_count}"
        )

    click.echo("="*110 + "\n")


@closings_group.command('sweep')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@click.option('--register', 'register_id', required=True, help='Register id')
@with_appcontext
def sweep_closings_cli(tenant_id, register_id):
    """
    Auto-close forgotten past days, oldest first.

    Safe to run repeatedly; days already closed are skipped.
    """
    context = register_service.build_context(tenant_id, register_id)
    pending = sweeper_service.find_forgotten_days(context)
    if not pending:
        click.echo("No forgotten days.")
        return

    click.echo(f"Forgotten days: {', '.join(d.isoformat() for d in pending)}")
    try:
        closed = sweeper_service.sweep_forgotten_closings(context)
    except PersistenceFailure as e:
        click.echo(f"Error: {e}")
        raise SystemExit(1)

    click.echo(f"Auto-closed {closed} day(s).")


@closings_group.command('repair')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant namespace')
@click.option('--register', 'register_id', default=None, help='Limit to one register')
@click.option('--dry-run', is_flag=True, help='Report only, do not relock')
@with_appcontext
def repair_closings_cli(tenant_id, register_id, dry_run):
    """
    Find closed days that still hold unlocked transactions and relock them.

    Example:
        flask closings repair --tenant acme --dry-run
    """
    anomalies = repair_service.find_anomalies(tenant_id, register_id)
    if not anomalies:
        click.echo("All closed days are fully locked.")
        return

    for anomaly in anomalies:
        click.echo(f"  {anomaly.closing_id}: {len(anomaly.transaction_ids)} unlocked transaction(s)")

    if dry_run:
        click.echo("\nDry run; nothing changed.")
        return

    repaired = repair_service.repair_closings(tenant_id, register_id)
    click.echo(f"\nRelocked {repaired} transaction(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(registers_group)
    app.cli.add_command(closings_group)
