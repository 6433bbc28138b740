"""
CLI Commands for points support queries.
"""
import click
from flask.cli import with_appcontext

from ..services.ledger_service import ledger_service
from ..utils.exceptions import NotFoundError


@click.group('points')
def points_cli():
    """Points ledger commands."""
    pass


@points_cli.command('balance')
@click.option('--customer-id', type=int, required=True, help='Customer ID')
@with_appcontext
def show_balance(customer_id):
    """Show a customer's balance, tier and how it was derived."""
    try:
        breakdown = ledger_service.get_balance_breakdown(customer_id)
    except NotFoundError as e:
        click.echo(e.message)
        return

    click.echo(f"\nCustomer {customer_id}:")
    click.echo(f"  Balance: {breakdown['balance']} pts ({breakdown['tier']})")
    click.echo(f"  Raw sum: {breakdown['raw_sum']}")
    click.echo(f"  Pending: {breakdown['pending_points']} pts in {breakdown['pending_count']} receipt(s)")
    for entry_type, total in breakdown['by_type'].items():
        click.echo(f"    {entry_type}: {total:+d}")


@points_cli.command('pending')
@click.option('--tenant-id', type=int, help='Specific tenant ID (or all if not specified)')
@with_appcontext
def show_pending(tenant_id):
    """List receipts awaiting review."""
    entries = ledger_service.list_pending_entries(tenant_id)

    click.echo(f"\nPending receipts: {len(entries)}")
    for entry in entries[:50]:
        click.echo(
            f"  #{entry.id} customer {entry.customer_id} tenant {entry.tenant_id}: "
            f"£{entry.amount:.2f} -> {entry.points} pts ({entry.created_at:%Y-%m-%d})"
        )


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(points_cli)
