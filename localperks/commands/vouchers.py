"""
CLI Commands for voucher housekeeping.

Lazy expiry on read is authoritative; the sweep only tidies stored statuses
for reporting. Run it from cron, e.g. daily at midnight:

0 0 * * * cd /app && flask vouchers expire
"""
import click
from flask.cli import with_appcontext

from ..services.voucher_service import voucher_service


@click.group('vouchers')
def vouchers_cli():
    """Voucher commands."""
    pass


@vouchers_cli.command('expire')
@click.option('--dry-run', is_flag=True, help='Preview without expiring vouchers')
@with_appcontext
def expire_vouchers(dry_run):
    """Expire active vouchers past their expiry date."""
    result = voucher_service.expire_overdue_vouchers(dry_run=dry_run)

    prefix = '[DRY RUN] ' if dry_run else ''
    click.echo(f"{prefix}Expired: {result['expired']} voucher(s)")
    for code in result['codes'][:20]:
        click.echo(f"  - {code}")
    if len(result['codes']) > 20:
        click.echo(f"  ... and {len(result['codes']) - 20} more")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(vouchers_cli)
