"""
CLI Commands for LocalPerks.

Usage:
    flask vouchers expire [--dry-run]              # Expire overdue vouchers
    flask points balance --customer-id 1           # Balance, tier and pending points
    flask points pending [--tenant-id 1]           # Receipts awaiting review
    flask tenants seed-discounts --tenant-id 1     # Create £1-£N discount rewards
"""
from .vouchers import init_app as init_voucher_commands
from .points import init_app as init_points_commands
from .tenants import init_app as init_tenant_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_voucher_commands(app)
    init_points_commands(app)
    init_tenant_commands(app)
