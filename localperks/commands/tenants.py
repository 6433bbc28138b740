"""
CLI Commands for tenant setup.
"""
from decimal import Decimal
import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models.tenant import Tenant
from ..models.reward import Reward, RewardType
from ..services.points_config import get_tenant_points_config
from ..services.points_converter import points_for_currency
from ..services.redemption_service import discount_reward_name


@click.group('tenants')
def tenants_cli():
    """Tenant setup commands."""
    pass


@tenants_cli.command('seed-discounts')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def seed_discounts(tenant_id):
    """
    Create the £1 to £N discount rewards for a tenant.

    Existing discount rewards are repriced at the tenant's current face value.
    """
    tenant = Tenant.query.filter_by(id=tenant_id).first()
    if not tenant:
        click.echo(f"Tenant {tenant_id} not found")
        return

    config = get_tenant_points_config(tenant_id)
    created = updated = 0

    for pounds in range(1, int(config['max_discount_amount']) + 1):
        amount = Decimal(pounds).quantize(Decimal('0.01'))
        cost = points_for_currency(amount, config)
        name = discount_reward_name(amount)

        reward = Reward.query.filter_by(
            tenant_id=tenant_id,
            reward_type=RewardType.DISCOUNT.value,
            name=name
        ).first()

        if reward:
            if reward.points_cost != cost:
                reward.points_cost = cost
                updated += 1
            continue

        db.session.add(Reward(
            tenant_id=tenant_id,
            name=name,
            description=f'£{amount:.2f} off your purchase',
            reward_type=RewardType.DISCOUNT.value,
            points_cost=cost,
            discount_amount=amount,
            is_active=True
        ))
        created += 1

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    click.echo(f"Discount rewards for {tenant.slug}: {created} created, {updated} repriced")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(tenants_cli)
