"""
Tests for the Flask CLI commands.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from localperks.extensions import db
from localperks.models import Reward, Voucher
from localperks.services.ledger_service import ledger_service
from localperks.services.points_config import save_tenant_points_config
from localperks.services.redemption_service import RedemptionService


class TestVoucherCommands:

    def test_expire(self, cli_runner, sample_customer, sample_reward, earn):
        earn(sample_customer, 500)
        voucher = RedemptionService().redeem_reward(sample_customer.id, sample_reward.id)['voucher']
        voucher.expires_at = datetime.utcnow() - timedelta(days=1)
        db.session.commit()

        result = cli_runner.invoke(args=['vouchers', 'expire'])

        assert result.exit_code == 0
        assert 'Expired: 1 voucher(s)' in result.output
        assert db.session.get(Voucher, voucher.id).status == 'expired'

    def test_expire_dry_run(self, cli_runner, sample_customer, sample_reward, earn):
        earn(sample_customer, 500)
        voucher = RedemptionService().redeem_reward(sample_customer.id, sample_reward.id)['voucher']
        voucher.expires_at = datetime.utcnow() - timedelta(days=1)
        db.session.commit()

        result = cli_runner.invoke(args=['vouchers', 'expire', '--dry-run'])

        assert '[DRY RUN]' in result.output
        assert db.session.get(Voucher, voucher.id).status == 'active'


class TestPointsCommands:

    def test_balance(self, cli_runner, sample_customer, earn):
        earn(sample_customer, 1200)

        result = cli_runner.invoke(args=['points', 'balance', '--customer-id', str(sample_customer.id)])

        assert result.exit_code == 0
        assert 'Balance: 1200 pts (Platinum)' in result.output

    def test_balance_unknown_customer(self, cli_runner, app):
        result = cli_runner.invoke(args=['points', 'balance', '--customer-id', '99999'])
        assert 'not found' in result.output

    def test_pending(self, cli_runner, sample_customer, sample_tenant):
        ledger_service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('7.50'))

        result = cli_runner.invoke(args=['points', 'pending', '--tenant-id', str(sample_tenant.id)])

        assert 'Pending receipts: 1' in result.output
        assert '75 pts' in result.output


class TestTenantCommands:

    def test_seed_discounts(self, cli_runner, sample_tenant):
        save_tenant_points_config(sample_tenant.id, settings={'max_discount_amount': 5})

        result = cli_runner.invoke(args=['tenants', 'seed-discounts', '--tenant-id', str(sample_tenant.id)])

        assert '5 created' in result.output
        rewards = Reward.query.filter_by(tenant_id=sample_tenant.id, reward_type='discount').all()
        assert sorted(r.points_cost for r in rewards) == [100, 200, 300, 400, 500]

    def test_seed_discounts_reprices(self, cli_runner, sample_tenant):
        save_tenant_points_config(sample_tenant.id, settings={'max_discount_amount': 2})
        cli_runner.invoke(args=['tenants', 'seed-discounts', '--tenant-id', str(sample_tenant.id)])
        save_tenant_points_config(sample_tenant.id, point_face_value=Decimal('0.02'))

        result = cli_runner.invoke(args=['tenants', 'seed-discounts', '--tenant-id', str(sample_tenant.id)])

        assert '0 created, 2 repriced' in result.output
        costs = sorted(r.points_cost for r in Reward.query.filter_by(tenant_id=sample_tenant.id).all())
        assert costs == [50, 100]
