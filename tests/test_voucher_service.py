"""
Tests for the Voucher Lifecycle Service.

Tests cover:
- Lazy expiry on every read path
- Scan-to-redeem checks and their order
- Tenant-of-issuance enforcement
- Guarded single-use transition under a lost race
- Bulk expiry sweep
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from localperks.extensions import db
from localperks.models import Voucher, VoucherStatus
from localperks.services.redemption_service import RedemptionService
from localperks.services.voucher_service import VoucherService
from localperks.utils.exceptions import (
    VoucherNotFoundError,
    AlreadyUsedError,
    ExpiredError,
    InvalidStatusTransitionError,
    TenantMismatchError,
    ValidationError,
)


def stale_read(lookup, **changes):
    """
    Return the voucher as it was read, after committing a competing change.

    The returned object is detached, so it keeps its pre-change state while
    the database moves on.
    """
    def _read(key):
        voucher = Voucher.query.filter_by(**{lookup: key}).first()
        db.session.expunge(voucher)
        Voucher.query.filter_by(id=voucher.id).update(changes, synchronize_session=False)
        db.session.commit()
        return voucher
    return _read


@pytest.fixture
def active_voucher(sample_customer, sample_reward, earn):
    earn(sample_customer, 500)
    return RedemptionService().redeem_reward(sample_customer.id, sample_reward.id)['voucher']


def backdate(voucher, **delta):
    voucher.expires_at = datetime.utcnow() - timedelta(**delta)
    db.session.commit()


class TestLazyExpiry:

    def test_get_voucher_expires_overdue(self, app, active_voucher):
        backdate(active_voucher, seconds=1)

        voucher = VoucherService().get_voucher(active_voucher.id)

        assert voucher.status == VoucherStatus.EXPIRED.value

    def test_get_by_code_expires_overdue(self, app, active_voucher):
        backdate(active_voucher, days=1)
        assert VoucherService().get_voucher_by_code(active_voucher.code).status == 'expired'

    def test_listing_expires_before_filtering(self, app, sample_customer, active_voucher):
        backdate(active_voucher, days=1)
        service = VoucherService()

        assert service.list_customer_vouchers(sample_customer.id, status='active') == []
        expired = service.list_customer_vouchers(sample_customer.id, status='expired')
        assert [v.id for v in expired] == [active_voucher.id]

    def test_unexpired_voucher_untouched(self, app, active_voucher):
        assert VoucherService().get_voucher(active_voucher.id).status == 'active'

    def test_terminal_status_not_overwritten(self, app, active_voucher):
        active_voucher.status = VoucherStatus.CANCELLED.value
        db.session.commit()
        backdate(active_voucher, days=1)

        assert VoucherService().get_voucher(active_voucher.id).status == 'cancelled'

    def test_code_lookup_is_case_insensitive(self, app, active_voucher):
        voucher = VoucherService().get_voucher_by_code(active_voucher.code.lower())
        assert voucher.id == active_voucher.id

    def test_unknown_code(self, app):
        with pytest.raises(VoucherNotFoundError):
            VoucherService().get_voucher_by_code('LP-NOPE0000')

    def test_blank_code(self, app):
        with pytest.raises(ValidationError):
            VoucherService().get_voucher_by_code('  ')


class TestRedeemVoucherCode:

    def test_redeem_at_issuing_tenant(self, app, active_voucher, sample_tenant):
        voucher = VoucherService().redeem_voucher_code(active_voucher.code, sample_tenant.id)

        assert voucher.status == VoucherStatus.USED.value
        assert voucher.used_at is not None
        assert voucher.redeemed_tenant_id == sample_tenant.id

    def test_second_scan_already_used(self, app, active_voucher, sample_tenant):
        service = VoucherService()
        first = service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

        with pytest.raises(AlreadyUsedError) as exc_info:
            service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

        assert exc_info.value.used_at == first.used_at

    def test_tenant_mismatch_leaves_voucher_active(self, app, active_voucher, second_tenant):
        with pytest.raises(TenantMismatchError):
            VoucherService().redeem_voucher_code(active_voucher.code, second_tenant.id)

        voucher = db.session.get(Voucher, active_voucher.id)
        assert voucher.status == 'active'
        assert voucher.used_at is None

    def test_expired_voucher(self, app, active_voucher, sample_tenant):
        backdate(active_voucher, seconds=1)

        with pytest.raises(ExpiredError) as exc_info:
            VoucherService().redeem_voucher_code(active_voucher.code, sample_tenant.id)

        assert exc_info.value.expires_at == db.session.get(Voucher, active_voucher.id).expires_at

    def test_used_checked_before_expiry(self, app, active_voucher, sample_tenant):
        service = VoucherService()
        service.redeem_voucher_code(active_voucher.code, sample_tenant.id)
        backdate(active_voucher, days=1)

        with pytest.raises(AlreadyUsedError):
            service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

    def test_cancelled_voucher(self, app, sample_customer, active_voucher, sample_tenant):
        RedemptionService().cancel_redemption(active_voucher.id, sample_customer.id)

        with pytest.raises(InvalidStatusTransitionError):
            VoucherService().redeem_voucher_code(active_voucher.code, sample_tenant.id)

    def test_lost_race_to_scan_reports_already_used(self, app, active_voucher, sample_tenant):
        """Another scan commits between our checks and our update."""
        service = VoucherService()
        competing = stale_read('code', status='used', used_at=datetime.utcnow())

        with patch.object(service, 'get_voucher_by_code', side_effect=competing):
            with pytest.raises(AlreadyUsedError):
                service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

        assert Voucher.query.filter_by(status='used').count() == 1

    def test_lost_race_to_cancel_reports_cancelled(self, app, active_voucher, sample_tenant):
        service = VoucherService()
        competing = stale_read('code', status='cancelled', cancelled_at=datetime.utcnow())

        with patch.object(service, 'get_voucher_by_code', side_effect=competing):
            with pytest.raises(InvalidStatusTransitionError) as exc_info:
                service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

        assert exc_info.value.from_status == 'cancelled'
        assert Voucher.query.filter_by(status='used').count() == 0


class TestValidateVoucherCode:

    def test_valid(self, app, active_voucher, sample_tenant):
        result = VoucherService().validate_voucher_code(active_voucher.code, sample_tenant.id)

        assert result['valid'] is True
        assert result['tenant_mismatch'] is False
        assert result['voucher']['code'] == active_voucher.code
        assert db.session.get(Voucher, active_voucher.id).status == 'active'

    def test_reports_tenant_mismatch(self, app, active_voucher, second_tenant):
        result = VoucherService().validate_voucher_code(active_voucher.code, second_tenant.id)

        assert result['valid'] is False
        assert result['tenant_mismatch'] is True

    def test_reports_used(self, app, active_voucher, sample_tenant):
        service = VoucherService()
        service.redeem_voucher_code(active_voucher.code, sample_tenant.id)

        result = service.validate_voucher_code(active_voucher.code, sample_tenant.id)
        assert result['valid'] is False
        assert result['code'] == 'VOUCHER_ALREADY_USED'


class TestExpireOverdueVouchers:

    def test_sweep(self, app, sample_customer, sample_reward, earn):
        earn(sample_customer, 1500)
        service = RedemptionService()
        overdue = service.redeem_reward(sample_customer.id, sample_reward.id)['voucher']
        current = service.redeem_reward(sample_customer.id, sample_reward.id)['voucher']
        backdate(overdue, days=2)

        result = VoucherService().expire_overdue_vouchers()

        assert result['expired'] == 1
        assert result['codes'] == [overdue.code]
        assert db.session.get(Voucher, overdue.id).status == 'expired'
        assert db.session.get(Voucher, current.id).status == 'active'

    def test_dry_run_changes_nothing(self, app, active_voucher):
        backdate(active_voucher, days=2)

        result = VoucherService().expire_overdue_vouchers(dry_run=True)

        assert result['expired'] == 1
        assert db.session.get(Voucher, active_voucher.id).status == 'active'
