"""
Voucher Lifecycle Service for LocalPerks.

State machine: active -> used | expired | cancelled, all terminal.

Every state change is a single conditional UPDATE guarded by
``status = 'active'``, so concurrent scans, expiry and cancellation of the
same voucher cannot both succeed. Expiry is evaluated lazily: any read of an
active voucher past its expires_at flips it to expired before returning.
"""
from datetime import datetime
from typing import List, Dict, Any, Optional
from flask import current_app

from ..extensions import db
from ..models.voucher import Voucher, VoucherStatus
from ..models.reward import Reward
from ..utils.exceptions import (
    VoucherNotFoundError,
    ValidationError,
    AlreadyUsedError,
    ExpiredError,
    InvalidStatusTransitionError,
    TenantMismatchError,
)


def normalize_code(code: str) -> str:
    """Codes are stored upper-case; scanners and customers may type lower-case."""
    return (code or '').strip().upper()


class VoucherService:
    """
    Voucher reads, scan-to-redeem and expiry.

    Usage:
        service = VoucherService()
        voucher = service.redeem_voucher_code('LP-7QX2K9ZD', redeeming_tenant_id=3)
    """

    # ==================== Expiry ====================

    def expire_if_overdue(self, voucher: Voucher, now: datetime = None, commit: bool = True) -> Voucher:
        """
        Flip an active, overdue voucher to expired (once).

        Returns the voucher with its current persisted status.
        """
        now = now or datetime.utcnow()
        if voucher.status != VoucherStatus.ACTIVE.value or not voucher.is_past_expiry(now):
            return voucher

        updated = Voucher.query.filter(
            Voucher.id == voucher.id,
            Voucher.status == VoucherStatus.ACTIVE.value,
            Voucher.expires_at < now
        ).update({'status': VoucherStatus.EXPIRED.value}, synchronize_session=False)

        if commit:
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

        db.session.refresh(voucher)
        if updated:
            current_app.logger.info(f"Voucher {voucher.code} expired (expires_at {voucher.expires_at.isoformat()})")
        return voucher

    def expire_overdue_vouchers(self, now: datetime = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Bulk sweep of active vouchers past expiry.

        Lazy expiry on read stays authoritative; this only keeps stored
        statuses tidy for reporting.

        Returns:
            Dict with expired (count) and codes
        """
        now = now or datetime.utcnow()
        overdue = Voucher.query.filter(
            Voucher.status == VoucherStatus.ACTIVE.value,
            Voucher.expires_at < now
        ).all()
        codes = [v.code for v in overdue]

        if dry_run or not overdue:
            return {'expired': len(codes), 'codes': codes, 'dry_run': dry_run}

        updated = Voucher.query.filter(
            Voucher.id.in_([v.id for v in overdue]),
            Voucher.status == VoucherStatus.ACTIVE.value,
            Voucher.expires_at < now
        ).update({'status': VoucherStatus.EXPIRED.value}, synchronize_session=False)

        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Voucher expiry sweep failed: {e}")
            raise

        current_app.logger.info(f"Voucher expiry sweep: {updated} voucher(s) expired")
        return {'expired': updated, 'codes': codes, 'dry_run': False}

    # ==================== Reads ====================

    def get_voucher(self, voucher_id: int) -> Voucher:
        voucher = Voucher.query.filter_by(id=voucher_id).first()
        if not voucher:
            raise VoucherNotFoundError(voucher_id)
        return self.expire_if_overdue(voucher)

    def get_voucher_by_code(self, code: str) -> Voucher:
        code = normalize_code(code)
        if not code:
            raise ValidationError("Voucher code is required", 'code')

        voucher = Voucher.query.filter_by(code=code).first()
        if not voucher:
            raise VoucherNotFoundError(code)
        return self.expire_if_overdue(voucher)

    def list_customer_vouchers(self, customer_id: int, status: Optional[str] = None) -> List[Voucher]:
        """
        A customer's vouchers, newest first.

        Overdue active vouchers are expired before the status filter is
        applied, so an 'active' listing never contains stale entries.
        """
        vouchers = Voucher.query.filter_by(customer_id=customer_id).order_by(
            Voucher.created_at.desc(), Voucher.id.desc()
        ).all()

        now = datetime.utcnow()
        vouchers = [self.expire_if_overdue(v, now) for v in vouchers]

        if status:
            vouchers = [v for v in vouchers if v.status == status.lower()]
        return vouchers

    # ==================== Scan-to-redeem ====================

    def _check_usable(self, voucher: Voucher, target_status: str = VoucherStatus.USED.value) -> None:
        """Raise the specific reason a (freshly read) voucher cannot leave 'active'."""
        if voucher.status == VoucherStatus.USED.value or voucher.used_at is not None:
            raise AlreadyUsedError(voucher.code, voucher.used_at)
        if voucher.status == VoucherStatus.EXPIRED.value:
            raise ExpiredError(voucher.code, voucher.expires_at)
        if voucher.status != VoucherStatus.ACTIVE.value:
            raise InvalidStatusTransitionError('voucher', voucher.status, target_status)

    def raise_for_lost_transition(self, voucher_id: int, target_status: str) -> None:
        """
        A guarded UPDATE matched no row. Re-read the voucher and raise the
        error for the state it is actually in now.
        """
        current = Voucher.query.filter_by(id=voucher_id).populate_existing().first()
        if not current:
            raise VoucherNotFoundError(voucher_id)
        self._check_usable(current, target_status)
        if current.is_past_expiry():
            raise ExpiredError(current.code, current.expires_at)
        raise InvalidStatusTransitionError('voucher', current.status, target_status)

    def validate_voucher_code(self, code: str, tenant_id: int) -> Dict[str, Any]:
        """
        Point-of-sale preview of a code.

        Does not consume the voucher (apart from lazy expiry). Missing codes
        raise VoucherNotFoundError; every other problem is reported in the
        result so staff can see the voucher details alongside the reason.
        """
        voucher = self.get_voucher_by_code(code)
        reward = Reward.query.filter_by(id=voucher.reward_id).first()
        issuing_tenant_id = reward.tenant_id if reward else None

        result = {
            'valid': False,
            'voucher': voucher.to_dict(),
            'tenant_mismatch': False,
            'error': None,
        }

        try:
            self._check_usable(voucher)
        except (AlreadyUsedError, ExpiredError, InvalidStatusTransitionError) as e:
            result['error'] = e.message
            result['code'] = e.code
            return result

        if issuing_tenant_id != tenant_id:
            result['tenant_mismatch'] = True
            result['error'] = TenantMismatchError(issuing_tenant_id, tenant_id).message
            result['code'] = 'TENANT_MISMATCH'
            return result

        result['valid'] = True
        return result

    def redeem_voucher_code(self, code: str, redeeming_tenant_id: int) -> Voucher:
        """
        Consume a voucher at the tenant that issued it.

        Checks run in order: exists, not used, not expired, not cancelled,
        issued by redeeming_tenant_id. The final transition is a single
        UPDATE ... WHERE status = 'active'; if a concurrent scan or cancel
        won the race no row matches and the error reflects the state it left.

        Raises:
            VoucherNotFoundError, AlreadyUsedError, ExpiredError,
            InvalidStatusTransitionError, TenantMismatchError
        """
        voucher = self.get_voucher_by_code(code)
        self._check_usable(voucher)

        reward = Reward.query.filter_by(id=voucher.reward_id).first()
        issuing_tenant_id = reward.tenant_id if reward else None
        if issuing_tenant_id != redeeming_tenant_id:
            current_app.logger.warning(
                f"Voucher {voucher.code} presented at tenant {redeeming_tenant_id}, "
                f"issued by tenant {issuing_tenant_id}"
            )
            raise TenantMismatchError(issuing_tenant_id, redeeming_tenant_id)

        now = datetime.utcnow()
        updated = Voucher.query.filter(
            Voucher.id == voucher.id,
            Voucher.status == VoucherStatus.ACTIVE.value
        ).update({
            'status': VoucherStatus.USED.value,
            'used_at': now,
            'redeemed_tenant_id': redeeming_tenant_id,
        }, synchronize_session=False)

        if updated == 0:
            db.session.rollback()
            self.raise_for_lost_transition(voucher.id, VoucherStatus.USED.value)

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        db.session.refresh(voucher)
        current_app.logger.info(
            f"Voucher {voucher.code} redeemed at tenant {redeeming_tenant_id} "
            f"for customer {voucher.customer_id}"
        )
        return voucher


voucher_service = VoucherService()
