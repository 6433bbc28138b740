"""
Points Ledger Service for LocalPerks.

ARCHITECTURE:
- The ledger (LedgerEntry) is the SINGLE SOURCE OF TRUTH for points.
- Customers have no stored balance. Every balance is a fold over the
  customer's APPROVED and VOID entries, recomputed on demand.
- Entries are append-only. The only in-place change is the one-time review
  of a PENDING entry into APPROVED or REJECTED, done as a guarded UPDATE.

Fold rules (order independent, so concurrent appends never need locking
for reads):
- VOID-status entries add their stored points, whatever their type
- EARNED and VOID-type entries add their points
- SPENT entries subtract their stored cost
- REFUND entries add their stored points, which the caller already negated
- the sum is clamped at zero

Handles:
- Balance and tier (reader)
- Pending receipts awaiting approval
- Appending EARNED / SPENT / REFUND / VOID entries (writer)
- Receipt submission and admin review
- Refunds linked to the purchase they claw back
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Iterable
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models.customer import Customer
from ..models.tenant import Tenant
from ..models.ledger import LedgerEntry, LedgerEntryType, LedgerEntryStatus, LedgerSource
from ..utils.exceptions import (
    CustomerNotFoundError,
    NotFoundError,
    ValidationError,
    InvalidStatusTransitionError,
)
from .points_config import get_tenant_points_config
from .points_converter import calculate_purchase_points, points_for_purchase


# ==================== Tiers ====================

# (minimum balance, tier name), highest first
TIER_THRESHOLDS = [
    (1000, 'Platinum'),
    (500, 'Gold'),
    (100, 'Silver'),
    (0, 'Standard'),
]

COUNTED_STATUSES = (LedgerEntryStatus.APPROVED.value, LedgerEntryStatus.VOID.value)

# Allowed status on append, per entry type
APPEND_STATUSES = {
    LedgerEntryType.EARNED.value: (LedgerEntryStatus.PENDING.value, LedgerEntryStatus.APPROVED.value),
    LedgerEntryType.SPENT.value: (LedgerEntryStatus.APPROVED.value,),
    LedgerEntryType.REFUND.value: (LedgerEntryStatus.APPROVED.value,),
    LedgerEntryType.VOID.value: (LedgerEntryStatus.VOID.value,),
}

REVIEW_ACTIONS = {
    'approve': LedgerEntryStatus.APPROVED.value,
    'reject': LedgerEntryStatus.REJECTED.value,
}


def tier_for_balance(balance: int) -> str:
    """Loyalty tier for a balance: Standard, Silver, Gold or Platinum."""
    for minimum, name in TIER_THRESHOLDS:
        if balance >= minimum:
            return name
    return 'Standard'


def entry_delta(entry_type: str, status: str, points: int) -> int:
    """Signed contribution of one entry to the balance (0 if it does not count)."""
    if status not in COUNTED_STATUSES:
        return 0
    points = int(points or 0)
    if status == LedgerEntryStatus.VOID.value:
        return points
    if entry_type in (LedgerEntryType.EARNED.value, LedgerEntryType.VOID.value):
        return points
    if entry_type == LedgerEntryType.SPENT.value:
        return -abs(points)
    if entry_type == LedgerEntryType.REFUND.value:
        return points
    return 0


def fold_balance(entries: Iterable) -> int:
    """
    Raw (unclamped) sum of balance contributions.

    Accepts LedgerEntry rows or any objects with type, status and points.
    """
    return sum(entry_delta(e.type, e.status, e.points) for e in entries)


class LedgerService:
    """
    Reader and writer for the points ledger.

    Usage:
        service = LedgerService()

        # Read
        service.compute_balance(customer_id)   # {'balance': 450, 'tier': 'Silver'}

        # Write
        service.record_purchase(customer_id, tenant_id, Decimal('25.00'))
        entry = service.submit_receipt(customer_id, tenant_id, Decimal('12.50'))
        service.review_pending_entry(entry.id, 'approve', reviewer='admin@shop')
    """

    # ==================== Reader ====================

    def get_customer(self, customer_id: int) -> Customer:
        customer = Customer.query.filter_by(id=customer_id).first()
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def counted_entries(self, customer_id: int) -> List[LedgerEntry]:
        """Entries that contribute to the balance."""
        return LedgerEntry.query.filter(
            LedgerEntry.customer_id == customer_id,
            LedgerEntry.status.in_(COUNTED_STATUSES)
        ).all()

    def compute_balance(self, customer_id: int) -> Dict[str, Any]:
        """
        Current spendable balance and tier, folded from the ledger.

        Returns:
            Dict with balance (non-negative int) and tier
        """
        balance = max(0, fold_balance(self.counted_entries(customer_id)))
        return {
            'balance': balance,
            'tier': tier_for_balance(balance),
        }

    def get_pending_points(self, customer_id: int) -> Dict[str, Any]:
        """Points submitted but awaiting approval (never part of the balance)."""
        row = db.session.query(
            func.coalesce(func.sum(LedgerEntry.points), 0),
            func.count(LedgerEntry.id)
        ).filter(
            LedgerEntry.customer_id == customer_id,
            LedgerEntry.status == LedgerEntryStatus.PENDING.value
        ).one()

        return {
            'pending_points': int(row[0] or 0),
            'pending_count': int(row[1] or 0),
        }

    def get_balance_summary(self, customer_id: int) -> Dict[str, Any]:
        """Balance, tier and pending points for display."""
        self.get_customer(customer_id)
        summary = self.compute_balance(customer_id)
        summary.update(self.get_pending_points(customer_id))
        return summary

    def get_balance_breakdown(self, customer_id: int) -> Dict[str, Any]:
        """
        Support/debug view of how the balance was derived.

        Shows the unclamped sum next to the clamped balance, plus the
        contribution of each entry type.
        """
        self.get_customer(customer_id)
        entries = self.counted_entries(customer_id)

        by_type: Dict[str, int] = {t.value: 0 for t in LedgerEntryType}
        for entry in entries:
            by_type[entry.type] = by_type.get(entry.type, 0) + entry_delta(entry.type, entry.status, entry.points)

        raw = fold_balance(entries)
        balance = max(0, raw)
        return {
            'customer_id': customer_id,
            'raw_sum': raw,
            'balance': balance,
            'tier': tier_for_balance(balance),
            'by_type': by_type,
            'entry_count': len(entries),
            **self.get_pending_points(customer_id),
        }

    def get_history(
        self,
        customer_id: int,
        tenant_id: int = None,
        entry_type: str = None,
        status: str = None,
        page: int = 1,
        per_page: int = 20
    ) -> Dict[str, Any]:
        """
        Paginated ledger history, newest first.

        Returns:
            Dict with entries, total, page, per_page, pages
        """
        query = LedgerEntry.query.filter(LedgerEntry.customer_id == customer_id)

        if tenant_id:
            query = query.filter(LedgerEntry.tenant_id == tenant_id)
        if entry_type:
            query = query.filter(LedgerEntry.type == entry_type.upper())
        if status:
            query = query.filter(LedgerEntry.status == status.upper())

        page = max(1, page)
        per_page = min(max(1, per_page), 100)
        pagination = query.order_by(
            LedgerEntry.created_at.desc(), LedgerEntry.id.desc()
        ).paginate(page=page, per_page=per_page, error_out=False)

        return {
            'entries': [e.to_dict() for e in pagination.items],
            'total': pagination.total,
            'page': page,
            'per_page': per_page,
            'pages': pagination.pages,
        }

    def list_pending_entries(self, tenant_id: int = None) -> List[LedgerEntry]:
        """PENDING entries awaiting review, newest first, optionally for one tenant."""
        query = LedgerEntry.query.filter(LedgerEntry.status == LedgerEntryStatus.PENDING.value)
        if tenant_id:
            query = query.filter(LedgerEntry.tenant_id == tenant_id)
        return query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).all()

    # ==================== Writer ====================

    def append_entry(
        self,
        customer_id: int,
        tenant_id: int,
        entry_type: str,
        amount,
        points: int,
        status: str,
        source: str = None,
        description: str = None,
        redemption_id: int = None,
        related_entry_id: int = None,
        created_by: str = 'system'
    ) -> LedgerEntry:
        """
        Append a ledger entry without committing.

        The entry is added and flushed so callers can compose it into a
        larger atomic unit; committing (or rolling back) is the caller's job.

        Raises:
            ValidationError: Unknown type/status, or signs inconsistent with the type
            NotFoundError: Customer or tenant does not exist
        """
        entry_type = (entry_type or '').upper()
        status = (status or '').upper()

        if entry_type not in APPEND_STATUSES:
            raise ValidationError(f"Unknown ledger entry type: {entry_type or None}", 'type')
        if status not in APPEND_STATUSES[entry_type]:
            raise ValidationError(
                f"{entry_type} entries cannot be created with status {status or None}", 'status'
            )

        if isinstance(points, bool) or not isinstance(points, int):
            raise ValidationError("points must be an integer", 'points')
        amount = Decimal(str(amount if amount is not None else 0))
        if not amount.is_finite():
            raise ValidationError("amount must be a finite number", 'amount')

        self._validate_signs(entry_type, amount, points)

        self.get_customer(customer_id)
        if not Tenant.query.filter_by(id=tenant_id).first():
            raise NotFoundError("Tenant", tenant_id)

        entry = LedgerEntry(
            customer_id=customer_id,
            tenant_id=tenant_id,
            amount=amount,
            points=points,
            type=entry_type,
            status=status,
            source=source,
            description=description,
            redemption_id=redemption_id,
            related_entry_id=related_entry_id,
            created_by=created_by,
            created_at=datetime.utcnow()
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    @staticmethod
    def _validate_signs(entry_type: str, amount: Decimal, points: int) -> None:
        if entry_type in (LedgerEntryType.EARNED.value, LedgerEntryType.SPENT.value, LedgerEntryType.VOID.value):
            if points < 0:
                raise ValidationError(f"{entry_type} points must not be negative", 'points')
            if amount < 0:
                raise ValidationError(f"{entry_type} amount must not be negative", 'amount')
        elif entry_type == LedgerEntryType.REFUND.value:
            if points > 0:
                raise ValidationError("REFUND points must be negated (<= 0)", 'points')
            if amount > 0:
                raise ValidationError("REFUND amount must be negated (<= 0)", 'amount')

    def _commit(self, entry: LedgerEntry, action: str) -> LedgerEntry:
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Ledger {action} failed for customer {entry.customer_id}: {e}")
            raise

        current_app.logger.info(
            f"Ledger {action}: entry {entry.id} {entry.type} {entry.points:+d} pts "
            f"({entry.status}) customer {entry.customer_id} tenant {entry.tenant_id}"
        )
        return entry

    def create_entry(self, *args, **kwargs) -> LedgerEntry:
        """append_entry followed by commit."""
        try:
            entry = self.append_entry(*args, **kwargs)
        except Exception:
            db.session.rollback()
            raise
        return self._commit(entry, 'append')

    def record_purchase(
        self,
        customer_id: int,
        tenant_id: int,
        amount,
        points: int = None,
        created_by: str = 'system',
        when: datetime = None
    ) -> LedgerEntry:
        """
        Partner point-of-sale purchase: APPROVED EARNED entry.

        Points default to the tenant's earn rate for the amount.
        """
        if points is None:
            config = get_tenant_points_config(tenant_id)
            breakdown = calculate_purchase_points(amount, config, when)
            points = breakdown['total_points']
            amount = breakdown['rounded_amount']

        return self.create_entry(
            customer_id,
            tenant_id,
            LedgerEntryType.EARNED.value,
            amount,
            points,
            LedgerEntryStatus.APPROVED.value,
            source=LedgerSource.PURCHASE.value,
            description=f'Purchase - £{Decimal(str(amount)):.2f}',
            created_by=created_by
        )

    def submit_receipt(
        self,
        customer_id: int,
        tenant_id: int,
        amount,
        created_by: str = 'customer',
        when: datetime = None
    ) -> LedgerEntry:
        """
        Customer-submitted purchase evidence: PENDING EARNED entry.

        Has no effect on the balance until an admin approves it.
        """
        config = get_tenant_points_config(tenant_id)
        breakdown = calculate_purchase_points(amount, config, when)
        if breakdown['rounded_amount'] <= 0:
            raise ValidationError("Receipt amount must be positive", 'amount')

        return self.create_entry(
            customer_id,
            tenant_id,
            LedgerEntryType.EARNED.value,
            breakdown['rounded_amount'],
            breakdown['total_points'],
            LedgerEntryStatus.PENDING.value,
            source=LedgerSource.RECEIPT.value,
            description=f"Receipt - £{breakdown['rounded_amount']:.2f}",
            created_by=created_by
        )

    def review_pending_entry(
        self,
        entry_id: int,
        action: str,
        reviewer: str = None,
        notes: str = None,
        tenant_id: int = None
    ) -> LedgerEntry:
        """
        Approve or reject a PENDING entry.

        The transition is a single UPDATE guarded by ``status = 'PENDING'``,
        so two reviewers racing on the same entry cannot both succeed.

        Args:
            entry_id: Ledger entry to review
            action: 'approve' or 'reject'
            reviewer: Who reviewed it
            notes: Optional admin notes
            tenant_id: When given, the entry must belong to this tenant

        Raises:
            ValidationError: Unknown action
            NotFoundError: Entry missing (or outside tenant_id)
            InvalidStatusTransitionError: Entry is no longer PENDING
        """
        new_status = REVIEW_ACTIONS.get((action or '').lower())
        if not new_status:
            raise ValidationError("action must be 'approve' or 'reject'", 'action')

        query = LedgerEntry.query.filter_by(id=entry_id)
        if tenant_id:
            query = query.filter_by(tenant_id=tenant_id)
        entry = query.first()
        if not entry:
            raise NotFoundError("Transaction", entry_id)

        updated = LedgerEntry.query.filter(
            LedgerEntry.id == entry_id,
            LedgerEntry.status == LedgerEntryStatus.PENDING.value
        ).update({
            'status': new_status,
            'reviewed_by': reviewer,
            'reviewed_at': datetime.utcnow(),
            'review_notes': notes,
        }, synchronize_session=False)

        if updated == 0:
            db.session.rollback()
            db.session.refresh(entry)
            raise InvalidStatusTransitionError('transaction', entry.status, new_status)

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        db.session.refresh(entry)
        current_app.logger.info(
            f"Ledger review: entry {entry.id} PENDING -> {entry.status} by {reviewer or 'unknown'}"
        )
        return entry

    def record_refund(
        self,
        original_entry_id: int,
        refund_amount,
        created_by: str = 'system',
        tenant_id: int = None
    ) -> LedgerEntry:
        """
        Refund (part of) a purchase and claw back the points it earned.

        The REFUND entry links to the EARNED entry through related_entry_id.
        Clawed-back points follow the tenant's earn rate for the refunded
        amount, capped at what the purchase earned minus earlier refunds.

        Raises:
            NotFoundError: Original entry missing (or outside tenant_id)
            ValidationError: Not an approved EARNED entry, non-positive refund,
                or refunds exceeding the purchase amount
        """
        query = LedgerEntry.query.filter_by(id=original_entry_id)
        if tenant_id:
            query = query.filter_by(tenant_id=tenant_id)
        original = query.first()
        if not original:
            raise NotFoundError("Transaction", original_entry_id)

        if original.type != LedgerEntryType.EARNED.value or original.status != LedgerEntryStatus.APPROVED.value:
            raise ValidationError("Only approved EARNED entries can be refunded", 'transaction')

        refund = Decimal(str(refund_amount))
        if not refund.is_finite() or refund <= 0:
            raise ValidationError("Refund amount must be positive", 'amount')

        prior = db.session.query(
            func.coalesce(func.sum(LedgerEntry.amount), 0),
            func.coalesce(func.sum(LedgerEntry.points), 0)
        ).filter(
            LedgerEntry.related_entry_id == original.id,
            LedgerEntry.type == LedgerEntryType.REFUND.value
        ).one()
        refunded_amount = -Decimal(str(prior[0] or 0))
        refunded_points = -int(prior[1] or 0)

        if refunded_amount + refund > Decimal(str(original.amount)):
            raise ValidationError(
                f"Refund exceeds purchase amount. Purchased: £{Decimal(str(original.amount)):.2f}, "
                f"already refunded: £{refunded_amount:.2f}",
                'amount'
            )

        config = get_tenant_points_config(original.tenant_id)
        clawback = min(points_for_purchase(refund, config), max(0, original.points - refunded_points))

        return self.create_entry(
            original.customer_id,
            original.tenant_id,
            LedgerEntryType.REFUND.value,
            -refund,
            -clawback,
            LedgerEntryStatus.APPROVED.value,
            source=LedgerSource.REFUND.value,
            description=f'Refund - £{refund:.2f}',
            related_entry_id=original.id,
            created_by=created_by
        )


ledger_service = LedgerService()
