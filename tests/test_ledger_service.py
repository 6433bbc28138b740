"""
Tests for the points ledger (reader and writer).

Tests cover:
- Balance folding, clamping and order independence
- Tier thresholds
- Sign/status rules on append
- Receipt submission and one-time review
- Purchases and refunds
- History and breakdown views
"""
import random
from decimal import Decimal
from types import ModuleType, SimpleNamespace

import pytest

from localperks.extensions import db
from localperks.models import LedgerEntry, LedgerEntryType, LedgerEntryStatus
from localperks.services.ledger_service import (
    LedgerService,
    fold_balance,
    tier_for_balance,
    entry_delta,
)
from localperks.services.points_config import save_tenant_points_config
from localperks.utils.exceptions import (
    ValidationError,
    NotFoundError,
    CustomerNotFoundError,
    InvalidStatusTransitionError,
)


def entry(entry_type, status, points):
    return SimpleNamespace(type=entry_type, status=status, points=points)


class TestFoldBalance:
    """Pure fold over entries."""

    def test_approved_earned_adds(self):
        assert fold_balance([entry('EARNED', 'APPROVED', 450)]) == 450

    def test_spent_subtracts_stored_cost(self):
        entries = [entry('EARNED', 'APPROVED', 1300), entry('SPENT', 'APPROVED', 1000)]
        assert fold_balance(entries) == 300

    def test_refund_adds_negative_points(self):
        entries = [entry('EARNED', 'APPROVED', 250), entry('REFUND', 'APPROVED', -100)]
        assert fold_balance(entries) == 150

    def test_void_status_counts(self):
        entries = [
            entry('EARNED', 'APPROVED', 600),
            entry('SPENT', 'APPROVED', 500),
            entry('VOID', 'VOID', 500),
        ]
        assert fold_balance(entries) == 600

    def test_any_void_status_entry_adds_points(self):
        assert entry_delta('SPENT', 'VOID', 200) == 200

    @pytest.mark.parametrize('status', ['PENDING', 'REJECTED'])
    def test_uncounted_statuses_ignored(self, status):
        assert fold_balance([entry('EARNED', status, 999)]) == 0

    def test_order_independent(self):
        entries = [
            entry('EARNED', 'APPROVED', 800),
            entry('SPENT', 'APPROVED', 300),
            entry('REFUND', 'APPROVED', -50),
            entry('VOID', 'VOID', 300),
            entry('EARNED', 'PENDING', 1000),
        ]
        expected = fold_balance(entries)
        for seed in range(5):
            shuffled = entries[:]
            random.Random(seed).shuffle(shuffled)
            assert fold_balance(shuffled) == expected


class TestTierForBalance:

    @pytest.mark.parametrize('balance,tier', [
        (0, 'Standard'),
        (99, 'Standard'),
        (100, 'Silver'),
        (499, 'Silver'),
        (500, 'Gold'),
        (999, 'Gold'),
        (1000, 'Platinum'),
        (25000, 'Platinum'),
    ])
    def test_thresholds(self, balance, tier):
        assert tier_for_balance(balance) == tier


class TestComputeBalance:

    def test_no_entries(self, app, sample_customer):
        assert LedgerService().compute_balance(sample_customer.id) == {'balance': 0, 'tier': 'Standard'}

    def test_silver_at_450(self, app, sample_customer, earn):
        earn(sample_customer, 450)
        assert LedgerService().compute_balance(sample_customer.id) == {'balance': 450, 'tier': 'Silver'}

    def test_clamped_at_zero(self, app, sample_customer, sample_tenant, earn):
        service = LedgerService()
        earned = earn(sample_customer, 100, amount=Decimal('10.00'))
        service.create_entry(
            sample_customer.id, sample_tenant.id, 'SPENT', 0, 300, 'APPROVED'
        )

        assert service.compute_balance(sample_customer.id)['balance'] == 0
        breakdown = service.get_balance_breakdown(sample_customer.id)
        assert breakdown['raw_sum'] == -200
        assert breakdown['balance'] == 0
        assert earned.id is not None

    def test_pending_excluded(self, app, sample_customer, sample_tenant, earn):
        service = LedgerService()
        earn(sample_customer, 200)
        service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('30.00'))

        assert service.compute_balance(sample_customer.id)['balance'] == 200
        assert service.get_pending_points(sample_customer.id) == {'pending_points': 300, 'pending_count': 1}

    def test_only_own_entries(self, app, sample_customer, other_customer, earn):
        earn(sample_customer, 300)
        earn(other_customer, 700)
        assert LedgerService().compute_balance(sample_customer.id)['balance'] == 300


class TestAppendEntry:
    """Sign and status conventions."""

    @pytest.mark.parametrize('entry_type,amount,points,status', [
        ('EARNED', 10, -5, 'APPROVED'),
        ('EARNED', -10, 5, 'APPROVED'),
        ('EARNED', 10, 100, 'VOID'),
        ('SPENT', 0, -100, 'APPROVED'),
        ('SPENT', 0, 100, 'PENDING'),
        ('REFUND', -10, 100, 'APPROVED'),
        ('REFUND', 10, -100, 'APPROVED'),
        ('VOID', 0, -100, 'VOID'),
        ('VOID', 0, 100, 'APPROVED'),
        ('BONUS', 0, 100, 'APPROVED'),
    ])
    def test_invalid_combinations_rejected(self, app, sample_customer, sample_tenant, entry_type, amount, points, status):
        with pytest.raises(ValidationError):
            LedgerService().append_entry(
                sample_customer.id, sample_tenant.id, entry_type, amount, points, status
            )

    def test_non_integer_points_rejected(self, app, sample_customer, sample_tenant):
        with pytest.raises(ValidationError):
            LedgerService().append_entry(
                sample_customer.id, sample_tenant.id, 'EARNED', 10, 10.5, 'APPROVED'
            )

    def test_unknown_customer(self, app, sample_tenant):
        with pytest.raises(CustomerNotFoundError):
            LedgerService().append_entry(99999, sample_tenant.id, 'EARNED', 10, 100, 'APPROVED')

    def test_unknown_tenant(self, app, sample_customer):
        with pytest.raises(NotFoundError):
            LedgerService().append_entry(sample_customer.id, 99999, 'EARNED', 10, 100, 'APPROVED')

    def test_append_does_not_commit(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        service.append_entry(sample_customer.id, sample_tenant.id, 'EARNED', 10, 100, 'APPROVED')
        db.session.rollback()

        assert LedgerEntry.query.filter_by(customer_id=sample_customer.id).count() == 0

    def test_lowercase_type_and_status_normalised(self, app, sample_customer, sample_tenant):
        created = LedgerService().create_entry(
            sample_customer.id, sample_tenant.id, 'earned', 10, 100, 'approved'
        )
        assert created.type == 'EARNED'
        assert created.status == 'APPROVED'


class TestReceiptReview:

    def test_submit_creates_pending_entry(self, app, sample_customer, sample_tenant):
        created = LedgerService().submit_receipt(sample_customer.id, sample_tenant.id, Decimal('12.50'))

        assert created.type == LedgerEntryType.EARNED.value
        assert created.status == LedgerEntryStatus.PENDING.value
        assert created.points == 125
        assert created.source == 'receipt'

    def test_submit_uses_tenant_earn_rate(self, app, sample_customer, sample_tenant):
        save_tenant_points_config(sample_tenant.id, base_points_per_pound=2)
        created = LedgerService().submit_receipt(sample_customer.id, sample_tenant.id, Decimal('12.50'))
        assert created.points == 25

    def test_approve_counts_toward_balance(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        created = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))

        reviewed = service.review_pending_entry(created.id, 'approve', reviewer='staff-1', notes='Receipt ok')

        assert reviewed.status == 'APPROVED'
        assert reviewed.reviewed_by == 'staff-1'
        assert reviewed.reviewed_at is not None
        assert service.compute_balance(sample_customer.id)['balance'] == 200

    def test_reject_never_counts(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        created = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))

        service.review_pending_entry(created.id, 'reject', reviewer='staff-1')

        assert service.compute_balance(sample_customer.id)['balance'] == 0
        assert service.get_pending_points(sample_customer.id)['pending_count'] == 0

    def test_second_review_fails(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        created = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))
        service.review_pending_entry(created.id, 'approve')

        with pytest.raises(InvalidStatusTransitionError):
            service.review_pending_entry(created.id, 'reject')

        assert db.session.get(LedgerEntry, created.id).status == 'APPROVED'

    def test_approved_entry_cannot_be_reviewed(self, app, sample_customer, earn):
        approved = earn(sample_customer, 100)
        with pytest.raises(InvalidStatusTransitionError):
            LedgerService().review_pending_entry(approved.id, 'reject')

    def test_unknown_action(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        created = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))
        with pytest.raises(ValidationError):
            service.review_pending_entry(created.id, 'maybe')

    def test_review_scoped_to_tenant(self, app, sample_customer, sample_tenant, second_tenant):
        service = LedgerService()
        created = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))
        with pytest.raises(NotFoundError):
            service.review_pending_entry(created.id, 'approve', tenant_id=second_tenant.id)

    def test_list_pending_by_tenant(self, app, sample_customer, sample_tenant, second_tenant):
        service = LedgerService()
        service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('20'))
        service.submit_receipt(sample_customer.id, second_tenant.id, Decimal('5'))

        assert len(service.list_pending_entries()) == 2
        assert len(service.list_pending_entries(second_tenant.id)) == 1


class TestPurchaseAndRefund:

    def test_purchase_is_approved_earned(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        created = service.record_purchase(sample_customer.id, sample_tenant.id, Decimal('25.00'))

        assert created.status == 'APPROVED'
        assert created.points == 250
        assert service.compute_balance(sample_customer.id) == {'balance': 250, 'tier': 'Silver'}

    def test_explicit_points(self, app, sample_customer, sample_tenant):
        created = LedgerService().record_purchase(sample_customer.id, sample_tenant.id, Decimal('25.00'), points=40)
        assert created.points == 40

    def test_partial_refund(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        purchase = service.record_purchase(sample_customer.id, sample_tenant.id, Decimal('25.00'))

        refund = service.record_refund(purchase.id, Decimal('10.00'))

        assert refund.type == 'REFUND'
        assert refund.points == -100
        assert Decimal(str(refund.amount)) == Decimal('-10.00')
        assert refund.related_entry_id == purchase.id
        assert service.compute_balance(sample_customer.id)['balance'] == 150

    def test_refunds_capped_at_purchase_amount(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        purchase = service.record_purchase(sample_customer.id, sample_tenant.id, Decimal('25.00'))
        service.record_refund(purchase.id, Decimal('20.00'))

        with pytest.raises(ValidationError):
            service.record_refund(purchase.id, Decimal('10.00'))

    def test_clawback_capped_at_earned_points(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        purchase = service.record_purchase(sample_customer.id, sample_tenant.id, Decimal('25.00'), points=50)

        refund = service.record_refund(purchase.id, Decimal('25.00'))

        assert refund.points == -50
        assert service.compute_balance(sample_customer.id)['balance'] == 0

    def test_only_approved_earned_refundable(self, app, sample_customer, sample_tenant):
        service = LedgerService()
        pending = service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('25.00'))
        with pytest.raises(ValidationError):
            service.record_refund(pending.id, Decimal('5.00'))

    def test_unknown_original(self, app):
        with pytest.raises(NotFoundError):
            LedgerService().record_refund(99999, Decimal('5.00'))


class TestHistory:

    def test_newest_first_and_paginated(self, app, sample_customer, earn):
        for points in (10, 20, 30):
            earn(sample_customer, points)

        history = LedgerService().get_history(sample_customer.id, per_page=2)

        assert history['total'] == 3
        assert history['pages'] == 2
        assert [e['points'] for e in history['entries']] == [30, 20]

    def test_filter_by_status(self, app, sample_customer, sample_tenant, earn):
        service = LedgerService()
        earn(sample_customer, 10)
        service.submit_receipt(sample_customer.id, sample_tenant.id, Decimal('5'))

        history = service.get_history(sample_customer.id, status='pending')
        assert history['total'] == 1
        assert history['entries'][0]['status'] == 'PENDING'

    def test_breakdown_by_type(self, app, sample_customer, sample_tenant, earn):
        service = LedgerService()
        earn(sample_customer, 500)
        service.create_entry(sample_customer.id, sample_tenant.id, 'SPENT', 0, 200, 'APPROVED')

        breakdown = service.get_balance_breakdown(sample_customer.id)

        assert breakdown['by_type']['EARNED'] == 500
        assert breakdown['by_type']['SPENT'] == -200
        assert breakdown['balance'] == 300
        assert breakdown['entry_count'] == 2


class TestServicesPackage:

    @pytest.mark.parametrize('name', ['ledger_service', 'voucher_service', 'redemption_service'])
    def test_submodules_stay_modules(self, name):
        from localperks import services
        assert isinstance(getattr(services, name), ModuleType)
