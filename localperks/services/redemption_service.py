"""
Redemption Service for LocalPerks.

Turns points into vouchers. Each redemption is one database transaction:

1. Lock the customer row and recompute the balance from the ledger
2. Price the reward (catalog cost, or discount amount / face value)
3. Refuse if the balance is short
4. Create the Redemption
5. Mint a Voucher with a collision-free code
6. Append the SPENT entry

Nothing is committed until all rows exist; any failure rolls the whole unit
back, so there is never a voucher without its charge or a charge without its
voucher.
"""
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Tuple
from flask import current_app

from ..extensions import db
from ..models.customer import Customer
from ..models.ledger import LedgerEntry, LedgerEntryType, LedgerEntryStatus, LedgerSource
from ..models.reward import Reward, RewardType, Redemption
from ..models.voucher import Voucher, VoucherStatus
from ..utils.exceptions import (
    CustomerNotFoundError,
    RewardNotFoundError,
    VoucherNotFoundError,
    ValidationError,
    InsufficientPointsError,
    CodeGenerationExhausted,
    AuthorizationError,
)
from .ledger_service import LedgerService
from .points_config import get_tenant_points_config
from .points_converter import points_for_currency
from .voucher_service import VoucherService


# Code formats: catalog rewards LP-XXXXXXXX, discounts DISK-XXXX-XXXX
REWARD_CODE_FORMAT = {'prefix': 'LP', 'groups': 1, 'group_size': 8}
DISCOUNT_CODE_FORMAT = {'prefix': 'DISK', 'groups': 2, 'group_size': 4}


def discount_reward_name(amount: Decimal) -> str:
    """'£10 Discount Voucher', or '£2.50 Discount Voucher' for fractional amounts."""
    if amount == amount.to_integral_value():
        return f'£{int(amount)} Discount Voucher'
    return f'£{amount:.2f} Discount Voucher'


class RedemptionService:
    """
    Redeem rewards and discounts, and cancel unused redemptions.

    Usage:
        service = RedemptionService()
        result = service.redeem_reward(customer_id, reward_id)
        result['voucher'].code   # 'LP-7QX2K9ZD'
        result['balance']        # {'balance': 300, 'tier': 'Silver'}
    """

    def __init__(self):
        self.ledger = LedgerService()
        self.vouchers = VoucherService()

    # ==================== Helpers ====================

    def _lock_customer(self, customer_id: int) -> Customer:
        """
        Take a write lock on the customer before the balance is read.

        The UPDATE holds the row lock on PostgreSQL and the database's
        RESERVED lock on SQLite (which ignores FOR UPDATE and only begins a
        transaction at the first write), so a second spend for the same
        customer waits here until the first commits or rolls back.
        """
        touched = Customer.query.filter_by(id=customer_id).update(
            {'updated_at': datetime.utcnow()}, synchronize_session=False
        )
        if not touched:
            raise CustomerNotFoundError(customer_id)
        return Customer.query.filter_by(id=customer_id).with_for_update().populate_existing().first()

    def _generate_unique_code(self, code_format: Dict[str, Any]) -> str:
        max_attempts = current_app.config.get('VOUCHER_CODE_MAX_ATTEMPTS', 10)
        for _ in range(max_attempts):
            code = Voucher.generate_code(**code_format)
            if not Voucher.query.filter_by(code=code).first():
                return code
        raise CodeGenerationExhausted(max_attempts)

    def _spend(
        self,
        customer: Customer,
        reward: Reward,
        required: int,
        amount: Decimal,
        source: str,
        description: str,
        code_format: Dict[str, Any]
    ) -> Tuple[Redemption, Voucher, LedgerEntry]:
        """Steps 3-6 of a redemption. Caller holds the customer lock and commits."""
        available = self.ledger.compute_balance(customer.id)['balance']
        if available < required:
            raise InsufficientPointsError(required, available)

        redemption = Redemption(
            reward_id=reward.id,
            customer_id=customer.id,
            points=required,
            created_at=datetime.utcnow()
        )
        db.session.add(redemption)
        db.session.flush()

        now = datetime.utcnow()
        voucher = Voucher(
            code=self._generate_unique_code(code_format),
            redemption_id=redemption.id,
            customer_id=customer.id,
            reward_id=reward.id,
            status=VoucherStatus.ACTIVE.value,
            expires_at=now + timedelta(days=current_app.config.get('VOUCHER_VALID_DAYS', 365)),
            created_at=now
        )
        db.session.add(voucher)
        db.session.flush()

        entry = self.ledger.append_entry(
            customer.id,
            reward.tenant_id,
            LedgerEntryType.SPENT.value,
            amount,
            required,
            LedgerEntryStatus.APPROVED.value,
            source=source,
            description=description,
            redemption_id=redemption.id,
            created_by=str(customer.id)
        )
        return redemption, voucher, entry

    def _result(self, customer_id: int, redemption: Redemption, voucher: Voucher, entry: LedgerEntry) -> Dict[str, Any]:
        return {
            'redemption': redemption,
            'voucher': voucher,
            'transaction': entry,
            'balance': self.ledger.compute_balance(customer_id),
        }

    # ==================== Redeem ====================

    def redeem_reward(self, customer_id: int, reward_id: int) -> Dict[str, Any]:
        """
        Spend points on a catalog reward.

        Raises:
            RewardNotFoundError: Reward does not exist
            ValidationError: Reward inactive or outside its availability window
            InsufficientPointsError: Balance below the reward cost
            CodeGenerationExhausted: No unused voucher code found
        """
        reward = Reward.query.filter_by(id=reward_id).first()
        if not reward:
            raise RewardNotFoundError(reward_id)
        if not reward.is_available():
            raise ValidationError("Reward is not currently available", 'reward')
        if reward.points_cost is None or reward.points_cost <= 0:
            raise ValidationError("Reward has no valid points cost", 'reward')

        try:
            customer = self._lock_customer(customer_id)
            redemption, voucher, entry = self._spend(
                customer,
                reward,
                reward.points_cost,
                Decimal('0'),
                LedgerSource.REDEMPTION.value,
                f'Redeemed: {reward.name}',
                REWARD_CODE_FORMAT
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Reward {reward.id} redeemed by customer {customer_id}: "
            f"{reward.points_cost} pts, voucher {voucher.code}"
        )
        return self._result(customer_id, redemption, voucher, entry)

    def _get_or_create_discount_reward(self, tenant_id: int, amount: Decimal, required: int) -> Reward:
        name = discount_reward_name(amount)
        reward = Reward.query.filter_by(
            tenant_id=tenant_id,
            reward_type=RewardType.DISCOUNT.value,
            name=name
        ).first()

        if not reward:
            reward = Reward(
                tenant_id=tenant_id,
                name=name,
                description=f'£{amount:.2f} off your purchase',
                reward_type=RewardType.DISCOUNT.value,
                points_cost=required,
                discount_amount=amount,
                is_active=True
            )
            db.session.add(reward)
            db.session.flush()
        elif reward.points_cost != required:
            # Keep the catalog price in line with the tenant's current face value
            reward.points_cost = required

        return reward

    def redeem_discount(self, customer_id: int, discount_amount) -> Dict[str, Any]:
        """
        Spend points on a fixed monetary discount at the customer's home tenant.

        The point price is discount_amount / point_face_value rounded up,
        so £10 at £0.01 per point costs exactly 1000 points.

        Raises:
            ValidationError: Amount not in (0, max discount]
            ConfigurationError: Tenant face value unusable
            InsufficientPointsError: Balance below the price
        """
        try:
            amount = Decimal(str(discount_amount))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError("Discount amount must be a number", 'discount_amount')
        if not amount.is_finite():
            raise ValidationError("Discount amount must be a number", 'discount_amount')
        amount = amount.quantize(Decimal('0.01'))

        try:
            customer = self._lock_customer(customer_id)

            config = get_tenant_points_config(customer.tenant_id)
            max_discount = Decimal(str(config.get('max_discount_amount') or 0))
            if amount <= 0 or amount > max_discount:
                raise ValidationError(
                    f"Discount amount must be between £0.01 and £{max_discount:.2f}",
                    'discount_amount'
                )

            required = points_for_currency(amount, config)
            reward = self._get_or_create_discount_reward(customer.tenant_id, amount, required)

            redemption, voucher, entry = self._spend(
                customer,
                reward,
                required,
                amount,
                LedgerSource.DISCOUNT.value,
                f'Redeemed: {reward.name}',
                DISCOUNT_CODE_FORMAT
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Discount £{amount:.2f} redeemed by customer {customer_id}: "
            f"{required} pts, voucher {voucher.code}"
        )
        return self._result(customer_id, redemption, voucher, entry)

    # ==================== Cancel ====================

    def cancel_redemption(self, voucher_id: int, customer_id: int) -> Dict[str, Any]:
        """
        Cancel an unused voucher and restore its points.

        Only the owning customer may cancel, and only while the voucher is
        active. The status change is guarded by ``status = 'active'`` and is
        committed together with a VOID compensating entry linked to the
        original SPENT entry.

        Raises:
            VoucherNotFoundError, AuthorizationError, AlreadyUsedError,
            ExpiredError, InvalidStatusTransitionError
        """
        voucher = self.vouchers.get_voucher(voucher_id)
        if voucher.customer_id != customer_id:
            raise AuthorizationError("You can only cancel your own vouchers")

        self.vouchers._check_usable(voucher, VoucherStatus.CANCELLED.value)

        try:
            self._lock_customer(customer_id)

            now = datetime.utcnow()
            updated = Voucher.query.filter(
                Voucher.id == voucher.id,
                Voucher.status == VoucherStatus.ACTIVE.value,
                Voucher.expires_at >= now
            ).update({
                'status': VoucherStatus.CANCELLED.value,
                'cancelled_at': now,
            }, synchronize_session=False)

            if updated == 0:
                self.vouchers.raise_for_lost_transition(voucher.id, VoucherStatus.CANCELLED.value)

            redemption = Redemption.query.filter_by(id=voucher.redemption_id).first()
            if not redemption:
                raise VoucherNotFoundError(voucher_id)

            spent = LedgerEntry.query.filter_by(
                redemption_id=redemption.id,
                type=LedgerEntryType.SPENT.value
            ).first()

            entry = self.ledger.append_entry(
                customer_id,
                spent.tenant_id if spent else voucher.reward.tenant_id,
                LedgerEntryType.VOID.value,
                spent.amount if spent else Decimal('0'),
                redemption.points,
                LedgerEntryStatus.VOID.value,
                source=LedgerSource.REDEMPTION_CANCEL.value,
                description=f'Cancelled voucher {voucher.code}',
                redemption_id=redemption.id,
                related_entry_id=spent.id if spent else None,
                created_by=str(customer_id)
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        db.session.refresh(voucher)
        current_app.logger.info(
            f"Voucher {voucher.code} cancelled by customer {customer_id}: {redemption.points} pts restored"
        )
        return {
            'voucher': voucher,
            'transaction': entry,
            'points_restored': redemption.points,
            'balance': self.ledger.compute_balance(customer_id),
        }


redemption_service = RedemptionService()
