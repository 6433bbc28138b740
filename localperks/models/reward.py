"""
Reward catalog and redemption records.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Any
from ..extensions import db


class RewardType(str, Enum):
    """Types of redeemable rewards."""
    REWARD = 'reward'       # Tenant catalog item (free coffee, etc.)
    DISCOUNT = 'discount'   # Fixed monetary discount priced by the tenant's face value


class Reward(db.Model):
    """
    Redeemable rewards catalog.

    A reward belongs to the tenant that issues it; vouchers minted for it can
    only be redeemed at that tenant.
    """
    __tablename__ = 'rewards'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000))

    reward_type = db.Column(db.String(20), nullable=False, default=RewardType.REWARD.value)
    points_cost = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Numeric(10, 2))  # For discount rewards: £ value

    # Availability
    is_active = db.Column(db.Boolean, default=True)
    starts_at = db.Column(db.DateTime)
    ends_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tenant = db.relationship('Tenant', backref=db.backref('rewards', lazy='dynamic'))
    redemptions = db.relationship('Redemption', backref='reward', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_rewards_tenant_active', 'tenant_id', 'is_active'),
    )

    def __repr__(self):
        return f'<Reward {self.name}: {self.points_cost} pts>'

    def is_available(self, now: datetime = None) -> bool:
        """Check if reward is currently available."""
        if not self.is_active:
            return False

        now = now or datetime.utcnow()
        if self.starts_at and now < self.starts_at:
            return False
        if self.ends_at and now > self.ends_at:
            return False

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for API responses."""
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'description': self.description,
            'reward_type': self.reward_type,
            'points_cost': self.points_cost,
            'discount_amount': float(self.discount_amount) if self.discount_amount is not None else None,
            'starts_at': self.starts_at.isoformat() if self.starts_at else None,
            'ends_at': self.ends_at.isoformat() if self.ends_at else None,
            'is_active': self.is_active,
            'is_available': self.is_available(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Redemption(db.Model):
    """
    Record of points spent on a reward.

    Immutable once created. Cancelling the voucher appends a compensating
    ledger entry; the redemption row stays for the audit trail.
    """
    __tablename__ = 'redemptions'

    id = db.Column(db.Integer, primary_key=True)
    reward_id = db.Column(db.Integer, db.ForeignKey('rewards.id'), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)

    points = db.Column(db.Integer, nullable=False)  # Cost charged

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    customer = db.relationship('Customer', backref=db.backref('redemptions', lazy='dynamic'))
    ledger_entries = db.relationship('LedgerEntry', backref='redemption', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_redemptions_customer_created', 'customer_id', 'created_at'),
    )

    def __repr__(self):
        return f'<Redemption {self.id}: {self.points} pts reward={self.reward_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'reward_id': self.reward_id,
            'customer_id': self.customer_id,
            'points': self.points,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
