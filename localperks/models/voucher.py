"""
Voucher model.

A voucher is the customer's proof of redemption. Its status only ever moves
out of ``active``; used, expired and cancelled are terminal.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Any
import secrets
import string
from ..extensions import db


class VoucherStatus(str, Enum):
    """Voucher lifecycle states."""
    ACTIVE = 'active'
    USED = 'used'           # Terminal: scanned at the issuing tenant
    EXPIRED = 'expired'     # Terminal: read after expires_at
    CANCELLED = 'cancelled' # Terminal: customer cancelled, points restored


VOUCHER_CODE_CHARS = string.ascii_uppercase + string.digits


class Voucher(db.Model):
    """
    Redeemable voucher minted together with its Redemption and SPENT entry.
    """
    __tablename__ = 'vouchers'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)

    redemption_id = db.Column(db.Integer, db.ForeignKey('redemptions.id'), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    reward_id = db.Column(db.Integer, db.ForeignKey('rewards.id'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=VoucherStatus.ACTIVE.value)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime)
    redeemed_tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'))  # Where it was scanned
    cancelled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    redemption = db.relationship('Redemption', backref=db.backref('voucher', uselist=False))
    customer = db.relationship('Customer', backref=db.backref('vouchers', lazy='dynamic'))
    reward = db.relationship('Reward')

    __table_args__ = (
        db.Index('ix_vouchers_customer_status', 'customer_id', 'status'),
        db.Index('ix_vouchers_status_expires', 'status', 'expires_at'),
    )

    def __repr__(self):
        return f'<Voucher {self.code} ({self.status})>'

    def is_past_expiry(self, now: datetime = None) -> bool:
        """True once expires_at has passed, whatever the stored status."""
        now = now or datetime.utcnow()
        return self.expires_at is not None and self.expires_at < now

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for API responses."""
        return {
            'id': self.id,
            'code': self.code,
            'redemption_id': self.redemption_id,
            'customer_id': self.customer_id,
            'reward_id': self.reward_id,
            'reward_name': self.reward.name if self.reward else None,
            'tenant_id': self.reward.tenant_id if self.reward else None,
            'status': self.status,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'used_at': self.used_at.isoformat() if self.used_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def generate_code(prefix: str = 'LP', groups: int = 1, group_size: int = 8) -> str:
        """Generate a random voucher code such as LP-7QX2K9ZD or DISK-4F2A-9QXT."""
        parts = [
            ''.join(secrets.choice(VOUCHER_CODE_CHARS) for _ in range(group_size))
            for _ in range(groups)
        ]
        return '-'.join([prefix] + parts)
