"""
Points ledger model.

The ledger is the only record of a customer's points. Entries are appended
and never edited, with one exception: a PENDING entry (customer-submitted
receipt) is reviewed exactly once into APPROVED or REJECTED. Mistakes are
corrected by appending an offsetting entry.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Any
from ..extensions import db


class LedgerEntryType(str, Enum):
    """Kinds of ledger entries."""
    EARNED = 'EARNED'   # Points earned from a purchase (points >= 0)
    SPENT = 'SPENT'     # Points spent on a redemption (stores the positive cost)
    REFUND = 'REFUND'   # Purchase refunded (points already negated by the caller)
    VOID = 'VOID'       # Compensation restoring previously spent points


class LedgerEntryStatus(str, Enum):
    """Review state of a ledger entry."""
    PENDING = 'PENDING'     # Awaiting admin approval, excluded from balance
    APPROVED = 'APPROVED'   # Counts toward balance
    REJECTED = 'REJECTED'   # Never counts
    VOID = 'VOID'           # Counts toward balance (+points)


class LedgerSource(str, Enum):
    """Where an entry came from."""
    PURCHASE = 'purchase'
    RECEIPT = 'receipt'
    REDEMPTION = 'redemption'
    DISCOUNT = 'discount'
    REFUND = 'refund'
    REDEMPTION_CANCEL = 'redemption_cancel'
    MANUAL = 'manual'


class LedgerEntry(db.Model):
    """
    A single points/currency-affecting event for a customer at a tenant.
    """
    __tablename__ = 'ledger_entries'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)

    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)  # Monetary, signed by type
    points = db.Column(db.Integer, nullable=False)  # Signed by type
    type = db.Column(db.String(20), nullable=False)  # LedgerEntryType
    status = db.Column(db.String(20), nullable=False)  # LedgerEntryStatus

    source = db.Column(db.String(30))  # LedgerSource
    description = db.Column(db.String(500))

    # Links
    redemption_id = db.Column(db.Integer, db.ForeignKey('redemptions.id'))
    related_entry_id = db.Column(db.Integer, db.ForeignKey('ledger_entries.id'))  # REFUND -> EARNED, VOID -> SPENT

    # Review of PENDING entries
    reviewed_by = db.Column(db.String(100))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.String(500))

    created_by = db.Column(db.String(100))  # user id or 'system'
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    customer = db.relationship('Customer', backref=db.backref('ledger_entries', lazy='dynamic'))
    tenant = db.relationship('Tenant', backref=db.backref('ledger_entries', lazy='dynamic'))
    related_entry = db.relationship('LedgerEntry', remote_side=[id])

    __table_args__ = (
        db.Index('ix_ledger_customer_status', 'customer_id', 'status'),
        db.Index('ix_ledger_tenant_status', 'tenant_id', 'status'),
        db.Index('ix_ledger_customer_created', 'customer_id', 'created_at'),
        db.Index('ix_ledger_related', 'related_entry_id'),
    )

    def __repr__(self):
        return f'<LedgerEntry {self.id}: {self.type} {self.points} pts ({self.status}) customer={self.customer_id}>'

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for API responses."""
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'tenant_id': self.tenant_id,
            'amount': float(self.amount) if self.amount is not None else 0.0,
            'points': self.points,
            'type': self.type,
            'status': self.status,
            'source': self.source,
            'description': self.description,
            'redemption_id': self.redemption_id,
            'related_entry_id': self.related_entry_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def to_dict_detailed(self) -> Dict[str, Any]:
        """Detailed serialization including review info."""
        data = self.to_dict()
        data.update({
            'created_by': self.created_by,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'review_notes': self.review_notes,
        })
        return data
