"""
Customer model.
"""
from datetime import datetime
from ..extensions import db


class Customer(db.Model):
    """
    Loyalty customer.

    There is no points column: the spendable balance is always derived from
    the ledger (see services.ledger_service.compute_balance).
    """
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)  # Home tenant

    email = db.Column(db.String(255), nullable=False, unique=True)
    name = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Customer {self.id} {self.email}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'email': self.email,
            'name': self.name,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
