"""
Tenant and per-tenant points configuration models.
"""
from datetime import datetime
from decimal import Decimal
from ..extensions import db


class Tenant(db.Model):
    """
    Partner business using the LocalPerks platform.
    Global table - shared across all tenants.
    """
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customers = db.relationship('Customer', backref='tenant', lazy='dynamic')
    points_config = db.relationship('TenantPointsConfig', backref='tenant', uselist=False)

    def __repr__(self):
        return f'<Tenant {self.slug}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'is_active': self.is_active
        }


class TenantPointsConfig(db.Model):
    """
    Points exchange rates for a tenant.

    point_face_value is the spend side (currency per point) and
    base_points_per_pound the earn side. Everything else the tenant admin
    can tune (spend bands, bonus rules, rounding) lives in ``settings`` and
    is merged over defaults on read.
    """
    __tablename__ = 'tenant_points_configs'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False, unique=True)

    point_face_value = db.Column(db.Numeric(10, 4), default=Decimal('0.01'))  # £0.01 per point
    base_points_per_pound = db.Column(db.Integer, default=10)

    # Optional overrides: tiers, bonusRules, roundingRule, minimumSpend, maxDiscountAmount
    settings = db.Column(db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<TenantPointsConfig tenant={self.tenant_id} face={self.point_face_value}>'

    def to_dict(self):
        return {
            'tenant_id': self.tenant_id,
            'point_face_value': float(self.point_face_value) if self.point_face_value is not None else None,
            'base_points_per_pound': self.base_points_per_pound,
            'settings': self.settings or {},
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
