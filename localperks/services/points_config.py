"""
Tenant points configuration store.

Reads a tenant's exchange rates and earn-side overrides, merging whatever is
stored over the documented defaults. Configuration is read from the database
on every conversion; it is never cached in process memory because a stale
face value would misprice every redemption.
"""
from copy import deepcopy
from decimal import Decimal
from typing import Dict, Any
from flask import current_app

from ..extensions import db
from ..models.tenant import Tenant, TenantPointsConfig
from ..utils.exceptions import NotFoundError


# Earn-side overrides. Spend bands and bonus rules are opt-in per tenant.
DEFAULT_SETTINGS = {
    'tiers': [],              # [{'min_amount', 'max_amount', 'points_per_pound', 'description'}]
    'bonus_rules': [],        # [{'type', 'multiplier', 'description', ...conditions}]
    'rounding_rule': 'PENNY', # PENNY, FIVE_PENCE, TEN_PENCE, POUND
    'minimum_spend': 0,
}

ROUNDING_RULES = ('PENNY', 'FIVE_PENCE', 'TEN_PENCE', 'POUND')
BONUS_RULE_TYPES = ('DAY_OF_WEEK', 'DATE_RANGE', 'MINIMUM_SPEND')


def default_points_config() -> Dict[str, Any]:
    """Configuration used for tenants that never saved one."""
    return {
        'point_face_value': Decimal(str(current_app.config['DEFAULT_POINT_FACE_VALUE'])),
        'base_points_per_pound': int(current_app.config['DEFAULT_BASE_POINTS_PER_POUND']),
        'max_discount_amount': int(current_app.config['MAX_DISCOUNT_AMOUNT']),
        **deepcopy(DEFAULT_SETTINGS),
    }


def get_tenant_points_config(tenant_id: int) -> Dict[str, Any]:
    """
    Resolve the effective points configuration for a tenant.

    Stored values win; absent values fall back to defaults. A stored face
    value of zero is returned as-is so the converter can refuse it rather
    than silently substituting the default.

    Returns:
        Dict with point_face_value (Decimal), base_points_per_pound (int),
        max_discount_amount, tiers, bonus_rules, rounding_rule, minimum_spend
    """
    config = default_points_config()

    row = TenantPointsConfig.query.filter_by(tenant_id=tenant_id).first()
    if not row:
        return config

    if row.point_face_value is not None:
        config['point_face_value'] = Decimal(str(row.point_face_value))
    if row.base_points_per_pound is not None:
        config['base_points_per_pound'] = int(row.base_points_per_pound)

    settings = row.settings or {}
    for key in ('tiers', 'bonus_rules', 'rounding_rule', 'minimum_spend', 'max_discount_amount'):
        if settings.get(key) is not None:
            config[key] = deepcopy(settings[key])

    return config


def save_tenant_points_config(
    tenant_id: int,
    point_face_value: Decimal = None,
    base_points_per_pound: int = None,
    settings: Dict[str, Any] = None
) -> TenantPointsConfig:
    """
    Create or update a tenant's configuration.

    Only the fields passed are changed. Settings keys are merged into the
    stored settings rather than replacing them wholesale.
    """
    tenant = Tenant.query.filter_by(id=tenant_id).first()
    if not tenant:
        raise NotFoundError("Tenant", tenant_id)

    row = TenantPointsConfig.query.filter_by(tenant_id=tenant_id).first()
    if not row:
        row = TenantPointsConfig(tenant_id=tenant_id, settings={})
        db.session.add(row)

    if point_face_value is not None:
        row.point_face_value = point_face_value
    if base_points_per_pound is not None:
        row.base_points_per_pound = base_points_per_pound
    if settings:
        merged = dict(row.settings or {})
        merged.update(settings)
        row.settings = merged

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"Points config saved for tenant {tenant_id}: face={row.point_face_value} "
        f"rate={row.base_points_per_pound}"
    )
    return row
