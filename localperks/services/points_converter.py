"""
Points <-> currency conversion.

Two distinct rates are involved:

- Earn side: ``base_points_per_pound`` (optionally replaced by a spend band
  rate and scaled by bonus multipliers). Always floors to whole points.
- Spend side: ``point_face_value``, the monetary worth of one point. Turning
  points into money is a straight multiplication and is not rounded; turning
  a discount amount into a point price rounds up so a discount is never
  undercharged.

All arithmetic is Decimal. Any face value that is zero, negative or not
finite makes the spend-side conversions raise ConfigurationError instead of
returning a price of zero points.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Dict, Any, List, Optional

from ..utils.exceptions import ConfigurationError, ValidationError


_ROUNDING_STEPS = {
    'PENNY': Decimal('0.01'),
    'FIVE_PENCE': Decimal('0.05'),
    'TEN_PENCE': Decimal('0.10'),
    'POUND': Decimal('1'),
}


def _to_decimal(value, field: str) -> Decimal:
    """Coerce a number to a finite Decimal or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field)
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field)
    return result


def _face_value(config: Dict[str, Any]) -> Decimal:
    """Validated spend-side face value."""
    raw = config.get('point_face_value')
    try:
        face = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise ConfigurationError(f"Invalid point face value: {raw!r}")
    if not face.is_finite() or face <= 0:
        raise ConfigurationError(f"Invalid point face value: {raw!r}")
    return face


def round_amount(amount: Decimal, rule: str = 'PENNY') -> Decimal:
    """Round a purchase amount to the nearest penny, 5p, 10p or pound."""
    step = _ROUNDING_STEPS.get(rule, _ROUNDING_STEPS['PENNY'])
    units = (amount / step).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return (units * step).quantize(Decimal('0.01'))


def points_for_currency(amount, config: Dict[str, Any]) -> int:
    """
    Points required to cover a monetary amount (e.g. a £10 discount).

    Rounds up to whole points: 10 / 0.01 = 1000 exactly, 10 / 0.03 = 334.
    """
    value = _to_decimal(amount, 'amount')
    if value < 0:
        raise ValidationError("amount must not be negative", 'amount')

    face = _face_value(config)
    required = (value / face).to_integral_value(rounding=ROUND_CEILING)
    if not required.is_finite():
        raise ConfigurationError("Invalid points calculation. Please contact support.")
    return int(required)


def currency_for_points(points: int, config: Dict[str, Any]) -> Decimal:
    """Monetary face value of a number of points (100 pts at 0.01 = £1.00)."""
    return Decimal(int(points)) * _face_value(config)


def _matching_tier(amount: Decimal, tiers: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for tier in tiers or []:
        min_amount = Decimal(str(tier.get('min_amount', 0)))
        max_amount = tier.get('max_amount')
        if amount < min_amount:
            continue
        if max_amount is not None and amount > Decimal(str(max_amount)):
            continue
        return tier
    return None


def _rule_applies(rule: Dict[str, Any], amount: Decimal, when: datetime) -> bool:
    rule_type = rule.get('type')

    if rule_type == 'DAY_OF_WEEK':
        # Sunday == 0 through Saturday == 6
        return when.isoweekday() % 7 in (rule.get('days_of_week') or [])

    if rule_type == 'DATE_RANGE':
        start, end = rule.get('start_date'), rule.get('end_date')
        if not start or not end:
            return False
        start_dt = datetime.fromisoformat(str(start)).replace(tzinfo=None)
        end_dt = datetime.fromisoformat(str(end)).replace(tzinfo=None)
        return start_dt <= when <= end_dt

    if rule_type == 'MINIMUM_SPEND':
        minimum = rule.get('minimum_spend')
        return minimum is not None and amount >= Decimal(str(minimum))

    return False


def calculate_purchase_points(amount, config: Dict[str, Any], when: datetime = None) -> Dict[str, Any]:
    """
    Earn-side calculation with a breakdown of what applied.

    Returns:
        Dict with rounded_amount, points_per_pound, base_points, bonus_points,
        total_points and applied_rules (descriptions)
    """
    value = _to_decimal(amount, 'amount')
    if value < 0:
        raise ValidationError("Purchase amount must not be negative", 'amount')

    when = when or datetime.utcnow()
    rounded = round_amount(value, config.get('rounding_rule', 'PENNY'))

    minimum_spend = Decimal(str(config.get('minimum_spend') or 0))
    if rounded < minimum_spend:
        return {
            'rounded_amount': rounded,
            'points_per_pound': 0,
            'base_points': 0,
            'bonus_points': 0,
            'total_points': 0,
            'applied_rules': [f'Purchase amount below minimum spend of £{minimum_spend:.2f}'],
        }

    applied = []
    tier = _matching_tier(rounded, config.get('tiers'))
    if tier and tier.get('points_per_pound') is not None:
        rate = Decimal(str(tier['points_per_pound']))
        if tier.get('description'):
            applied.append(tier['description'])
    else:
        rate = Decimal(str(config.get('base_points_per_pound', 0)))

    raw_points = rounded * rate
    base_points = int(raw_points.to_integral_value(rounding=ROUND_FLOOR))

    # Floor after every applied rule
    total_points = base_points
    for rule in config.get('bonus_rules') or []:
        if _rule_applies(rule, rounded, when):
            boosted = Decimal(total_points) * Decimal(str(rule.get('multiplier', 1)))
            total_points = int(boosted.to_integral_value(rounding=ROUND_FLOOR))
            if rule.get('description'):
                applied.append(rule['description'])

    return {
        'rounded_amount': rounded,
        'points_per_pound': rate,
        'base_points': base_points,
        'bonus_points': total_points - base_points,
        'total_points': total_points,
        'applied_rules': applied,
    }


def points_for_purchase(amount, config: Dict[str, Any], when: datetime = None) -> int:
    """Whole points earned for a purchase (floored)."""
    return calculate_purchase_points(amount, config, when)['total_points']


def available_discounts(points: int, config: Dict[str, Any]) -> List[int]:
    """Whole-pound discounts from £1 up to the tenant maximum that a balance can afford."""
    max_discount = int(config.get('max_discount_amount') or 0)
    return [
        amount for amount in range(1, max_discount + 1)
        if points_for_currency(amount, config) <= points
    ]
