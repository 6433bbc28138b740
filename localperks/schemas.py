"""
Request types for the LocalPerks API.

Every write endpoint parses its JSON body into one of these before calling a
service, so services never see raw request dicts. Parsing raises
ValidationError (rendered as 400) naming the offending field.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any

from .utils.exceptions import ValidationError
from .services.points_config import ROUNDING_RULES, BONUS_RULE_TYPES


def _body(data) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _required(data: Dict[str, Any], name: str):
    value = data.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{name} is required", name)
    return value


def _decimal(value, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", name)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{name} must be a number", name)
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number", name)
    return result


def _positive_decimal(value, name: str) -> Decimal:
    result = _decimal(value, name)
    if result <= 0:
        raise ValidationError(f"{name} must be greater than zero", name)
    return result


def _int(value, name: str, minimum: int = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", name)
    try:
        result = int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{name} must be an integer", name)
    if isinstance(value, float) and value != result:
        raise ValidationError(f"{name} must be an integer", name)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", name)
    return result


def _optional_datetime(value, name: str) -> Optional[datetime]:
    if value in (None, ''):
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO 8601 datetime", name)


@dataclass
class EarnRequest:
    """Partner point-of-sale purchase."""
    customer_id: int
    amount: Decimal
    points: Optional[int] = None

    @classmethod
    def from_json(cls, data) -> 'EarnRequest':
        data = _body(data)
        points = data.get('points')
        return cls(
            customer_id=_int(_required(data, 'customer_id'), 'customer_id', minimum=1),
            amount=_positive_decimal(_required(data, 'amount'), 'amount'),
            points=_int(points, 'points', minimum=0) if points is not None else None,
        )


@dataclass
class ReceiptRequest:
    """Customer-submitted receipt awaiting approval."""
    tenant_id: int
    amount: Decimal

    @classmethod
    def from_json(cls, data) -> 'ReceiptRequest':
        data = _body(data)
        return cls(
            tenant_id=_int(_required(data, 'tenant_id'), 'tenant_id', minimum=1),
            amount=_positive_decimal(_required(data, 'amount'), 'amount'),
        )


@dataclass
class SpendRequest:
    """Redeem a catalog reward (reward id comes from the URL)."""
    reward_id: int

    @classmethod
    def from_path(cls, reward_id) -> 'SpendRequest':
        return cls(reward_id=_int(reward_id, 'reward_id', minimum=1))


@dataclass
class DiscountRedeemRequest:
    discount_amount: Decimal

    @classmethod
    def from_json(cls, data) -> 'DiscountRedeemRequest':
        data = _body(data)
        return cls(
            discount_amount=_positive_decimal(_required(data, 'discount_amount'), 'discount_amount'),
        )


@dataclass
class RefundRequest:
    amount: Decimal

    @classmethod
    def from_json(cls, data) -> 'RefundRequest':
        data = _body(data)
        return cls(amount=_positive_decimal(_required(data, 'amount'), 'amount'))


@dataclass
class ScanRequest:
    code: str

    @classmethod
    def from_json(cls, data) -> 'ScanRequest':
        data = _body(data)
        code = _required(data, 'code')
        if not isinstance(code, str):
            raise ValidationError("code must be a string", 'code')
        return cls(code=code.strip().upper())


@dataclass
class ReviewRequest:
    action: str
    notes: Optional[str] = None

    @classmethod
    def from_json(cls, data) -> 'ReviewRequest':
        data = _body(data)
        action = str(_required(data, 'action')).lower()
        if action not in ('approve', 'reject'):
            raise ValidationError("action must be 'approve' or 'reject'", 'action')
        notes = data.get('notes')
        return cls(action=action, notes=str(notes)[:500] if notes else None)


@dataclass
class PointsConfigUpdate:
    """Partial update of a tenant's points configuration."""
    point_face_value: Optional[Decimal] = None
    base_points_per_pound: Optional[int] = None
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data) -> 'PointsConfigUpdate':
        data = _body(data)
        update = cls()

        if data.get('point_face_value') is not None:
            update.point_face_value = _positive_decimal(data['point_face_value'], 'point_face_value')
        if data.get('base_points_per_pound') is not None:
            update.base_points_per_pound = _int(data['base_points_per_pound'], 'base_points_per_pound', minimum=0)

        if data.get('rounding_rule') is not None:
            if data['rounding_rule'] not in ROUNDING_RULES:
                raise ValidationError(f"rounding_rule must be one of {', '.join(ROUNDING_RULES)}", 'rounding_rule')
            update.settings['rounding_rule'] = data['rounding_rule']

        if data.get('minimum_spend') is not None:
            minimum = _decimal(data['minimum_spend'], 'minimum_spend')
            if minimum < 0:
                raise ValidationError("minimum_spend must not be negative", 'minimum_spend')
            update.settings['minimum_spend'] = str(minimum)

        if data.get('max_discount_amount') is not None:
            update.settings['max_discount_amount'] = _int(data['max_discount_amount'], 'max_discount_amount', minimum=1)

        if data.get('tiers') is not None:
            update.settings['tiers'] = cls._parse_tiers(data['tiers'])

        if data.get('bonus_rules') is not None:
            update.settings['bonus_rules'] = cls._parse_bonus_rules(data['bonus_rules'])

        return update

    @staticmethod
    def _parse_tiers(tiers) -> list:
        if not isinstance(tiers, list):
            raise ValidationError("tiers must be a list", 'tiers')
        parsed = []
        for tier in tiers:
            if not isinstance(tier, dict):
                raise ValidationError("each tier must be an object", 'tiers')
            max_amount = tier.get('max_amount')
            parsed.append({
                'min_amount': str(_decimal(tier.get('min_amount', 0), 'tiers')),
                'max_amount': str(_decimal(max_amount, 'tiers')) if max_amount is not None else None,
                'points_per_pound': str(_decimal(_required(tier, 'points_per_pound'), 'tiers')),
                'description': tier.get('description'),
            })
        return parsed

    @staticmethod
    def _parse_bonus_rules(rules) -> list:
        if not isinstance(rules, list):
            raise ValidationError("bonus_rules must be a list", 'bonus_rules')
        parsed = []
        for rule in rules:
            if not isinstance(rule, dict) or rule.get('type') not in BONUS_RULE_TYPES:
                raise ValidationError(
                    f"each bonus rule needs a type of {', '.join(BONUS_RULE_TYPES)}", 'bonus_rules'
                )
            parsed_rule = {**rule, 'multiplier': str(_positive_decimal(rule.get('multiplier', 1), 'bonus_rules'))}

            if rule['type'] == 'DAY_OF_WEEK':
                days = rule.get('days_of_week')
                if not isinstance(days, list) or not days or any(
                    isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days
                ):
                    raise ValidationError(
                        "days_of_week must be a list of integers 0 (Sunday) to 6 (Saturday)", 'bonus_rules'
                    )
                parsed_rule['days_of_week'] = sorted(set(days))

            elif rule['type'] == 'DATE_RANGE':
                start = _optional_datetime(rule.get('start_date'), 'bonus_rules')
                end = _optional_datetime(rule.get('end_date'), 'bonus_rules')
                if start is None or end is None:
                    raise ValidationError("DATE_RANGE rules need start_date and end_date", 'bonus_rules')
                if start > end:
                    raise ValidationError("start_date must not be after end_date", 'bonus_rules')
                parsed_rule['start_date'] = start.isoformat()
                parsed_rule['end_date'] = end.isoformat()

            elif rule['type'] == 'MINIMUM_SPEND':
                if rule.get('minimum_spend') is None:
                    raise ValidationError("MINIMUM_SPEND rules need minimum_spend", 'bonus_rules')
                minimum = _decimal(rule['minimum_spend'], 'bonus_rules')
                if minimum < 0:
                    raise ValidationError("minimum_spend must not be negative", 'bonus_rules')
                parsed_rule['minimum_spend'] = str(minimum)

            parsed.append(parsed_rule)
        return parsed

    def is_empty(self) -> bool:
        return self.point_face_value is None and self.base_points_per_pound is None and not self.settings


@dataclass
class RewardCreateRequest:
    name: str
    points_cost: int
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_json(cls, data) -> 'RewardCreateRequest':
        data = _body(data)
        name = str(_required(data, 'name')).strip()
        if len(name) > 100:
            raise ValidationError("name must be at most 100 characters", 'name')

        request = cls(
            name=name,
            points_cost=_int(_required(data, 'points_cost'), 'points_cost', minimum=1),
            description=data.get('description'),
            starts_at=_optional_datetime(data.get('starts_at'), 'starts_at'),
            ends_at=_optional_datetime(data.get('ends_at'), 'ends_at'),
            is_active=bool(data.get('is_active', True)),
        )
        if request.starts_at and request.ends_at and request.ends_at <= request.starts_at:
            raise ValidationError("ends_at must be after starts_at", 'ends_at')
        return request
