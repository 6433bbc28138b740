"""
Rewards catalog, reward redemption and discount redemption endpoints.
"""
from decimal import Decimal
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..middleware.auth import require_identity
from ..models.customer import Customer
from ..models.reward import Reward, RewardType
from ..schemas import SpendRequest, DiscountRedeemRequest, RewardCreateRequest
from ..services.ledger_service import ledger_service
from ..services.points_config import get_tenant_points_config
from ..services.points_converter import available_discounts, points_for_currency
from ..services.redemption_service import redemption_service
from ..utils.exceptions import AuthorizationError, CustomerNotFoundError, ValidationError

rewards_bp = Blueprint('rewards', __name__)


def _redemption_payload(result: dict) -> dict:
    return {
        'success': True,
        'redemption': result['redemption'].to_dict(),
        'voucher': result['voucher'].to_dict(),
        'transaction': result['transaction'].to_dict(),
        **result['balance'],
    }


# ==============================================================================
# CATALOG
# ==============================================================================

@rewards_bp.route('/rewards', methods=['GET'])
@require_identity()
def list_rewards():
    """
    List rewards currently available at a tenant.

    Query params:
        tenant_id: Tenant to list (defaults to the caller's tenant)
    """
    tenant_id = request.args.get('tenant_id', type=int) or g.tenant_id
    if not tenant_id:
        raise ValidationError("tenant_id is required", 'tenant_id')

    rewards = Reward.query.filter_by(
        tenant_id=tenant_id,
        reward_type=RewardType.REWARD.value,
        is_active=True
    ).order_by(Reward.points_cost.asc()).all()

    return jsonify({
        'rewards': [r.to_dict() for r in rewards if r.is_available()],
    })


@rewards_bp.route('/rewards', methods=['POST'])
@require_identity('PARTNER', 'ADMIN')
def create_reward():
    """
    Add a catalog reward for the caller's tenant.

    Request body:
        name, points_cost, description, starts_at, ends_at, is_active
    """
    if not g.tenant_id:
        raise AuthorizationError("Token is not bound to a tenant")

    req = RewardCreateRequest.from_json(request.get_json(silent=True))
    reward = Reward(
        tenant_id=g.tenant_id,
        name=req.name,
        description=req.description,
        reward_type=RewardType.REWARD.value,
        points_cost=req.points_cost,
        is_active=req.is_active,
        starts_at=req.starts_at,
        ends_at=req.ends_at
    )
    db.session.add(reward)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Reward {reward.id} '{reward.name}' created for tenant {g.tenant_id}")
    return jsonify({'success': True, 'reward': reward.to_dict()}), 201


@rewards_bp.route('/rewards/<int:reward_id>/redeem', methods=['POST'])
@require_identity('CUSTOMER')
def redeem_reward(reward_id):
    """Spend points on a reward and receive a voucher."""
    req = SpendRequest.from_path(reward_id)
    result = redemption_service.redeem_reward(g.customer_id, req.reward_id)
    return jsonify(_redemption_payload(result)), 201


# ==============================================================================
# DISCOUNTS
# ==============================================================================

@rewards_bp.route('/discounts', methods=['GET'])
@require_identity('CUSTOMER')
def list_discounts():
    """
    Discounts the caller can currently afford at their home tenant.

    Returns every whole-pound option with its point price, flagged affordable
    or not, plus the balance they were checked against.
    """
    customer = Customer.query.filter_by(id=g.customer_id).first()
    if not customer:
        raise CustomerNotFoundError(g.customer_id)

    config = get_tenant_points_config(customer.tenant_id)
    balance = ledger_service.compute_balance(customer.id)
    affordable = set(available_discounts(balance['balance'], config))

    options = []
    for amount in range(1, int(config['max_discount_amount']) + 1):
        options.append({
            'discount_amount': amount,
            'points_cost': points_for_currency(Decimal(amount), config),
            'affordable': amount in affordable,
        })

    return jsonify({
        'tenant_id': customer.tenant_id,
        'point_face_value': str(config['point_face_value']),
        'discounts': options,
        'available': sorted(affordable),
        **balance,
    })


@rewards_bp.route('/discounts/redeem', methods=['POST'])
@require_identity('CUSTOMER')
def redeem_discount():
    """
    Spend points on a monetary discount voucher.

    Request body:
        discount_amount: £ value of the discount
    """
    req = DiscountRedeemRequest.from_json(request.get_json(silent=True))
    result = redemption_service.redeem_discount(g.customer_id, req.discount_amount)
    return jsonify(_redemption_payload(result)), 201
