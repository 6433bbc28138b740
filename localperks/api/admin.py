"""
Admin endpoints: pending receipt review and tenant points configuration.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.auth import require_identity, is_admin
from ..schemas import ReviewRequest, PointsConfigUpdate
from ..services.ledger_service import ledger_service
from ..services.points_config import get_tenant_points_config, save_tenant_points_config
from ..models.tenant import Tenant
from ..utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from .transactions import staff_tenant_id

admin_bp = Blueprint('admin', __name__)
tenants_bp = Blueprint('tenants', __name__)


# ==============================================================================
# PENDING TRANSACTIONS
# ==============================================================================

@admin_bp.route('/pending-transactions', methods=['GET'])
@require_identity('PARTNER', 'ADMIN')
def list_pending_transactions():
    """
    List receipts awaiting review, newest first.

    Partners and admins see their own tenant; SUPER_ADMIN sees everything
    unless ?tenant_id= is given.
    """
    tenant_id = staff_tenant_id()
    if g.role == 'SUPER_ADMIN':
        tenant_id = request.args.get('tenant_id', type=int) or tenant_id

    entries = ledger_service.list_pending_entries(tenant_id)
    return jsonify({
        'transactions': [e.to_dict_detailed() for e in entries],
        'total': len(entries),
    })


@admin_bp.route('/pending-transactions/<int:entry_id>/review', methods=['POST'])
@require_identity('PARTNER', 'ADMIN')
def review_pending_transaction(entry_id):
    """
    Approve or reject a pending receipt.

    Request body:
        action: 'approve' or 'reject'
        notes: Optional notes
    """
    req = ReviewRequest.from_json(request.get_json(silent=True))
    entry = ledger_service.review_pending_entry(
        entry_id,
        req.action,
        reviewer=str(g.customer_id),
        notes=req.notes,
        tenant_id=staff_tenant_id()
    )

    return jsonify({
        'success': True,
        'transaction': entry.to_dict_detailed(),
        **ledger_service.compute_balance(entry.customer_id)
    })


# ==============================================================================
# TENANT POINTS CONFIG
# ==============================================================================

def _config_payload(tenant_id: int) -> dict:
    config = get_tenant_points_config(tenant_id)
    return {
        'tenant_id': tenant_id,
        'point_face_value': str(config['point_face_value']),
        'base_points_per_pound': config['base_points_per_pound'],
        'max_discount_amount': config['max_discount_amount'],
        'tiers': config['tiers'],
        'bonus_rules': config['bonus_rules'],
        'rounding_rule': config['rounding_rule'],
        'minimum_spend': str(config['minimum_spend']),
    }


@tenants_bp.route('/<int:tenant_id>/points-config', methods=['GET'])
@require_identity('PARTNER', 'ADMIN')
def get_points_config(tenant_id):
    """Effective points configuration (stored values merged over defaults)."""
    if g.role != 'SUPER_ADMIN' and g.tenant_id != tenant_id:
        raise AuthorizationError("You can only view your own tenant's configuration")
    if not Tenant.query.filter_by(id=tenant_id).first():
        raise NotFoundError("Tenant", tenant_id)

    return jsonify(_config_payload(tenant_id))


@tenants_bp.route('/<int:tenant_id>/points-config', methods=['PUT'])
@require_identity('ADMIN')
def update_points_config(tenant_id):
    """
    Update a tenant's points configuration.

    Request body (all optional):
        point_face_value, base_points_per_pound, max_discount_amount,
        rounding_rule, minimum_spend, tiers, bonus_rules
    """
    if not is_admin() or (g.role != 'SUPER_ADMIN' and g.tenant_id != tenant_id):
        raise AuthorizationError("You can only configure your own tenant")

    update = PointsConfigUpdate.from_json(request.get_json(silent=True))
    if update.is_empty():
        raise ValidationError("No configuration fields provided")

    save_tenant_points_config(
        tenant_id,
        point_face_value=update.point_face_value,
        base_points_per_pound=update.base_points_per_pound,
        settings=update.settings
    )
    return jsonify({'success': True, **_config_payload(tenant_id)})
