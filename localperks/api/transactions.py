"""
Partner transaction endpoints.

Point-of-sale purchases are recorded as APPROVED EARNED entries at the
partner's own tenant. Refunds claw back the points of a purchase.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.auth import require_identity
from ..schemas import EarnRequest, RefundRequest
from ..services.ledger_service import ledger_service
from ..utils.exceptions import AuthorizationError

transactions_bp = Blueprint('transactions', __name__)


def staff_tenant_id():
    """Tenant a partner/admin acts for. SUPER_ADMIN may act across tenants (None)."""
    if g.role == 'SUPER_ADMIN':
        return g.tenant_id
    if not g.tenant_id:
        raise AuthorizationError("Token is not bound to a tenant")
    return g.tenant_id


@transactions_bp.route('', methods=['POST'])
@require_identity('PARTNER', 'ADMIN')
def record_purchase():
    """
    Record a purchase and award points.

    Request body:
        customer_id: Customer making the purchase
        amount: Purchase amount in £
        points: Optional explicit points (defaults to the tenant's earn rate)
    """
    tenant_id = staff_tenant_id()
    if not tenant_id:
        raise AuthorizationError("Token is not bound to a tenant")

    req = EarnRequest.from_json(request.get_json(silent=True))
    entry = ledger_service.record_purchase(
        req.customer_id,
        tenant_id,
        req.amount,
        points=req.points,
        created_by=str(g.customer_id)
    )

    return jsonify({
        'success': True,
        'transaction': entry.to_dict(),
        **ledger_service.compute_balance(req.customer_id)
    }), 201


@transactions_bp.route('/<int:entry_id>/refund', methods=['POST'])
@require_identity('PARTNER', 'ADMIN')
def refund_purchase(entry_id):
    """
    Refund (part of) a purchase.

    Request body:
        amount: Refunded amount in £
    """
    req = RefundRequest.from_json(request.get_json(silent=True))
    entry = ledger_service.record_refund(
        entry_id,
        req.amount,
        created_by=str(g.customer_id),
        tenant_id=staff_tenant_id()
    )

    return jsonify({
        'success': True,
        'transaction': entry.to_dict(),
        **ledger_service.compute_balance(entry.customer_id)
    }), 201
