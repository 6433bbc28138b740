"""
Points API endpoints for LocalPerks customers.

Handles:
- Balance, tier and pending points
- Paginated ledger history
- Balance breakdown (support/debug)
- Receipt submission (PENDING until reviewed)
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.auth import require_identity
from ..schemas import ReceiptRequest
from ..services.ledger_service import ledger_service

points_bp = Blueprint('points', __name__)


@points_bp.route('', methods=['GET'])
@require_identity('CUSTOMER')
def get_points_balance():
    """
    Get the caller's points balance.

    Returns:
        balance, tier, pending_points, pending_count
    """
    summary = ledger_service.get_balance_summary(g.customer_id)
    return jsonify({'customer_id': g.customer_id, **summary})


@points_bp.route('/history', methods=['GET'])
@require_identity('CUSTOMER')
def get_points_history():
    """
    Get the caller's ledger history (paginated, newest first).

    Query params:
        page: Page number (default 1)
        per_page: Items per page (default 20, max 100)
        type: EARNED, SPENT, REFUND or VOID
        status: PENDING, APPROVED, REJECTED or VOID
        tenant_id: Only entries at one business
    """
    history = ledger_service.get_history(
        g.customer_id,
        tenant_id=request.args.get('tenant_id', type=int),
        entry_type=request.args.get('type'),
        status=request.args.get('status'),
        page=request.args.get('page', 1, type=int),
        per_page=request.args.get('per_page', 20, type=int)
    )
    return jsonify(history)


@points_bp.route('/breakdown', methods=['GET'])
@require_identity('CUSTOMER')
def get_points_breakdown():
    """How the balance was derived: raw sum, clamped balance, per-type totals."""
    return jsonify(ledger_service.get_balance_breakdown(g.customer_id))


@points_bp.route('/receipts', methods=['POST'])
@require_identity('CUSTOMER')
def submit_receipt():
    """
    Submit a purchase receipt for approval.

    Request body:
        tenant_id: Business where the purchase was made
        amount: Purchase amount in £

    The entry stays PENDING (excluded from the balance) until a partner or
    admin approves it.
    """
    req = ReceiptRequest.from_json(request.get_json(silent=True))
    entry = ledger_service.submit_receipt(
        g.customer_id,
        req.tenant_id,
        req.amount,
        created_by=str(g.customer_id)
    )

    return jsonify({
        'success': True,
        'transaction': entry.to_dict(),
        **ledger_service.get_pending_points(g.customer_id)
    }), 201
