"""
Voucher endpoints.

Customers list and cancel their own vouchers; partners scan codes at the
till to check or redeem them.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.auth import require_identity
from ..schemas import ScanRequest
from ..services.ledger_service import ledger_service
from ..services.redemption_service import redemption_service
from ..services.voucher_service import voucher_service
from ..utils.exceptions import AuthorizationError, ValidationError

vouchers_bp = Blueprint('vouchers', __name__)


def _scanning_tenant_id() -> int:
    if not g.tenant_id:
        raise AuthorizationError("Token is not bound to a tenant")
    return g.tenant_id


@vouchers_bp.route('', methods=['GET'])
@require_identity('CUSTOMER')
def list_vouchers():
    """
    The caller's vouchers, newest first. Overdue vouchers are expired on read.

    Query params:
        status: active, used, expired or cancelled
    """
    vouchers = voucher_service.list_customer_vouchers(g.customer_id, request.args.get('status'))
    return jsonify({
        'vouchers': [v.to_dict() for v in vouchers],
        'total': len(vouchers),
    })


@vouchers_bp.route('/<int:voucher_id>/cancel', methods=['POST'])
@require_identity('CUSTOMER')
def cancel_voucher(voucher_id):
    """Cancel an unused voucher and restore its points."""
    result = redemption_service.cancel_redemption(voucher_id, g.customer_id)
    return jsonify({
        'success': True,
        'voucher': result['voucher'].to_dict(),
        'transaction': result['transaction'].to_dict(),
        'points_restored': result['points_restored'],
        **result['balance'],
    })


@vouchers_bp.route('/scan', methods=['GET'])
@require_identity('PARTNER', 'ADMIN')
def validate_voucher():
    """
    Check a code without redeeming it.

    Query params:
        code: Voucher code
    """
    code = request.args.get('code', '').strip()
    if not code:
        raise ValidationError("code is required", 'code')

    return jsonify(voucher_service.validate_voucher_code(code, _scanning_tenant_id()))


@vouchers_bp.route('/scan', methods=['POST'])
@require_identity('PARTNER', 'ADMIN')
def redeem_voucher():
    """
    Redeem a voucher at the caller's business.

    Request body:
        code: Voucher code
    """
    req = ScanRequest.from_json(request.get_json(silent=True))
    voucher = voucher_service.redeem_voucher_code(req.code, _scanning_tenant_id())

    return jsonify({
        'success': True,
        'voucher': voucher.to_dict(),
        'customer': voucher.customer.to_dict() if voucher.customer else None,
        **ledger_service.compute_balance(voucher.customer_id),
    })
