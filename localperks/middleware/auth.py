"""
Bearer Token Identity Middleware.

Trusts HS256 bearer tokens issued by the LocalPerks identity layer and
signed with the app's SECRET_KEY. Token issuance lives outside this service.

Token claims:
- sub: Customer (or staff user) ID
- role: CUSTOMER, PARTNER, ADMIN or SUPER_ADMIN
- tenant_id: Tenant the caller acts for (partners/admins) or belongs to
- exp: Expiration time
"""
from functools import wraps
import jwt
from flask import request, g, current_app

from ..utils.errors import error_response, ErrorCode


ROLES = ('CUSTOMER', 'PARTNER', 'ADMIN', 'SUPER_ADMIN')
STAFF_ROLES = ('PARTNER', 'ADMIN', 'SUPER_ADMIN')


def decode_bearer_token(token: str) -> dict | None:
    """
    Decode and verify a bearer token.

    Returns:
        Decoded token payload or None if invalid
    """
    if not token:
        return None

    try:
        return jwt.decode(
            token,
            current_app.config['SECRET_KEY'],
            algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')],
            options={'verify_exp': True}
        )
    except jwt.ExpiredSignatureError:
        current_app.logger.info('[Auth] Bearer token expired')
        return None
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f'[Auth] Invalid token: {e}')
        return None


def get_token_from_request() -> str | None:
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return None


def _to_int(value) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def require_identity(*roles):
    """
    Decorator to require an authenticated caller, optionally with a role.

    Sets g.customer_id, g.role and g.tenant_id.

    Usage:
        @require_identity('CUSTOMER')
        def my_points():
            customer_id = g.customer_id
            ...

        @require_identity('PARTNER', 'ADMIN')
        def scan():
            tenant_id = g.tenant_id
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            payload = decode_bearer_token(get_token_from_request())
            if not payload:
                return error_response(
                    'Authentication required',
                    ErrorCode.AUTH_REQUIRED,
                    401,
                    log_error=False
                )

            role = str(payload.get('role', '')).upper()
            customer_id = _to_int(payload.get('sub'))
            if role not in ROLES or customer_id is None:
                return error_response('Invalid token claims', ErrorCode.INVALID_TOKEN, 401, log_error=False)

            # SUPER_ADMIN passes every role check
            if roles and role not in roles and role != 'SUPER_ADMIN':
                return error_response(
                    'You do not have permission to perform this action',
                    ErrorCode.PERMISSION_DENIED,
                    403,
                    log_error=False
                )

            g.customer_id = customer_id
            g.role = role
            g.tenant_id = _to_int(payload.get('tenant_id'))

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def is_staff() -> bool:
    return getattr(g, 'role', None) in STAFF_ROLES


def is_admin() -> bool:
    return getattr(g, 'role', None) in ('ADMIN', 'SUPER_ADMIN')
