"""
Middleware package for LocalPerks.
"""
from .auth import require_identity, decode_bearer_token, is_staff, is_admin
from .request_id import init_request_id_tracking

__all__ = [
    'require_identity',
    'decode_bearer_token',
    'is_staff',
    'is_admin',
    'init_request_id_tracking',
]
