"""
Utility modules for LocalPerks.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    loyalty_error_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    internal_error
)
from .exceptions import (
    LoyaltyError,
    ValidationError,
    NotFoundError,
    CustomerNotFoundError,
    RewardNotFoundError,
    VoucherNotFoundError,
    InsufficientPointsError,
    TenantMismatchError,
    CodeGenerationExhausted,
    AlreadyUsedError,
    ExpiredError,
    InvalidStatusTransitionError,
    AuthorizationError,
    ConfigurationError
)
