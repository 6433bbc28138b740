"""
Custom exceptions for LocalPerks business logic.

Every exception carries a machine-readable code and an HTTP status so the
app-level error handler can render it without knowing the concrete type.
Anything the UI needs to guide the customer (required vs available points,
expiry timestamps) is exposed through ``details()``.
"""
from datetime import datetime


class LoyaltyError(Exception):
    """Base exception for all points/voucher business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "LOYALTY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def details(self) -> dict:
        """Extra fields returned to the client alongside message and code."""
        return {}


class ValidationError(LoyaltyError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def details(self) -> dict:
        return {'field': self.field} if self.field else {}


class NotFoundError(LoyaltyError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class CustomerNotFoundError(NotFoundError):
    """Customer not found."""

    def __init__(self, identifier=None):
        super().__init__("Customer", identifier)


class RewardNotFoundError(NotFoundError):
    """Reward not found."""

    def __init__(self, identifier=None):
        super().__init__("Reward", identifier)


class VoucherNotFoundError(NotFoundError):
    """Voucher not found."""

    def __init__(self, identifier=None):
        super().__init__("Voucher", identifier)


class InsufficientPointsError(LoyaltyError):
    """Not enough points for the operation."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        message = f"Insufficient points. Required: {required}, Available: {available}"
        super().__init__(message, "INSUFFICIENT_POINTS")

    def details(self) -> dict:
        return {'required': self.required, 'available': self.available}


class TenantMismatchError(LoyaltyError):
    """Voucher presented at a business other than the one that issued it."""

    status_code = 403

    def __init__(self, issuing_tenant_id: int, redeeming_tenant_id: int):
        self.issuing_tenant_id = issuing_tenant_id
        self.redeeming_tenant_id = redeeming_tenant_id
        super().__init__(
            "This voucher can only be redeemed at the business that issued the reward",
            "TENANT_MISMATCH"
        )

    def details(self) -> dict:
        return {'tenant_mismatch': True}


class CodeGenerationExhausted(LoyaltyError):
    """Could not find an unused voucher code within the attempt budget."""

    status_code = 503

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Failed to generate a unique voucher code after {attempts} attempts",
            "CODE_GENERATION_EXHAUSTED"
        )


class AlreadyUsedError(LoyaltyError):
    """Voucher has already been redeemed."""

    status_code = 409

    def __init__(self, code: str, used_at: datetime = None):
        self.voucher_code = code
        self.used_at = used_at
        super().__init__("Voucher has already been used", "VOUCHER_ALREADY_USED")

    def details(self) -> dict:
        return {'used_at': self.used_at.isoformat() if self.used_at else None}


class ExpiredError(LoyaltyError):
    """Voucher is past its expiry date."""

    status_code = 409

    def __init__(self, code: str, expires_at: datetime = None):
        self.voucher_code = code
        self.expires_at = expires_at
        super().__init__("Voucher has expired", "VOUCHER_EXPIRED")

    def details(self) -> dict:
        return {'expires_at': self.expires_at.isoformat() if self.expires_at else None}


class InvalidStatusTransitionError(LoyaltyError):
    """Invalid status transition for a resource."""

    status_code = 409

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")

    def details(self) -> dict:
        return {'from_status': self.from_status, 'to_status': self.to_status}


class AuthorizationError(LoyaltyError):
    """Caller not authorized for this operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "AUTHORIZATION_ERROR")


class ConfigurationError(LoyaltyError):
    """Tenant or application configuration is unusable."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
