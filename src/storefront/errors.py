"""Business error taxonomy.

Every rule violation is a Protean ``ValidationError`` keyed by the concern it
belongs to, so the FastAPI integration renders it as a 400 with the
human-readable reason. Missing records surface as Protean's
``ObjectNotFoundError`` straight from ``repository.get``.
"""

from protean.exceptions import ValidationError


class StorefrontError(ValidationError):
    key = "error"

    def __init__(self, message: str) -> None:
        super().__init__({self.key: [message]})
        self.message = message


class InsufficientStock(StorefrontError):
    key = "stock"


class CouponInvalid(StorefrontError):
    key = "coupon"


class CouponLimitReached(StorefrontError):
    key = "coupon"


class CouponMinimumNotMet(StorefrontError):
    key = "coupon"


class InvalidState(StorefrontError):
    key = "status"


class ReturnNotEligible(StorefrontError):
    key = "return"


class ReturnAlreadyExists(StorefrontError):
    key = "return"


class InvalidPayment(StorefrontError):
    key = "payment"


class PermissionDenied(Exception):
    """The acting user does not own the resource."""

    def __init__(self, message: str = "You do not have permission to perform this action") -> None:
        super().__init__(message)
        self.message = message


class GatewayError(Exception):
    """A payment gateway call failed or answered with an unexpected payload."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class GatewayNotImplemented(GatewayError):
    def __init__(self, gateway: str) -> None:
        super().__init__(f"Payment gateway '{gateway}' is not supported yet")
        self.gateway = gateway
