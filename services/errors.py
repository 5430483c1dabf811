"""
Typed failures raised by the service layer.

Business-rule failures (the request is wrong) and infrastructure failures
(our system is unavailable) are separate branches of the hierarchy so the
HTTP layer never maps one to the other.
"""
from __future__ import annotations


class ServiceError(Exception):
    code = "BAD_REQUEST"
    status = 400
    message = "Bad request"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status = 404
    message = "Resource not found"


class NotOwnerError(NotFoundError):
    """Entity exists but belongs to another user; reported exactly like NotFound."""


class InvalidCredentialsError(ServiceError):
    code = "INVALID_CREDENTIALS"
    status = 401
    message = "invalid credentials"


class InvalidTokenError(ServiceError):
    code = "INVALID_TOKEN"
    status = 401
    message = "invalid token"


class TokenExpiredError(InvalidTokenError):
    code = "TOKEN_EXPIRED"
    message = "token expired"


class ForbiddenError(ServiceError):
    code = "FORBIDDEN"
    status = 403
    message = "insufficient permissions"


class ConflictError(ServiceError):
    code = "CONFLICT"
    status = 409
    message = "Conflict"


class EmailTakenError(ConflictError):
    code = "EMAIL_TAKEN"
    message = "you cannot register with this email"


class PasswordTooLongError(ServiceError):
    code = "PASSWORD_TOO_LONG"
    status = 422

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"password must be at most {max_bytes} bytes", details={"max_bytes": max_bytes})


class CartEmptyError(ServiceError):
    code = "CART_EMPTY"
    status = 400
    message = "cart is empty"


class InsufficientStockError(ServiceError):
    code = "INSUFFICIENT_STOCK"
    status = 409

    def __init__(self, product_id: str, product_name: str, available: int, requested: int):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"insufficient stock for product {product_name}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )


class ServiceUnavailableError(ServiceError):
    """Infrastructure failure; safe for the caller to retry."""

    code = "SERVICE_UNAVAILABLE"
    status = 503
    message = "service temporarily unavailable"


class EventPublishError(ServiceUnavailableError):
    message = "failed to publish event"
