"""
Centralized exception handling utilities for consistent error responses.

Every failure the marketplace core reports belongs to one closed category:
validation, authentication, authorization, not-found, conflict, bad-request
or internal. Each category is one APIException subclass with a stable
error_code; conflicts additionally carry a `reason` so callers can tell an
exhausted stock apart from a duplicate slug or email.
"""
from dataclasses import dataclass
from fastapi import HTTPException, status
from typing import List, Optional


# Map HTTP status codes to error code strings
STATUS_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
}


class APIException(HTTPException):
    """Base API exception with consistent error formatting."""
    error_code: str = "ERROR"

    def __init__(self, status_code: int, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        # Default error_code from status code if subclass didn't set one
        if self.error_code == "ERROR":
            self.error_code = STATUS_CODE_MAP.get(status_code, "ERROR")

    def to_dict(self) -> dict:
        return {"detail": self.detail, "error_code": self.error_code}


@dataclass(frozen=True)
class Violation:
    field: str
    message: str


class ValidationError(APIException):
    """Input outside the ranges the core depends on."""
    error_code = "VALIDATION_ERROR"

    def __init__(self, violations: List[Violation]):
        self.violations = list(violations)
        message = "; ".join(f"{v.field}: {v.message}" for v in self.violations) or "Invalid input"
        super().__init__(status_code=422, detail=message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = [{"field": v.field, "message": v.message} for v in self.violations]
        return body


class NotFoundError(APIException):
    """Resource not found exception."""
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[int] = None):
        if resource_id is not None:
            detail = f"{resource} {resource_id} not found"
        else:
            detail = f"{resource} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ForbiddenError(APIException):
    """Access forbidden exception."""
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class BadRequestError(APIException):
    """Operation is invalid given the current state."""
    error_code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class UnauthorizedError(APIException):
    """Unauthorized access exception."""
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ConflictError(APIException):
    """Resource conflict exception."""
    error_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", reason: str = "conflict"):
        self.reason = reason
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


class InternalError(APIException):
    """Unexpected collaborator failure; never exposes internals to callers."""
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


# Business logic specific exceptions
class InsufficientStockError(ConflictError):
    """Stock ran out for a product."""
    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: Optional[int] = None):
        self.product_id = product_id
        self.requested = requested
        message = f"Insufficient stock for product {product_id}. Requested: {requested}"
        if available is not None:
            message += f", Available: {available}"
        super().__init__(message, reason="insufficient_stock")


class PermissionDeniedError(ForbiddenError):
    """Permission denied for specific action."""
    error_code = "PERMISSION_DENIED"

    def __init__(self, action: str, resource: str = "resource"):
        message = f"You don't have permission to {action} this {resource}"
        super().__init__(message)
