"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the exception handlers
in main.py. Each carries a stable machine-readable `code`.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    code = "domain_error"

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Resource not found (404)."""
    code = "not_found"

    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400). Raised before any side effect."""
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class PaymentEncodingError(DomainError):
    """
    Payment code could not be produced (500 on the ad-hoc endpoint).

    Inside order creation this is always recovered: the order is stored
    without a payment code.
    """
    code = "payment_encoding_error"

    def __init__(self, message: str, details: dict | None = None, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(message, status_code=status_code, details=details)


class InvalidPaymentInput(PaymentEncodingError):
    """Amount, merchant key or transaction id rejected by the codec."""
    code = "invalid_payment_input"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details=details, status_code=status.HTTP_400_BAD_REQUEST)


class PersistenceError(DomainError):
    """Storage unavailable or transaction conflict (503). Nothing was committed."""
    code = "persistence_error"

    def __init__(self, message: str = "Storage unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class NotificationError(Exception):
    """Relay or push delivery failed. Always handled inside the fan-out."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
