"""
Custom Application Exceptions
"""
from typing import Optional


class StockReconException(Exception):
    """Base exception for the reconciliation engine"""

    error_type = "error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(StockReconException):
    """Raised when data validation fails"""

    error_type = "validation_error"


class InvalidStateError(ValidationError):
    """Raised when a transition is not permitted from the current status"""

    error_type = "invalid_state"


class NotFoundError(StockReconException):
    """Raised when a referenced record does not exist for the tenant"""

    error_type = "not_found"


class ConflictError(StockReconException):
    """Raised when a concurrent change invalidated the requested operation"""

    error_type = "conflict"


class NumericIntegrityError(StockReconException):
    """Raised when a stored value cannot be sanitized to a usable number"""

    error_type = "numeric_integrity"
