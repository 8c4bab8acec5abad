"""
Battery Line MES - Error Taxonomy
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-05): PersistenceError / RequestTimeoutError for store failures
v1.0.0 (2026-09-28): Initial error taxonomy

Every core failure is a MesError subclass carrying an ErrorType. The API
layer renders them through a single exception handler (see main.py), so
services raise these and never HTTPException.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Error type used for HTTP mapping and client-side discrimination"""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    WRONG_CONTEXT = "wrong_context"
    LOCK_DENIED = "lock_denied"
    FORBIDDEN = "forbidden"
    PERSISTENCE = "persistence"
    TIMEOUT = "timeout"


HTTP_STATUS = {
    ErrorType.VALIDATION: 400,
    ErrorType.FORBIDDEN: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.WRONG_CONTEXT: 409,
    ErrorType.LOCK_DENIED: 423,
    ErrorType.PERSISTENCE: 503,
    ErrorType.TIMEOUT: 504,
}


class MesError(Exception):
    """Base class for all MES errors"""

    error_type = ErrorType.VALIDATION
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.error_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses"""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(MesError):
    """Malformed input: serial/mask mismatch, missing field, bad quantity"""
    error_type = ErrorType.VALIDATION


class NotFoundError(MesError):
    """Referenced operation/route/part/order/serial does not exist"""
    error_type = ErrorType.NOT_FOUND

    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} '{key}' not found", {"entity": entity, "key": str(key)})


class ConflictError(MesError):
    """Duplicate serial, closing a closed order, scanning into a closed order"""
    error_type = ErrorType.CONFLICT


class WrongContextError(MesError):
    """Unit/order belongs to another order or route than the active one"""
    error_type = ErrorType.WRONG_CONTEXT


class LockDeniedError(MesError):
    """Station held by another operator (expected, recoverable)"""
    error_type = ErrorType.LOCK_DENIED


class ForbiddenError(MesError):
    """Role not allowed to perform a supervisor/admin action"""
    error_type = ErrorType.FORBIDDEN


class PersistenceError(MesError):
    """Underlying store unavailable or failed mid-operation"""
    error_type = ErrorType.PERSISTENCE
    retryable = True


class RequestTimeoutError(MesError):
    """Operation exceeded its time bound"""
    error_type = ErrorType.TIMEOUT
    retryable = True
