# gtin_pool/errors.py
"""
Error kinds raised by the pool store, allocator and identifier binder.

Every kind carries the HTTP status the API answers with; the FastAPI app
registers a single handler for GtinPoolError.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class GtinPoolError(Exception):
    """Base class for caller-visible, deterministic failures."""
    http_status = 400
    kind = "gtin_pool_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.context:
            out["context"] = self.context
        return out


class ValidationError(GtinPoolError):
    """Malformed code/type or identifier record at the field level."""
    http_status = 422
    kind = "validation_error"


class NotFound(GtinPoolError):
    http_status = 404
    kind = "not_found"


class AlreadyExists(GtinPoolError):
    """Uniqueness violation on the pool code."""
    http_status = 409
    kind = "already_exists"


class InvalidTypeValue(GtinPoolError):
    """Store-level check constraint violation on gtin_type (or type/code pairing)."""
    http_status = 422
    kind = "invalid_type_value"

    def __init__(self, message: str, attempted_type: Optional[str] = None, **context: Any):
        super().__init__(message, attempted_type=attempted_type, **context)
        self.attempted_type = attempted_type


class ConflictError(GtinPoolError):
    """Conditional status update did not match the expected current status."""
    http_status = 409
    kind = "conflict"

    def __init__(self, message: str, current_status: Optional[str] = None, **context: Any):
        super().__init__(message, current_status=current_status, **context)
        self.current_status = current_status


class AlreadyAssigned(GtinPoolError):
    http_status = 409
    kind = "already_assigned"


class NotAssigned(GtinPoolError):
    http_status = 409
    kind = "not_assigned"


class EntryArchived(GtinPoolError):
    http_status = 409
    kind = "entry_archived"
