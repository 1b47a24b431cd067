from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ConcurrentRunError(ValidationError):
    """Raised when an active job already covers the requested tenant scope."""


class NotFoundError(DomainError):
    """Raised when a job, check or issue does not exist for the tenant."""


class RecordError(DomainError):
    """A single source record could not be processed.

    Caught by batch loops; never aborts the batch.
    """

    def __init__(self, message: str, *, record_id: Optional[str] = None, error_type: str = "conversion"):
        super().__init__(message)
        self.record_id = record_id
        self.error_type = error_type


class SystemFailureError(DomainError):
    """Store unavailable or unexpected failure outside a per-record loop."""
