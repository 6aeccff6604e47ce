"""Domain exception hierarchy for the integration core."""

from __future__ import annotations


class BizSyncError(RuntimeError):
    """Base class for all domain-level integration errors."""


class ConfigValidationError(BizSyncError):
    """Raised when configuration cannot be validated safely."""


class PayloadValidationError(BizSyncError):
    """Raised when an event payload is missing required routing fields."""


class ApiError(BizSyncError):
    """Raised when the REST API answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiConnectionError(ApiError):
    """Raised when the REST API cannot be reached."""


class RelationshipCycleError(BizSyncError):
    """Raised when a module relationship would close a propagation cycle."""


class RelationshipNotFoundError(BizSyncError):
    """Raised when two entity types have no declared relationship."""


class RetryExhaustedError(BizSyncError):
    """Raised when a retried operation never got a chance to succeed."""
