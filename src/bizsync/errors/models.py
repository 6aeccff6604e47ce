"""Error taxonomy and the structured error record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging
from typing import Any
from uuid import uuid4


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class ErrorType(str, Enum):
    NETWORK = "network"
    API = "api"
    DATABASE = "database"
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    INTEGRATION = "integration"
    BUSINESS_LOGIC = "business_logic"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """A logged error.

    ``handled`` flips to True once a user-facing notification was dispatched
    for it; nothing enforces that.
    """

    message: str
    severity: ErrorSeverity
    type: ErrorType
    timestamp: datetime
    transaction_id: str
    code: str | None = None
    module: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    user_id: str | int | None = None
    handled: bool = False


def generate_transaction_id() -> str:
    """Return a unique id used to correlate errors from one operation chain."""
    return uuid4().hex
