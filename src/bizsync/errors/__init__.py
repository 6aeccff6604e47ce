"""Error taxonomy, bounded error log and recovery helpers."""

from .conflicts import ConflictResolution, ConflictResolver, DataConflict, LastWriteWinsResolver
from .log import ErrorLog
from .messages import MODULE_ERROR_MESSAGES, get_error_message
from .models import ErrorInfo, ErrorSeverity, ErrorType, generate_transaction_id
from .service import ErrorService, RollbackOperation, RollbackReport, is_network_error

__all__ = [
    "ConflictResolution",
    "ConflictResolver",
    "DataConflict",
    "ErrorInfo",
    "ErrorLog",
    "ErrorService",
    "ErrorSeverity",
    "ErrorType",
    "LastWriteWinsResolver",
    "MODULE_ERROR_MESSAGES",
    "RollbackOperation",
    "RollbackReport",
    "generate_transaction_id",
    "get_error_message",
    "is_network_error",
]
