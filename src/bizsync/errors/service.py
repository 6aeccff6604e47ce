"""Structured error logging, retries, rollback and conflict handling."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import logging
import traceback
from typing import Any, TypeVar

import httpx

from ..api import ApiClient
from ..cache import QueryCache
from ..exceptions import ApiConnectionError, ApiError, RetryExhaustedError
from ..notifications.models import Notification
from .conflicts import ConflictResolution, ConflictResolver, DataConflict, LastWriteWinsResolver
from .log import ErrorLog
from .messages import get_error_message
from .models import ErrorInfo, ErrorSeverity, ErrorType, generate_transaction_id

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

Notifier = Callable[[str, Mapping[str, Any]], Notification | None]

NETWORK_ERROR_MARKERS = (
    "network",
    "failed to fetch",
    "network request failed",
    "timeout",
    "timed out",
    "abort",
    "connection refused",
)


@dataclass(frozen=True)
class RollbackOperation:
    module: str
    endpoint: str
    id: str | int

    @property
    def path(self) -> str:
        return f"/api/{self.module}/{self.endpoint}/{self.id}/rollback"


@dataclass
class RollbackReport:
    transaction_id: str
    succeeded: list[RollbackOperation] = field(default_factory=list)
    failed: list[RollbackOperation] = field(default_factory=list)
    # Entries that could not be read as an operation at all.
    invalid: list[Any] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed and not self.invalid


def _rollback_operation(raw: RollbackOperation | Mapping[str, Any]) -> RollbackOperation:
    if isinstance(raw, RollbackOperation):
        return raw
    return RollbackOperation(raw["module"], raw["endpoint"], raw["id"])


def _coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        return default


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _message_of(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return "Unknown error" if error is None else str(error)


def _details_of(raw: Any, error: Any) -> dict[str, Any]:
    details = dict(raw) if isinstance(raw, Mapping) else {}
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        details["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return details


def is_network_error(error: BaseException) -> bool:
    """Return True when ``error`` looks like a connectivity problem."""
    if isinstance(
        error, (ApiConnectionError, httpx.TransportError, ConnectionError, TimeoutError)
    ):
        return True
    message = str(error).lower()
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


def _failure_type(error: BaseException) -> ErrorType:
    if is_network_error(error):
        return ErrorType.NETWORK
    if isinstance(error, ApiError):
        return ErrorType.API
    return ErrorType.UNKNOWN


class ErrorService:
    """Error bookkeeping and recovery helpers for integration operations."""

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        notifier: Notifier | None = None,
        resolver: ConflictResolver | None = None,
        error_log: ErrorLog | None = None,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        attempt_timeout: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.api = api
        self.cache = cache
        self.notifier = notifier
        self.resolver = resolver or LastWriteWinsResolver()
        self.error_log = error_log or ErrorLog()
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def errors(self) -> list[ErrorInfo]:
        return self.error_log.snapshot()

    def error_statistics(self) -> dict[str, dict[str, int]]:
        return self.error_log.statistics()

    def clear_error_log(self) -> None:
        self.error_log.clear()

    def log_error(self, error: Any, partial_info: Any = None) -> ErrorInfo:
        """Record ``error`` with defaults filled in. Never raises."""
        try:
            info = partial_info if isinstance(partial_info, Mapping) else {}
            transaction_id = info.get("transaction_id", info.get("transactionId"))
            record = ErrorInfo(
                message=_message_of(error),
                code=_optional_str(info.get("code")),
                severity=_coerce_enum(ErrorSeverity, info.get("severity"), ErrorSeverity.ERROR),
                type=_coerce_enum(ErrorType, info.get("type"), ErrorType.UNKNOWN),
                module=_optional_str(info.get("module")),
                timestamp=self._clock(),
                details=_details_of(info.get("details"), error),
                transaction_id=_optional_str(transaction_id) or generate_transaction_id(),
                user_id=info.get("user_id", info.get("userId")),
            )
        except Exception as exc:  # noqa: BLE001 - logging an error must never fail.
            record = ErrorInfo(
                message="Unknown error",
                severity=ErrorSeverity.ERROR,
                type=ErrorType.UNKNOWN,
                timestamp=datetime.now(UTC),
                transaction_id=generate_transaction_id(),
                details={"log_error_failure": str(exc)},
            )

        self.error_log.append(record)
        LOGGER.log(
            record.severity.log_level,
            "errors.logged",
            extra={
                "event": "errors.logged",
                "error_type": record.type.value,
                "severity": record.severity.value,
                "error_module": record.module,
                "code": record.code,
                "transaction_id": record.transaction_id,
                "error": record.message,
            },
        )
        return record

    async def retry_operation(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
        initial_delay: float | None = None,
        attempt_timeout: float | None = None,
    ) -> T:
        """Await ``operation()`` up to ``max_retries`` times with doubling delays.

        The first attempt runs immediately. After exhausting every attempt
        the last error is re-raised.
        """
        attempts = self.max_retries if max_retries is None else max_retries
        delay = self.initial_delay if initial_delay is None else initial_delay
        timeout = self.attempt_timeout if attempt_timeout is None else attempt_timeout
        if attempts < 1:
            raise RetryExhaustedError("Operation failed after maximum retry attempts")

        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                if timeout:
                    return await asyncio.wait_for(operation(), timeout)
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                LOGGER.warning(
                    "errors.retry.attempt_failed",
                    extra={
                        "event": "errors.retry.attempt_failed",
                        "attempt": attempt + 1,
                        "max_retries": attempts,
                        "error_type": type(exc).__name__,
                    },
                )
                if attempt < attempts - 1:
                    await self._sleep(delay)
                    delay *= 2

        raise last_error or RetryExhaustedError("Operation failed after maximum retry attempts")

    async def rollback_changes(
        self,
        transaction_id: str,
        operations: Iterable[RollbackOperation | Mapping[str, Any]],
    ) -> RollbackReport:
        """Undo ``operations`` in order, best effort: failures don't stop the rest."""
        report = RollbackReport(transaction_id=transaction_id)
        for raw in operations:
            try:
                op = _rollback_operation(raw)
            except (KeyError, TypeError) as exc:
                report.invalid.append(raw)
                self.log_error(
                    exc,
                    {
                        "code": "rollback_invalid_operation",
                        "transaction_id": transaction_id,
                        "details": {"operation": repr(raw)},
                    },
                )
                continue
            try:
                await self.api.post(op.path, json={"transactionId": transaction_id})
            except Exception as exc:  # noqa: BLE001 - remaining steps must still run.
                report.failed.append(op)
                self.log_error(
                    exc,
                    {
                        "code": "rollback_failed",
                        "type": _failure_type(exc),
                        "module": op.module,
                        "transaction_id": transaction_id,
                        "details": {"endpoint": op.endpoint, "id": op.id},
                    },
                )
                continue
            report.succeeded.append(op)
            self.cache.invalidate_queries(f"/api/{op.module}")
            LOGGER.info(
                "errors.rollback.step_done",
                extra={
                    "event": "errors.rollback.step_done",
                    "transaction_id": transaction_id,
                    "path": op.path,
                },
            )
        return report

    async def handle_data_conflict(
        self,
        source_module: str,
        target_module: str,
        entity_type: str,
        entity_id: str | int,
        field: str,
        source_value: Any,
        target_value: Any,
    ) -> ConflictResolution:
        """Resolve a conflicting write with the configured resolver and persist it."""
        conflict = DataConflict(
            source_module=source_module,
            target_module=target_module,
            entity_type=entity_type,
            entity_id=entity_id,
            field=field,
            source_value=source_value,
            target_value=target_value,
        )
        LOGGER.warning(
            "errors.conflict.detected",
            extra={
                "event": "errors.conflict.detected",
                "source_module": source_module,
                "target_module": target_module,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "field": field,
            },
        )
        self._notify(
            "integration.conflict",
            {
                "source_module": source_module,
                "target_module": target_module,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "conflicting_field": field,
                "message": f"Data conflict detected between {source_module} and {target_module}.",
            },
        )

        value = self.resolver.resolve(conflict)
        try:
            await self.api.patch(
                f"/api/{entity_type}s/{entity_id}",
                json={field: value, "_conflict_resolution": True},
            )
        except Exception as exc:  # noqa: BLE001 - reported through the error log.
            self.log_error(
                exc,
                {
                    "code": "conflict_resolution_failed",
                    "type": _failure_type(exc),
                    "module": target_module,
                    "details": {"entity_type": entity_type, "entity_id": entity_id, "field": field},
                },
            )
            return ConflictResolution(conflict=conflict, resolved_value=value, applied=False)

        for module in dict.fromkeys((source_module, target_module)):
            self.cache.invalidate_queries(f"/api/{module}")
        return ConflictResolution(conflict=conflict, resolved_value=value, applied=True)

    def handle_integration_error(
        self,
        error: Any,
        source_module: str,
        target_module: str,
        operation: str,
        entity_id: str | int | None = None,
    ) -> ErrorInfo:
        """Log a cross-module failure and tell the user about it."""
        record = self.log_error(
            error,
            {
                "code": "integration_failure",
                "severity": ErrorSeverity.ERROR,
                "type": ErrorType.INTEGRATION,
                "module": source_module,
                "transaction_id": generate_transaction_id(),
                "details": {
                    "source_module": source_module,
                    "target_module": target_module,
                    "operation": operation,
                    "entity_id": entity_id,
                },
            },
        )
        message = get_error_message(
            source_module,
            operation,
            f"Failed to synchronize data between {source_module} and {target_module}.",
        )
        notification = self._notify(
            "integration.error",
            {
                "source_module": source_module,
                "target_module": target_module,
                "message": message,
                "transaction_id": record.transaction_id,
                "details": {k: v for k, v in record.details.items() if k != "stack"},
            },
        )
        if notification is not None:
            record.handled = True
        return record

    def _notify(self, template: str, payload: Mapping[str, Any]) -> Notification | None:
        if self.notifier is None:
            return None
        try:
            return self.notifier(template, payload)
        except Exception as exc:  # noqa: BLE001 - notification is best effort.
            LOGGER.error(
                "errors.notify.failed",
                extra={
                    "event": "errors.notify.failed",
                    "template": template,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None
