"""Tests for error logging, retry, rollback and conflict handling."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import unittest

import httpx

from bizsync.cache import InMemoryQueryCache
from bizsync.errors.log import ErrorLog
from bizsync.errors.models import ErrorInfo, ErrorSeverity, ErrorType
from bizsync.errors.service import ErrorService, RollbackOperation, is_network_error
from bizsync.exceptions import ApiConnectionError, ApiError, RetryExhaustedError
from bizsync.notifications.models import Notification
from bizsync.notifications.templates import create_notification_from_event
from helpers import make_api

TS = datetime(2024, 5, 1, tzinfo=UTC)


class FakeSleep:
    """Record requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, template: str, payload) -> Notification | None:
        self.calls.append((template, dict(payload)))
        return create_notification_from_event(template, payload, timestamp=TS)


def _service(handler=None, **kwargs) -> tuple[ErrorService, object, InMemoryQueryCache]:
    api, transport = make_api(handler)
    cache = InMemoryQueryCache()
    kwargs.setdefault("sleep", FakeSleep())
    service = ErrorService(api, cache, clock=lambda: TS, **kwargs)
    return service, transport, cache


class LogErrorTests(unittest.TestCase):
    """``log_error`` fills defaults and never raises."""

    def test_defaults_are_filled(self) -> None:
        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            record = service.log_error(ValueError("bad input"))
        self.assertIsInstance(record, ErrorInfo)
        self.assertEqual(record.message, "bad input")
        self.assertIs(record.severity, ErrorSeverity.ERROR)
        self.assertIs(record.type, ErrorType.UNKNOWN)
        self.assertTrue(record.transaction_id)
        self.assertFalse(record.handled)
        self.assertEqual(record.timestamp, TS)

    def test_malformed_partial_info_never_raises(self) -> None:
        service, _, _ = _service()
        for partial in (None, "oops", 42, {"severity": "apocalyptic", "type": object()}):
            with self.subTest(partial=partial):
                with self.assertLogs("bizsync.errors.service", level="ERROR"):
                    record = service.log_error(object(), partial)
                self.assertFalse(record.handled)
                self.assertIs(record.severity, ErrorSeverity.ERROR)

    def test_module_is_recorded_and_logged(self) -> None:
        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="ERROR") as logs:
            record = service.log_error(RuntimeError("boom"), {"module": "invoices"})
        self.assertEqual(record.module, "invoices")
        self.assertEqual(logs.records[0].error_module, "invoices")
        self.assertEqual(service.errors, [record])

    def test_unprintable_error_never_raises(self) -> None:
        class Unprintable(Exception):
            def __str__(self) -> str:
                raise RuntimeError("no text")

        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            record = service.log_error(Unprintable())
        self.assertEqual(record.message, "Unknown error")
        self.assertIn("log_error_failure", record.details)

    def test_partial_info_is_respected(self) -> None:
        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            record = service.log_error(
                "disk almost full",
                {
                    "severity": "warning",
                    "type": "database",
                    "module": "inventory",
                    "transactionId": "tx-7",
                    "code": 507,
                },
            )
        self.assertIs(record.severity, ErrorSeverity.WARNING)
        self.assertIs(record.type, ErrorType.DATABASE)
        self.assertEqual(record.transaction_id, "tx-7")
        self.assertEqual(record.code, "507")
        self.assertEqual(service.error_statistics()["by_module"], {"inventory": 1})

    def test_raised_error_captures_stack(self) -> None:
        service, _, _ = _service()
        try:
            raise RuntimeError("kaput")
        except RuntimeError as exc:
            with self.assertLogs("bizsync.errors.service", level="ERROR"):
                record = service.log_error(exc)
        self.assertIn("RuntimeError: kaput", record.details["stack"])


class ErrorLogTests(unittest.TestCase):
    """The bounded log trims its oldest entries on overflow."""

    def _record(self, index: int) -> ErrorInfo:
        return ErrorInfo(
            message=f"e{index}",
            severity=ErrorSeverity.ERROR,
            type=ErrorType.UNKNOWN,
            timestamp=TS,
            transaction_id=str(index),
        )

    def test_101st_entry_trims_to_81(self) -> None:
        log = ErrorLog()
        for index in range(101):
            log.append(self._record(index))
        self.assertEqual(len(log), 81)
        messages = [entry.message for entry in log]
        self.assertEqual(messages[0], "e20")
        self.assertEqual(messages[-1], "e100")

    def test_never_exceeds_capacity(self) -> None:
        log = ErrorLog(capacity=5, trim_count=2)
        for index in range(50):
            log.append(self._record(index))
            self.assertLessEqual(len(log), 5)

    def test_invalid_sizes_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ErrorLog(capacity=5, trim_count=6)

    def test_statistics_and_clear(self) -> None:
        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            service.log_error("a", {"type": "network", "module": "banking"})
            service.log_error("b", {"type": "network", "module": "invoices"})
            service.log_error("c", {"type": "api"})
        stats = service.error_statistics()
        self.assertEqual(stats["by_type"], {"network": 2, "api": 1})
        self.assertEqual(stats["by_module"], {"banking": 1, "invoices": 1})
        service.clear_error_log()
        self.assertEqual(service.errors, [])


class RetryTests(unittest.IsolatedAsyncioTestCase):
    """Exponential backoff with exact attempt counts."""

    async def test_always_failing_operation_runs_exactly_max_retries(self) -> None:
        sleep = FakeSleep()
        service, _, _ = _service(sleep=sleep)
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            raise ConnectionError(f"attempt {calls}")

        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            with self.assertRaises(ConnectionError) as ctx:
                await service.retry_operation(operation, 3, 0.1)

        self.assertEqual(calls, 3)
        self.assertEqual(str(ctx.exception), "attempt 3")
        self.assertEqual(sleep.delays, [0.1, 0.2])

    async def test_succeeds_on_third_attempt(self) -> None:
        sleep = FakeSleep()
        service, _, _ = _service(sleep=sleep)
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ApiError("flaky", status_code=503)
            return "done"

        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            result = await service.retry_operation(operation, 3, 0.1)
        self.assertEqual(result, "done")
        self.assertEqual(calls, 3)
        self.assertEqual(sleep.delays, [0.1, 0.2])

    async def test_first_success_does_not_sleep(self) -> None:
        sleep = FakeSleep()
        service, _, _ = _service(sleep=sleep)

        async def operation() -> int:
            return 1

        self.assertEqual(await service.retry_operation(operation), 1)
        self.assertEqual(sleep.delays, [])

    async def test_defaults_come_from_constructor(self) -> None:
        sleep = FakeSleep()
        service, _, _ = _service(sleep=sleep, max_retries=4, initial_delay=0.5)

        async def operation() -> None:
            raise ValueError("no")

        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            with self.assertRaises(ValueError):
                await service.retry_operation(operation)
        self.assertEqual(sleep.delays, [0.5, 1.0, 2.0])

    async def test_attempt_timeout_bounds_hung_attempts(self) -> None:
        service, _, _ = _service(attempt_timeout=0.01)
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            await asyncio.sleep(10)

        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            with self.assertRaises(asyncio.TimeoutError):
                await service.retry_operation(operation, 2, 0)
        self.assertEqual(calls, 2)

    async def test_zero_attempts_is_rejected(self) -> None:
        service, _, _ = _service()

        async def operation() -> None:
            return None

        with self.assertRaises(RetryExhaustedError):
            await service.retry_operation(operation, 0)


class RollbackTests(unittest.IsolatedAsyncioTestCase):
    """Rollback is best effort: every step is attempted."""

    async def test_failure_does_not_stop_later_steps(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if "/invoices/" in request.url.path:
                return httpx.Response(500)
            return httpx.Response(200, json={"ok": True})

        service, transport, cache = _service(handler)
        operations = [
            {"module": "invoices", "endpoint": "line-items", "id": 1},
            RollbackOperation("financials", "entries", 2),
            {"module": "clients", "endpoint": "balances", "id": "c-3"},
        ]

        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            report = await service.rollback_changes("tx-9", operations)

        self.assertEqual(
            transport.paths("POST"),
            [
                "/api/invoices/line-items/1/rollback",
                "/api/financials/entries/2/rollback",
                "/api/clients/balances/c-3/rollback",
            ],
        )
        self.assertEqual(transport.bodies("POST")[0], {"transactionId": "tx-9"})
        self.assertFalse(report.complete)
        self.assertEqual([op.module for op in report.failed], ["invoices"])
        self.assertEqual([op.module for op in report.succeeded], ["financials", "clients"])
        self.assertEqual(cache.invalidations, ["/api/financials", "/api/clients"])
        (logged,) = service.errors
        self.assertEqual(logged.transaction_id, "tx-9")
        self.assertEqual(logged.code, "rollback_failed")
        self.assertEqual(logged.module, "invoices")

    async def test_unexpected_step_error_does_not_stop_later_steps(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if "/invoices/" in request.url.path:
                raise ValueError("corrupt body")
            return httpx.Response(200, json={"ok": True})

        service, transport, cache = _service(handler)
        operations = [
            {"module": "invoices", "endpoint": "e", "id": 1},
            {"module": "clients", "endpoint": "e", "id": 2},
        ]

        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            report = await service.rollback_changes("tx-10", operations)

        self.assertEqual(
            transport.paths("POST"),
            ["/api/invoices/e/1/rollback", "/api/clients/e/2/rollback"],
        )
        self.assertEqual([op.module for op in report.failed], ["invoices"])
        self.assertEqual([op.module for op in report.succeeded], ["clients"])
        self.assertEqual(cache.invalidations, ["/api/clients"])
        self.assertIs(service.errors[0].type, ErrorType.UNKNOWN)

    async def test_malformed_operation_is_skipped(self) -> None:
        service, transport, _ = _service()
        operations = [
            {"module": "invoices", "id": 1},
            {"module": "clients", "endpoint": "e", "id": 2},
        ]

        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            report = await service.rollback_changes("tx-11", operations)

        self.assertEqual(transport.paths("POST"), ["/api/clients/e/2/rollback"])
        self.assertEqual(report.invalid, [{"module": "invoices", "id": 1}])
        self.assertFalse(report.complete)
        self.assertEqual(service.errors[0].code, "rollback_invalid_operation")


class ConflictTests(unittest.IsolatedAsyncioTestCase):
    """Last write wins, using the target value."""

    async def test_target_value_persisted_and_both_caches_invalidated_once(self) -> None:
        notifier = RecordingNotifier()
        service, transport, cache = _service(notifier=notifier)

        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            resolution = await service.handle_data_conflict(
                "invoices", "financials", "invoice", 12, "total", 100, 120
            )

        self.assertTrue(resolution.applied)
        self.assertEqual(resolution.resolved_value, 120)
        self.assertEqual(transport.paths("PATCH"), ["/api/invoices/12"])
        self.assertEqual(
            transport.bodies("PATCH"), [{"total": 120, "_conflict_resolution": True}]
        )
        self.assertEqual(cache.invalidation_count("/api/invoices"), 1)
        self.assertEqual(cache.invalidation_count("/api/financials"), 1)
        self.assertEqual(notifier.calls[0][0], "integration.conflict")

    async def test_failed_patch_is_logged_and_not_applied(self) -> None:
        service, _, cache = _service(lambda request: httpx.Response(409))
        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            resolution = await service.handle_data_conflict(
                "clients", "invoices", "client", 1, "email", "a@x", "b@x"
            )
        self.assertFalse(resolution.applied)
        self.assertEqual(resolution.resolved_value, "b@x")
        self.assertEqual(cache.invalidations, [])
        self.assertEqual(service.errors[0].type, ErrorType.API)
        self.assertEqual(service.errors[0].module, "invoices")

    async def test_unexpected_patch_error_is_logged(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise ValueError("corrupt body")

        service, _, cache = _service(handler)
        with self.assertLogs("bizsync.errors.service", level="WARNING"):
            resolution = await service.handle_data_conflict(
                "clients", "invoices", "client", 1, "email", "a@x", "b@x"
            )
        self.assertFalse(resolution.applied)
        self.assertEqual(cache.invalidations, [])
        self.assertIs(service.errors[0].type, ErrorType.UNKNOWN)


class IntegrationErrorTests(unittest.TestCase):
    """Integration failures are logged, notified and marked handled."""

    def test_known_code_uses_module_message(self) -> None:
        notifier = RecordingNotifier()
        service, _, _ = _service(notifier=notifier)
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            record = service.handle_integration_error(
                RuntimeError("boom"), "invoices", "financials", "creation_failed", 5
            )
        self.assertTrue(record.handled)
        self.assertEqual(record.module, "invoices")
        self.assertIs(record.type, ErrorType.INTEGRATION)
        self.assertEqual(record.code, "integration_failure")
        template, payload = notifier.calls[0]
        self.assertEqual(template, "integration.error")
        self.assertTrue(payload["message"].startswith("Failed to create invoice"))
        self.assertEqual(payload["transaction_id"], record.transaction_id)

    def test_unknown_code_falls_back_to_generic_message(self) -> None:
        notifier = RecordingNotifier()
        service, _, _ = _service(notifier=notifier)
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            service.handle_integration_error("x", "budget", "tax", "teleport")
        self.assertEqual(
            notifier.calls[0][1]["message"],
            "Failed to synchronize data between budget and tax.",
        )

    def test_without_notifier_error_stays_unhandled(self) -> None:
        service, _, _ = _service()
        with self.assertLogs("bizsync.errors.service", level="ERROR"):
            record = service.handle_integration_error("x", "budget", "tax", "sync")
        self.assertFalse(record.handled)

    def test_broken_notifier_is_contained(self) -> None:
        def notifier(template: str, payload) -> Notification:
            raise RuntimeError("bus down")

        service, _, _ = _service(notifier=notifier)
        with self.assertLogs("bizsync.errors.service", level="ERROR") as logs:
            record = service.handle_integration_error("x", "budget", "tax", "sync")
        self.assertFalse(record.handled)
        self.assertTrue(any("errors.notify.failed" in line for line in logs.output))


class NetworkErrorTests(unittest.TestCase):
    def test_classification(self) -> None:
        self.assertTrue(is_network_error(ApiConnectionError("down")))
        self.assertTrue(is_network_error(TimeoutError()))
        self.assertTrue(is_network_error(RuntimeError("Failed to fetch")))
        self.assertFalse(is_network_error(ApiError("bad request", status_code=400)))


if __name__ == "__main__":
    unittest.main()
