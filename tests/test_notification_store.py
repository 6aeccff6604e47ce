"""Tests for API-backed notification persistence."""

from __future__ import annotations

from datetime import UTC, datetime
import unittest

import httpx

from bizsync.cache import InMemoryQueryCache
from bizsync.events.payloads import EventName
from bizsync.exceptions import ApiError
from bizsync.integration.service import IntegrationService
from bizsync.notifications.models import Notification
from bizsync.notifications.store import NOTIFICATIONS_PATH, NotificationStore
from helpers import make_api

TS = datetime(2024, 5, 1, tzinfo=UTC)


def _notification(**overrides) -> Notification:
    values = {"title": "Hello", "message": "World", "timestamp": TS, "module": "System"}
    values.update(overrides)
    return Notification(**values)


class NotificationStoreTests(unittest.IsolatedAsyncioTestCase):
    """Validate save, read-marking, deletion and failure fallbacks."""

    async def test_save_uses_server_record(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                201,
                json={
                    "id": 17,
                    "title": "Hello",
                    "message": "World",
                    "timestamp": TS.isoformat(),
                    "module": "System",
                    "isRead": False,
                },
            )

        api, transport = make_api(handler)
        store = NotificationStore(api, InMemoryQueryCache())

        saved = await store.save(_notification(entity_id=4))

        self.assertEqual(saved.id, 17)
        self.assertEqual(transport.paths("POST"), [NOTIFICATIONS_PATH])
        body = transport.bodies("POST")[0]
        self.assertEqual(body["entityId"], 4)
        self.assertFalse(body["isRead"])
        self.assertNotIn("id", body)
        self.assertEqual(store.unread_count, 1)

    async def test_failed_save_returns_negative_placeholder(self) -> None:
        api, _ = make_api(lambda request: httpx.Response(500))
        store = NotificationStore(api, InMemoryQueryCache())

        with self.assertLogs("bizsync.notifications.store", level="ERROR") as logs:
            first = await store.save(_notification())
            second = await store.save(_notification(title="Again"))

        self.assertEqual(first.id, -1)
        self.assertEqual(second.id, -2)
        self.assertTrue(any("notifications.save.failed" in line for line in logs.output))

    async def test_unreachable_api_does_not_raise(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        api, _ = make_api(handler)
        store = NotificationStore(api, InMemoryQueryCache())
        with self.assertLogs("bizsync", level="WARNING"):
            saved = await store.save(_notification())
        self.assertLess(saved.id, 0)

    async def test_mark_read_and_mark_all_read(self) -> None:
        counter = iter(range(1, 10))

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST" and request.url.path == NOTIFICATIONS_PATH:
                return httpx.Response(
                    201,
                    json={
                        "id": next(counter),
                        "title": "t",
                        "message": "m",
                        "timestamp": TS.isoformat(),
                        "module": "System",
                    },
                )
            return httpx.Response(204)

        api, transport = make_api(handler)
        cache = InMemoryQueryCache()
        store = NotificationStore(api, cache)
        await store.save(_notification())
        await store.save(_notification())
        self.assertEqual(store.unread_count, 2)

        await store.mark_read(1)
        await store.mark_read(1)  # idempotent
        self.assertEqual(store.unread_count, 1)
        self.assertEqual(transport.bodies("PATCH"), [{"isRead": True}, {"isRead": True}])

        await store.mark_all_read()
        self.assertEqual(store.unread_count, 0)
        self.assertIn(f"{NOTIFICATIONS_PATH}/mark-all-read", transport.paths("POST"))
        self.assertEqual(cache.invalidation_count(NOTIFICATIONS_PATH), 3)

    async def test_delete_removes_local_record(self) -> None:
        api, transport = make_api(lambda request: httpx.Response(204))
        store = NotificationStore(api, InMemoryQueryCache())
        saved = await store.save(_notification(id=5))
        self.assertEqual(saved.id, 5)

        await store.delete(5)
        self.assertEqual(store.notifications, [])
        self.assertEqual(transport.paths("DELETE"), [f"{NOTIFICATIONS_PATH}/5"])

    async def test_mutation_failures_propagate(self) -> None:
        api, _ = make_api(lambda request: httpx.Response(404))
        store = NotificationStore(api, InMemoryQueryCache())
        with self.assertLogs("bizsync.notifications.store", level="ERROR"):
            with self.assertRaises(ApiError):
                await store.mark_read(99)
            with self.assertRaises(ApiError):
                await store.delete(99)

    async def test_process_event(self) -> None:
        api, transport = make_api(lambda request: httpx.Response(204))
        cache = InMemoryQueryCache()
        store = NotificationStore(api, cache)

        saved = await store.process_event("system.update", {"version": "3.0"})
        self.assertIsNotNone(saved)
        self.assertEqual(transport.paths("POST"), [NOTIFICATIONS_PATH])
        self.assertEqual(cache.invalidation_count(NOTIFICATIONS_PATH), 1)
        self.assertIsNone(await store.process_event("not.a.template"))

    async def test_attach_persists_bus_notifications(self) -> None:
        api, transport = make_api(lambda request: httpx.Response(204))
        store = NotificationStore(api, InMemoryQueryCache())
        integration = IntegrationService(relationships=[])
        store.attach(integration)

        integration.emit(
            EventName.ENTITY_CREATED,
            {"module": "clients", "entity_type": "client", "entity_id": 1, "data": {"name": "Acme"}},
        )
        await integration.drain()

        self.assertEqual(transport.paths("POST"), [NOTIFICATIONS_PATH])
        self.assertEqual(transport.bodies("POST")[0]["entityId"], 1)


if __name__ == "__main__":
    unittest.main()
