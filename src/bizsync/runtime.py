"""Wire the integration core together from a validated config mapping."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from .api import ApiClient
from .cache import InMemoryQueryCache
from .config import load_config
from .errors.log import ErrorLog
from .errors.service import ErrorService
from .integration.service import IntegrationService
from .integration.sync import ModuleSync
from .notifications.store import NotificationStore

LOGGER = logging.getLogger(__name__)


@dataclass
class IntegrationRuntime:
    """Every long-lived collaborator, built once and passed explicitly."""

    api: ApiClient
    cache: InMemoryQueryCache
    integration: IntegrationService
    notifications: NotificationStore
    errors: ErrorService
    sync: ModuleSync

    @classmethod
    def from_config(
        cls,
        config: dict[str, dict[str, Any]] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> IntegrationRuntime:
        config = config if config is not None else load_config()
        api_config = config["api"]
        bus_config = config["bus"]
        retry_config = config["retry"]
        errors_config = config["errors"]

        api = ApiClient(
            base_url=api_config["base_url"],
            timeout=float(api_config["timeout"]),
            client=http_client,
        )
        cache = InMemoryQueryCache()
        integration = IntegrationService(
            max_listeners=int(bus_config["max_listeners"]),
            max_emit_depth=int(bus_config["max_emit_depth"]),
        )

        notifications = NotificationStore(api, cache)
        if config["notifications"]["persist"]:
            notifications.attach(integration)

        errors = ErrorService(
            api,
            cache,
            notifier=integration.publish_notification,
            error_log=ErrorLog(
                capacity=int(errors_config["log_capacity"]),
                trim_count=int(errors_config["trim_count"]),
            ),
            max_retries=int(retry_config["max_retries"]),
            initial_delay=float(retry_config["initial_delay_seconds"]),
            attempt_timeout=float(retry_config["attempt_timeout_seconds"]) or None,
        )

        sync = ModuleSync(api, cache)
        sync.attach(integration)

        LOGGER.info(
            "runtime.started",
            extra={"event": "runtime.started", "base_url": api.base_url},
        )
        return cls(
            api=api,
            cache=cache,
            integration=integration,
            notifications=notifications,
            errors=errors,
            sync=sync,
        )

    async def aclose(self) -> None:
        """Finish background notification work, then release the HTTP client."""
        await self.integration.drain()
        await self.api.aclose()
        LOGGER.info("runtime.stopped", extra={"event": "runtime.stopped"})

    async def __aenter__(self) -> IntegrationRuntime:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
