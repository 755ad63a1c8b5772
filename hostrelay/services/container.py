"""Wiring for the relay's long-lived services.

One ``RelayServices`` instance is built per application and stored on
``app.state``; route handlers reach it through ``get_services``.
"""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from hostrelay.config import RelayConfig
from hostrelay.db.connection import (
    create_engine_from_url,
    create_session_factory,
    init_db,
    resolve_database_url,
)
from hostrelay.services.broadcaster import Broadcaster
from hostrelay.services.host_gateway import ApiKeyCell, HostGateway
from hostrelay.services.reconciler import TaskReconciler
from hostrelay.services.store import RelayStore

logger = logging.getLogger(__name__)


@dataclass
class RelayServices:
    """Everything a request handler needs."""

    config: RelayConfig
    engine: AsyncEngine
    store: RelayStore
    broadcaster: Broadcaster
    reconciler: TaskReconciler
    api_key: ApiKeyCell
    gateway: HostGateway

    async def start(self) -> None:
        """Create tables. Called once from the app lifespan."""
        await init_db(self.engine)
        logger.info(
            "Relay ready (host=%s, store=%s)",
            self.config.host.base_url,
            self.engine.url.render_as_string(hide_password=True),
        )

    async def stop(self) -> None:
        """Disconnect viewers and release the HTTP client and engine."""
        self.broadcaster.close_all()
        await self.gateway.aclose()
        await self.engine.dispose()


def build_services(
    config: RelayConfig,
    http_client: httpx.AsyncClient | None = None,
) -> RelayServices:
    """Construct the service graph from config.

    Args:
        config: Loaded relay configuration.
        http_client: Optional client for the host gateway (tests pass one
            with a fake transport).
    """
    engine = create_engine_from_url(
        resolve_database_url(config.store.database_url), echo=config.store.echo
    )
    store = RelayStore(create_session_factory(engine))
    broadcaster = Broadcaster(max_pending=config.fanout.max_pending_messages)
    api_key = ApiKeyCell(config.host.api_key)
    gateway = HostGateway(
        config.host.base_url,
        api_key,
        timeout=config.host.timeout_seconds,
        client=http_client,
    )
    return RelayServices(
        config=config,
        engine=engine,
        store=store,
        broadcaster=broadcaster,
        reconciler=TaskReconciler(store, broadcaster),
        api_key=api_key,
        gateway=gateway,
    )
