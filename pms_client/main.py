import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from pms_client.config import Settings, settings as default_settings
from pms_client.core.connectivity import ConnectivityChannel
from pms_client.core.errors import StorageError
from pms_client.core.notify import LoggingNotifier, Notifier
from pms_client.core.store import KeyValueStore, SqlAlchemyStore
from pms_client.services.cache import LocalCache
from pms_client.services.gateway import RequestGateway
from pms_client.services.persistence import PersistenceFacade
from pms_client.services.session import SessionAuthority
from pms_client.services.sync_queue import SyncQueue
from pms_client.services.time_window import TimeWindowResolver

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide client services, built once at startup and handed to UI modules."""

    settings: Settings
    store: KeyValueStore
    cache: LocalCache
    gateway: RequestGateway
    queue: SyncQueue
    connectivity: ConnectivityChannel
    facade: PersistenceFacade
    time_windows: TimeWindowResolver
    auth: SessionAuthority

    async def aclose(self) -> None:
        self.auth.pause()
        await self.gateway.aclose()
        await self.store.close()


async def create_services(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    notifier: Optional[Notifier] = None,
    online: bool = True,
    **gateway_options,
) -> Services:
    settings = settings or default_settings
    store = store or SqlAlchemyStore(settings.CACHE_DATABASE_URL)
    notifier = notifier or LoggingNotifier()

    cache = LocalCache(store)
    # open + hydrate; an unusable store leaves the cache memory-only
    try:
        await store.open()
        await cache.load()
    except StorageError as e:
        logger.warning("Local cache database unavailable, continuing in memory: %s", e)
        notifier.notify("Database initialization failed", "error")

    gateway = RequestGateway(settings, transport=transport, **gateway_options)
    queue = SyncQueue(cache, gateway, max_retries=settings.MAX_RETRIES)
    await queue.load()

    connectivity = ConnectivityChannel(online=online)
    facade = PersistenceFacade(cache, gateway, queue, connectivity=connectivity, notifier=notifier)
    time_windows = TimeWindowResolver(cache, settings, facade=facade)
    auth = SessionAuthority(facade, cache, settings, resolver=time_windows, notifier=notifier)
    await auth.restore()

    return Services(
        settings=settings,
        store=store,
        cache=cache,
        gateway=gateway,
        queue=queue,
        connectivity=connectivity,
        facade=facade,
        time_windows=time_windows,
        auth=auth,
    )
