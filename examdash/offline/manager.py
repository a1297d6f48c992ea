"""
Offline Manager - the service object screens and API clients talk to

Owns the offline database, the cache store, the action queue, the
connectivity monitor and the sync engine, and exposes the same surface
the dashboard's offline-sync hook offered:

    is_online, pending_actions, syncing,
    queue_offline_action, sync_offline_actions,
    store_offline_data, get_offline_data, check_pending_actions

Usage:
    async with OfflineManager(settings) as manager:
        await manager.queue_offline_action("POST_/categories", "/categories", "POST", data, token)
        manager.set_online(True)   # replays the queue
"""

from enum import Enum
from typing import Any, List, Optional

import httpx

from examdash.config import Settings, settings as default_settings
from examdash.database import Database
from examdash.logging_config import logger
from examdash.models import QueuedAction
from examdash.offline.connectivity import ConnectivityMonitor
from examdash.offline.queue import ActionQueue
from examdash.offline.store import OfflineStore
from examdash.offline.sync_engine import SyncEngine, SyncResult, TokenProvider


def _no_token() -> Optional[str]:
    return None


class ConnectionStatus(str, Enum):
    OFFLINE = "offline"
    ONLINE_IDLE = "online_idle"
    ONLINE_SYNCING = "online_syncing"


class OfflineManager:
    """Explicitly constructed replacement for a process-wide offline singleton"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        token_provider: Optional[TokenProvider] = None,
        initial_online: bool = True,
        poll_connectivity: bool = False,
    ):
        self.settings = settings or default_settings
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=self.settings.API_BASE_URL,
            timeout=self.settings.HTTP_TIMEOUT,
        )
        self.token_provider = token_provider
        self.poll_connectivity = poll_connectivity

        self.db = Database(self.settings)
        self.store = OfflineStore(self.db, self.settings.OFFLINE_NAMESPACE)
        self.queue = ActionQueue(self.db, self.settings.OFFLINE_NAMESPACE)
        self.monitor = ConnectivityMonitor(self.settings, self.http_client, initial_online)
        self.engine = SyncEngine(
            self.settings,
            self.queue,
            self.store,
            self.monitor,
            self.http_client,
            token_provider=self.current_token,
        )
        self.monitor.on_reconnect(self._handle_reconnect)

        self.pending_actions = 0
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> "OfflineManager":
        if self._started:
            return self
        await self.db.create_tables()
        self._started = True
        await self.check_pending_actions()
        if self.poll_connectivity:
            await self.monitor.start()
        return self

    async def stop(self) -> None:
        if not self._started:
            return
        await self.monitor.stop()
        if self._owns_client:
            await self.http_client.aclose()
        await self.db.dispose()
        self._started = False

    async def __aenter__(self) -> "OfflineManager":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    @property
    def syncing(self) -> bool:
        return self.engine.syncing

    @property
    def auth_required(self) -> bool:
        return self.engine.auth_required

    @property
    def status(self) -> ConnectionStatus:
        if not self.is_online:
            return ConnectionStatus.OFFLINE
        if self.syncing:
            return ConnectionStatus.ONLINE_SYNCING
        return ConnectionStatus.ONLINE_IDLE

    def set_online(self, online: bool) -> bool:
        """Host connectivity event (browser online/offline)"""
        return self.monitor.set_online(online)

    async def wait_idle(self) -> None:
        """Wait for reconnect-triggered syncs to finish"""
        await self.monitor.wait_idle()

    def current_token(self) -> Optional[str]:
        if self.token_provider is not None:
            return self.token_provider()
        return self.settings.AUTH_TOKEN

    def update_token(self, token_provider: Optional[TokenProvider]) -> None:
        """Install a fresh token source after login and re-enable replay"""
        self.token_provider = token_provider
        self.engine.reset_auth()

    def clear_token(self) -> None:
        """Forget the session token after the backend rejected it"""
        self.token_provider = _no_token

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def check_pending_actions(self) -> int:
        try:
            self.pending_actions = await self.queue.count_pending()
        except Exception as e:
            logger.log_error_with_context(e, "check_pending_actions")
        return self.pending_actions

    async def get_pending_actions(self) -> List[QueuedAction]:
        return await self.queue.get_pending_actions()

    async def queue_offline_action(
        self,
        type: str,
        url: str,
        method: str,
        payload: Any = None,
        auth_token: Optional[str] = None,
    ) -> QueuedAction:
        """Queue a mutation; enqueue failures are logged and re-raised"""
        try:
            action = await self.queue.queue_offline_action(type, url, method, payload, auth_token)
        except Exception as e:
            logger.log_error_with_context(e, "queue_offline_action", action_type=type)
            raise
        await self.check_pending_actions()
        return action

    async def sync_offline_actions(self) -> Optional[SyncResult]:
        """Replay the queue now; never raises"""
        if not self.is_online:
            return None

        result = None
        try:
            result = await self.engine.request_sync()
        except Exception as e:
            logger.log_error_with_context(e, "sync_offline_actions")
        await self.check_pending_actions()
        return result

    async def clear_pending_actions(self) -> None:
        """Discard every queued action, dead letters included"""
        await self.queue.clear()
        await self.check_pending_actions()
        logger.warning("Offline action queue cleared")

    async def requeue_dead_letters(self) -> int:
        count = await self.queue.requeue_dead_letters()
        await self.check_pending_actions()
        return count

    async def _handle_reconnect(self) -> None:
        await self.sync_offline_actions()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def store_offline_data(self, key: str, data: Any, expiry: Optional[int] = None) -> None:
        await self.store.store_offline_data(key, data, expiry)

    async def get_offline_data(self, key: str) -> Optional[Any]:
        return await self.store.get_offline_data(key)

    async def delete_offline_data(self, key: str) -> None:
        await self.store.delete_offline_data(key)

    async def purge_expired(self) -> int:
        return await self.store.purge_expired(max_entries=self.settings.OFFLINE_MAX_ENTRIES)
