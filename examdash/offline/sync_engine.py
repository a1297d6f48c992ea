"""
Sync Engine - replays queued mutations once the backend is reachable

Drain pass:
1. Skip when offline (or when a login is required)
2. Sweep expired cache entries
3. Replay pending actions oldest first
4. Delete each action on 2xx, keep it queued otherwise
5. Continue past failures; stop early only on going offline or stale auth

Only one pass runs at a time. Triggers that arrive during a pass are
folded into a single follow-up pass.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import httpx

from examdash.config import Settings
from examdash.exceptions import ReplayError, StaleAuthError
from examdash.logging_config import logger, generate_sync_id, set_sync_id
from examdash.models import ActionStatus, QueuedAction
from examdash.offline.connectivity import ConnectivityMonitor
from examdash.offline.queue import ActionQueue
from examdash.offline.store import OfflineStore


TokenProvider = Callable[[], Optional[str]]

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass
class SyncResult:
    """Outcome of one drain pass"""
    sync_id: str = ""
    attempted: int = 0
    succeeded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    dead_lettered: List[int] = field(default_factory=list)
    purged: int = 0
    skipped: Optional[str] = None  # "offline" | "auth_required"
    stopped: Optional[str] = None  # "offline" | "auth_required"

    def to_dict(self) -> Dict:
        return {
            "sync_id": self.sync_id,
            "attempted": self.attempted,
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "dead_lettered": list(self.dead_lettered),
            "purged": self.purged,
            "skipped": self.skipped,
            "stopped": self.stopped,
        }


class SyncEngine:
    """Single-consumer drain of the offline action queue"""

    def __init__(
        self,
        settings: Settings,
        queue: ActionQueue,
        store: OfflineStore,
        monitor: ConnectivityMonitor,
        http_client: httpx.AsyncClient,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.settings = settings
        self.queue = queue
        self.store = store
        self.monitor = monitor
        self.http_client = http_client
        self.token_provider = token_provider

        self.syncing = False
        self.auth_required = False
        self._lock = asyncio.Lock()
        self._rerun_requested = False

    async def request_sync(self) -> Optional[SyncResult]:
        """
        Trigger a drain.

        Returns the result of the last pass run by this call, or None when
        another pass was already running and this trigger was folded into it.
        """
        if self._lock.locked():
            self._rerun_requested = True
            logger.debug("Sync already running, follow-up pass requested")
            return None

        async with self._lock:
            result = await self._drain()
            while self._rerun_requested:
                self._rerun_requested = False
                result = await self._drain()
            return result

    def reset_auth(self) -> None:
        """Allow replay again after the user has logged in"""
        self.auth_required = False

    def _resolve_token(self, action: QueuedAction) -> Optional[str]:
        if self.token_provider is not None:
            token = self.token_provider()
            if token:
                return token
        return action.auth_token

    async def _drain(self) -> SyncResult:
        result = SyncResult(sync_id=generate_sync_id())
        set_sync_id(result.sync_id)

        if not self.monitor.is_online:
            result.skipped = "offline"
            return result
        if self.auth_required:
            logger.warning("Sync skipped: login required before replaying queued actions")
            result.skipped = "auth_required"
            return result

        self.syncing = True
        try:
            result.purged = await self.store.purge_expired(
                max_entries=self.settings.OFFLINE_MAX_ENTRIES
            )

            actions = await self.queue.get_pending_actions()
            if actions:
                logger.info(f"Replaying {len(actions)} offline action(s)")

            for action in actions:
                if not self.monitor.is_online:
                    result.stopped = "offline"
                    break

                result.attempted += 1
                try:
                    await self._replay(action)
                except StaleAuthError as e:
                    # Stale auth does not count as an attempt
                    self.auth_required = True
                    result.failed.append(action.id)
                    result.stopped = "auth_required"
                    logger.warning(str(e), extra={"action_id": action.id})
                    break
                except ReplayError as e:
                    result.failed.append(action.id)
                    await self._record_failure(action, e.reason, result)
                except Exception as e:
                    result.failed.append(action.id)
                    logger.log_error_with_context(e, "replay", action_id=action.id)
                else:
                    # The backend already applied it; a failed delete means it replays again
                    result.succeeded.append(action.id)
                    try:
                        await self.queue.remove(action.id)
                    except Exception as e:
                        logger.log_error_with_context(e, "replay bookkeeping", action_id=action.id)
        finally:
            self.syncing = False

        logger.info(
            f"Sync pass finished: {len(result.succeeded)} replayed, "
            f"{len(result.failed)} still queued",
            extra={"sync_result": result.to_dict()}
        )
        return result

    async def _record_failure(self, action: QueuedAction, reason: str, result: SyncResult) -> None:
        try:
            updated = await self.queue.record_failure(
                action.id, reason, self.settings.SYNC_MAX_ATTEMPTS
            )
        except Exception as e:
            logger.log_error_with_context(e, "replay bookkeeping", action_id=action.id)
            return
        if updated is not None and updated.status == ActionStatus.DEAD:
            result.dead_lettered.append(action.id)

    async def _replay(self, action: QueuedAction) -> None:
        """Send one queued action; raises ReplayError unless the backend answers 2xx"""
        headers = {"Content-Type": "application/json"}
        token = self._resolve_token(action)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self.http_client.request(
                action.method,
                action.url,
                json=action.payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.log_replay(action.method, action.url, None, action.id, False,
                              error=str(e))
            raise ReplayError(action.id, f"{type(e).__name__}: {e}") from e

        success = 200 <= response.status_code < 300
        logger.log_replay(action.method, action.url, response.status_code, action.id, success)

        if success:
            return
        if response.status_code in AUTH_FAILURE_STATUSES:
            raise StaleAuthError(action.id, response.status_code)
        raise ReplayError(action.id, f"HTTP {response.status_code}", response.status_code)
