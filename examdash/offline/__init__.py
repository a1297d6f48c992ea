"""Offline layer: cache with expiry, mutation queue, connectivity and replay.

Usage:
    from examdash.offline import OfflineManager

    async with OfflineManager(settings) as manager:
        await manager.store_offline_data("/categories", data, expiry_ms)
        cached = await manager.get_offline_data("/categories")
"""
from examdash.offline.connectivity import ConnectivityMonitor
from examdash.offline.manager import ConnectionStatus, OfflineManager
from examdash.offline.queue import ActionQueue
from examdash.offline.store import OfflineStore
from examdash.offline.sync_engine import SyncEngine, SyncResult

__all__ = [
    "ActionQueue",
    "ConnectionStatus",
    "ConnectivityMonitor",
    "OfflineManager",
    "OfflineStore",
    "SyncEngine",
    "SyncResult",
]
