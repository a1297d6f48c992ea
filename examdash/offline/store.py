"""
Offline Store - durable key/value cache with optional expiry

Reads and writes are best-effort: a storage failure is logged and turned
into a cache miss (reads) or a dropped write, never an exception.
Expiry is checked lazily on read; purge_expired() sweeps dead entries.
"""

from typing import Any, Optional

from sqlalchemy import select, delete, func

from examdash.database import Database
from examdash.logging_config import logger
from examdash.models import OfflineEntry, now_ms


class OfflineStore:
    """Namespaced key/value store backed by the offline database"""

    def __init__(self, db: Database, namespace: str = "default"):
        self.db = db
        self.namespace = namespace

    async def store_offline_data(
        self,
        key: str,
        data: Any,
        expiry_timestamp: Optional[int] = None
    ) -> None:
        """
        Write or overwrite the entry for key.

        Args:
            key: Cache key (the request URL for cached GETs)
            data: Any JSON-serializable value
            expiry_timestamp: Absolute expiry in epoch milliseconds, None = never
        """
        try:
            async with self.db.session() as session:
                entry = await session.get(OfflineEntry, (self.namespace, key))
                if entry is None:
                    entry = OfflineEntry(namespace=self.namespace, key=key)
                    session.add(entry)
                entry.value = data
                entry.expires_at = expiry_timestamp
                entry.updated_at = now_ms()
                await session.commit()
            logger.log_storage_event("write", key, expires_at=expiry_timestamp)
        except Exception as e:
            logger.log_error_with_context(e, "store_offline_data", storage_key=key)

    async def get_offline_data(self, key: str) -> Optional[Any]:
        """
        Read the entry for key.

        Returns None when the key is missing or expired. An expired entry
        is deleted as part of the lookup.
        """
        try:
            async with self.db.session() as session:
                entry = await session.get(OfflineEntry, (self.namespace, key))
                if entry is None:
                    logger.log_storage_event("miss", key)
                    return None

                if entry.is_expired():
                    await session.delete(entry)
                    await session.commit()
                    logger.log_storage_event("expired", key)
                    return None

                logger.log_storage_event("hit", key)
                return entry.value
        except Exception as e:
            logger.log_error_with_context(e, "get_offline_data", storage_key=key)
            return None

    async def delete_offline_data(self, key: str) -> None:
        try:
            async with self.db.session() as session:
                await session.execute(
                    delete(OfflineEntry).where(
                        OfflineEntry.namespace == self.namespace,
                        OfflineEntry.key == key,
                    )
                )
                await session.commit()
            logger.log_storage_event("delete", key)
        except Exception as e:
            logger.log_error_with_context(e, "delete_offline_data", storage_key=key)

    async def count(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(OfflineEntry).where(
                    OfflineEntry.namespace == self.namespace
                )
            )
            return result.scalar_one()

    async def purge_expired(
        self,
        now: Optional[int] = None,
        max_entries: int = 0
    ) -> int:
        """
        Delete expired entries, then trim the oldest writes down to max_entries.

        Args:
            now: Reference time in epoch ms (defaults to current time)
            max_entries: Upper bound on live entries, 0 = unbounded

        Returns:
            Number of entries removed
        """
        now = now if now is not None else now_ms()
        removed = 0

        try:
            async with self.db.session() as session:
                result = await session.execute(
                    delete(OfflineEntry).where(
                        OfflineEntry.namespace == self.namespace,
                        OfflineEntry.expires_at.is_not(None),
                        OfflineEntry.expires_at < now,
                    )
                )
                removed += result.rowcount or 0

                if max_entries > 0:
                    total = (await session.execute(
                        select(func.count()).select_from(OfflineEntry).where(
                            OfflineEntry.namespace == self.namespace
                        )
                    )).scalar_one()
                    overflow = total - max_entries
                    if overflow > 0:
                        oldest = (await session.execute(
                            select(OfflineEntry.key)
                            .where(OfflineEntry.namespace == self.namespace)
                            .order_by(OfflineEntry.updated_at.asc(), OfflineEntry.key.asc())
                            .limit(overflow)
                        )).scalars().all()
                        await session.execute(
                            delete(OfflineEntry).where(
                                OfflineEntry.namespace == self.namespace,
                                OfflineEntry.key.in_(oldest),
                            )
                        )
                        removed += len(oldest)

                await session.commit()
        except Exception as e:
            logger.log_error_with_context(e, "purge_expired")
            return 0

        if removed:
            logger.info(f"Purged {removed} offline cache entries", extra={"purged": removed})
        return removed
