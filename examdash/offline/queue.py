"""
Action Queue - mutations recorded while offline

Actions are kept in FIFO order by their autoincrement id and are only
deleted after a confirmed 2xx replay. GET requests are never queued.
"""

from typing import Any, List, Optional

from sqlalchemy import select, delete, update, func

from examdash.database import Database
from examdash.exceptions import EnqueueError, InvalidActionError
from examdash.logging_config import logger
from examdash.models import (
    ActionStatus,
    MUTATING_METHODS,
    OfflineActionRecord,
    QueuedAction,
    now_ms,
)


class ActionQueue:
    """Persistent FIFO of offline mutations"""

    def __init__(self, db: Database, namespace: str = "default"):
        self.db = db
        self.namespace = namespace

    async def queue_offline_action(
        self,
        type: str,
        url: str,
        method: str,
        payload: Any = None,
        auth_token: Optional[str] = None,
    ) -> QueuedAction:
        """
        Append a mutation to the queue and wait until it is persisted.

        Args:
            type: Caller tag, conventionally f"{method}_{url}"
            url: Request URL to replay
            method: POST, PUT, DELETE or PATCH
            payload: Optional JSON body
            auth_token: Bearer token captured at enqueue time

        Raises:
            InvalidActionError: method is not a mutation
            EnqueueError: the queue could not be written
        """
        method = (method or "").upper()
        if method not in MUTATING_METHODS:
            raise InvalidActionError(method or "<none>")

        try:
            async with self.db.session() as session:
                record = OfflineActionRecord(
                    namespace=self.namespace,
                    type=type,
                    url=url,
                    method=method,
                    payload=payload,
                    auth_token=auth_token,
                    status=ActionStatus.PENDING,
                    attempts=0,
                    created_at=now_ms(),
                )
                session.add(record)
                await session.commit()
                action = QueuedAction.from_record(record)
        except Exception as e:
            raise EnqueueError(type, str(e)) from e

        logger.info(
            f"Queued offline action #{action.id} {type}",
            extra={"action_id": action.id, "action_type": type, "http_method": method}
        )
        return action

    async def get_pending_actions(self) -> List[QueuedAction]:
        """All pending actions, oldest first"""
        return await self._list(ActionStatus.PENDING)

    async def get_dead_letters(self) -> List[QueuedAction]:
        return await self._list(ActionStatus.DEAD)

    async def _list(self, status: str) -> List[QueuedAction]:
        async with self.db.session() as session:
            result = await session.execute(
                select(OfflineActionRecord)
                .where(
                    OfflineActionRecord.namespace == self.namespace,
                    OfflineActionRecord.status == status,
                )
                .order_by(OfflineActionRecord.id.asc())
            )
            return [QueuedAction.from_record(r) for r in result.scalars().all()]

    async def count_pending(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(OfflineActionRecord).where(
                    OfflineActionRecord.namespace == self.namespace,
                    OfflineActionRecord.status == ActionStatus.PENDING,
                )
            )
            return result.scalar_one()

    async def remove(self, action_id: int) -> bool:
        """Delete an action after a successful replay. Removing twice is a no-op."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(OfflineActionRecord).where(
                    OfflineActionRecord.namespace == self.namespace,
                    OfflineActionRecord.id == action_id,
                )
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    async def record_failure(
        self,
        action_id: int,
        error: str,
        max_attempts: int = 0
    ) -> Optional[QueuedAction]:
        """
        Count a failed replay. With max_attempts > 0 the action is moved to
        the dead-letter state once it has failed that many times.
        """
        async with self.db.session() as session:
            record = await session.get(OfflineActionRecord, action_id)
            if record is None or record.namespace != self.namespace:
                return None

            record.attempts = (record.attempts or 0) + 1
            record.last_error = error[:2000]
            if max_attempts > 0 and record.attempts >= max_attempts:
                record.status = ActionStatus.DEAD
                logger.warning(
                    f"Action #{record.id} {record.type} moved to dead letters "
                    f"after {record.attempts} attempts",
                    extra={"action_id": record.id, "attempts": record.attempts}
                )
            await session.commit()
            return QueuedAction.from_record(record)

    async def requeue_dead_letters(self) -> int:
        """Put dead-lettered actions back into replay with a fresh attempt count"""
        async with self.db.session() as session:
            result = await session.execute(
                update(OfflineActionRecord)
                .where(
                    OfflineActionRecord.namespace == self.namespace,
                    OfflineActionRecord.status == ActionStatus.DEAD,
                )
                .values(status=ActionStatus.PENDING, attempts=0)
            )
            await session.commit()
            return result.rowcount or 0

    async def clear(self) -> None:
        async with self.db.session() as session:
            await session.execute(
                delete(OfflineActionRecord).where(
                    OfflineActionRecord.namespace == self.namespace
                )
            )
            await session.commit()
