import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, String, Text, BigInteger, JSON, Index

from examdash.database import Base


MUTATING_METHODS = ("POST", "PUT", "DELETE", "PATCH")


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return int(time.time() * 1000)


class ActionStatus:
    """Queue states for an offline action"""
    PENDING = "pending"
    DEAD = "dead"  # Exceeded SYNC_MAX_ATTEMPTS, parked outside replay


class OfflineEntry(Base):
    """Cached payload with an optional absolute expiry"""
    __tablename__ = "offline_data"

    namespace = Column(String(100), primary_key=True)
    key = Column(String(1024), primary_key=True)

    value = Column(JSON, nullable=True)
    expires_at = Column(BigInteger, nullable=True)  # epoch ms, NULL = never
    updated_at = Column(BigInteger, nullable=False, default=now_ms, index=True)

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now if now is not None else now_ms())

    def __repr__(self):
        return f"<OfflineEntry {self.namespace}:{self.key}>"


class OfflineActionRecord(Base):
    """Mutation waiting to be replayed against the backend"""
    __tablename__ = "offline_actions"

    # Autoincrement id is the FIFO sequence
    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(100), nullable=False)

    type = Column(String(1024), nullable=False)
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False)
    payload = Column(JSON, nullable=True)
    auth_token = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=ActionStatus.PENDING)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (
        Index("ix_offline_actions_ns_status_id", "namespace", "status", "id"),
    )

    def __repr__(self):
        return f"<OfflineActionRecord #{self.id} {self.method} {self.url}>"


@dataclass
class QueuedAction:
    """Detached view of a queued action handed out to callers"""
    id: int
    type: str
    url: str
    method: str
    payload: Any = None
    auth_token: Optional[str] = None
    status: str = ActionStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: int = 0

    @classmethod
    def from_record(cls, record: OfflineActionRecord) -> "QueuedAction":
        return cls(
            id=record.id,
            type=record.type,
            url=record.url,
            method=record.method,
            payload=record.payload,
            auth_token=record.auth_token,
            status=record.status,
            attempts=record.attempts or 0,
            last_error=record.last_error,
            created_at=record.created_at or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
