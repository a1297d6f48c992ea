"""
Custom Exceptions for ExamDash
==============================

Usage:
    from examdash.exceptions import EnqueueError, ApiError

    try:
        await manager.queue_offline_action(...)
    except EnqueueError as e:
        logger.error(f"Could not queue action: {e}")
        raise
"""

from typing import Optional, Any, Dict


class ExamDashError(Exception):
    """Base exception for all ExamDash errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Offline Storage Errors
# ============================================

class StorageError(ExamDashError):
    """Offline storage could not be read or written"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"key": key} if key else {}
        )


class EnqueueError(StorageError):
    """A mutation could not be written to the offline queue"""

    def __init__(self, action_type: str, reason: str):
        super().__init__(f"Failed to queue offline action {action_type}: {reason}")
        self.code = "ENQUEUE_FAILED"
        self.details = {"type": action_type, "reason": reason}


class InvalidActionError(ExamDashError):
    """Only mutating requests can be queued"""

    def __init__(self, method: str):
        super().__init__(
            f"Method {method} cannot be queued for offline replay",
            code="INVALID_ACTION",
            details={"method": method}
        )


# ============================================
# Network Errors
# ============================================

class ApiError(ExamDashError):
    """Backend answered with a non-2xx status"""

    def __init__(self, status_code: int, body: Any = None, url: Optional[str] = None):
        message = f"HTTP error! status: {status_code}"
        if isinstance(body, dict) and body.get("error"):
            message = str(body["error"])
        super().__init__(
            message,
            code="API_ERROR",
            details={"status_code": status_code, "url": url}
        )
        self.status_code = status_code
        self.body = body


class ReplayError(ExamDashError):
    """A queued action failed to replay"""

    def __init__(self, action_id: int, reason: str, status_code: Optional[int] = None):
        super().__init__(
            f"Replay of action #{action_id} failed: {reason}",
            code="REPLAY_FAILED",
            details={"action_id": action_id, "status_code": status_code}
        )
        self.action_id = action_id
        self.reason = reason
        self.status_code = status_code


class StaleAuthError(ReplayError):
    """Replay was rejected because the captured token is no longer valid"""

    def __init__(self, action_id: int, status_code: int):
        super().__init__(action_id, "authentication rejected, login required", status_code)
        self.code = "STALE_AUTH"
