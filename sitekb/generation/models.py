"""Conversation data models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class RunStatus(str, Enum):
    """Status of an inference run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES


TERMINAL_RUN_STATUSES = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
    }
)


class SessionState(str, Enum):
    """Lifecycle of one question asked on a thread."""

    NO_THREAD = "no_thread"
    THREAD_READY = "thread_ready"
    MESSAGE_APPENDED = "message_appended"
    RUN_QUEUED = "run_queued"
    RUN_RUNNING = "run_running"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"


class RunInfo(BaseModel):
    """Terminal snapshot of a run."""

    id: str
    thread_id: str
    status: RunStatus
    last_error: Optional[dict[str, Any]] = None


class ThreadMessage(BaseModel):
    """One message of a conversation thread."""

    id: str
    thread_id: str
    role: str
    content: str
    created_at: int = 0
