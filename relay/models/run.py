from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


# Statuses that keep the orchestrator polling; anything else ends the loop.
NON_TERMINAL_STATUSES = frozenset(
    {RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value, RunStatus.CANCELLING.value}
)

# Local outcome, never reported by the backend itself.
POLL_TIMEOUT = "poll_timeout"


def is_terminal(status: str) -> bool:
    return status not in NON_TERMINAL_STATUSES


class RunError(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None


class Run(BaseModel):
    """
    Subset of the Assistants run object the relay reads.

    `status` stays a plain string so that statuses added to the API later
    are accepted and handled as terminal.
    """

    id: str
    thread_id: Optional[str] = None
    status: str
    last_error: Optional[RunError] = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)


class RunOutcome(BaseModel):
    """
    Effective result of driving one run.
    """

    run_id: str = Field(..., description="Assistant run id")
    status: str = Field(..., description="Terminal run status or 'poll_timeout'")
    last_status: str = Field(..., description="Last status observed from the backend")
    last_error: Optional[RunError] = None
    attempts: int = Field(default=0, ge=0, description="Polls performed")

    @property
    def timed_out(self) -> bool:
        return self.status == POLL_TIMEOUT


__all__ = [
    "RunStatus",
    "NON_TERMINAL_STATUSES",
    "POLL_TIMEOUT",
    "is_terminal",
    "RunError",
    "Run",
    "RunOutcome",
]
