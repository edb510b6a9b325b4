from .message import ContentPart, MessageRole, TextContent, ThreadMessage
from .run import (
    NON_TERMINAL_STATUSES,
    POLL_TIMEOUT,
    Run,
    RunError,
    RunOutcome,
    RunStatus,
    is_terminal,
)
from .session import ProvisionResult, Session

__all__ = [
    "ContentPart",
    "MessageRole",
    "TextContent",
    "ThreadMessage",
    "NON_TERMINAL_STATUSES",
    "POLL_TIMEOUT",
    "Run",
    "RunError",
    "RunOutcome",
    "RunStatus",
    "is_terminal",
    "ProvisionResult",
    "Session",
]
