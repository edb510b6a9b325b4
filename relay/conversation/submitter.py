from __future__ import annotations

from relay.assistant import AssistantsClient
from relay.logging_config import logger
from relay.models import MessageRole


class MessageSubmitter:
    """
    Appends the user's message to the thread. Errors propagate untouched.
    """

    def __init__(self, assistants: AssistantsClient) -> None:
        self._assistants = assistants

    async def submit(self, thread_id: str, text: str) -> None:
        if not text:
            raise ValueError("Message text must not be empty")
        logger.info("Adding message to thread %s: %r", thread_id, text[:100])
        await self._assistants.add_message(thread_id, text, role=MessageRole.USER)
        logger.info("Message added to thread %s", thread_id)


__all__ = ["MessageSubmitter"]
