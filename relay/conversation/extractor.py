from __future__ import annotations

from typing import Optional

from relay.assistant import AssistantsClient
from relay.errors import ProtocolInconsistency, RelayError
from relay.logging_config import logger
from relay.models import MessageRole


class ResponseExtractor:
    """
    Finds the assistant reply produced by a completed run.

    Returns None instead of raising when the reply is missing, is not text,
    or the message list cannot be fetched; the caller falls back to the
    default apology.
    """

    def __init__(self, assistants: AssistantsClient) -> None:
        self._assistants = assistants

    async def extract(self, thread_id: str, run_id: str) -> Optional[str]:
        try:
            return await self._extract(thread_id, run_id)
        except ProtocolInconsistency as exc:
            logger.warning("No usable reply for run %s in thread %s: %s", run_id, thread_id, exc)
        except RelayError as exc:
            logger.error(
                "Failed to list messages of thread %s after run %s completed: %s",
                thread_id,
                run_id,
                exc,
            )
        return None

    async def _extract(self, thread_id: str, run_id: str) -> str:
        logger.info("Run %s completed; fetching messages of thread %s", run_id, thread_id)
        messages = await self._assistants.list_messages(thread_id, order="desc")
        logger.info("Found %d messages in thread %s", len(messages), thread_id)

        reply = next(
            (
                m
                for m in messages
                if m.role == MessageRole.ASSISTANT.value and m.run_id == run_id
            ),
            None,
        )
        if reply is None:
            raise ProtocolInconsistency(f"no assistant message for run {run_id}")
        text = reply.first_text()
        if text is None:
            raise ProtocolInconsistency(f"assistant message {reply.id} is not text")
        logger.info("Assistant reply for run %s: %r", run_id, text[:100])
        return text


__all__ = ["ResponseExtractor"]
