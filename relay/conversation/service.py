"""
End-to-end handling of one inbound WhatsApp message.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

import httpx

from relay.errors import RelayError
from relay.logging_config import logger
from relay.models import RunStatus
from relay.settings import Settings

from .extractor import ResponseExtractor
from .orchestrator import RunOrchestrator
from .outcome import GENERIC_ERROR_MESSAGE, translate
from .provisioner import ThreadProvisioner
from .submitter import MessageSubmitter

WELCOME_MESSAGES = (
    "Olá... Você conversará com uma IA experimental e podem haver erros.",
    "Fique tranquilo(a) que seus dados estão protegidos, pois só consigo manter a "
    "memória da nossa conversa por 12 horas, depois o chat é reiniciado e os dados, "
    "apagados. Estamos processando a sua resposta…",
)


class MessageSender(Protocol):
    async def send(self, user_id: str, text: str) -> bool: ...


class ConversationRelay:
    def __init__(
        self,
        *,
        config: Settings,
        provisioner: ThreadProvisioner,
        submitter: MessageSubmitter,
        orchestrator: RunOrchestrator,
        extractor: ResponseExtractor,
        sender: MessageSender,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._provisioner = provisioner
        self._submitter = submitter
        self._orchestrator = orchestrator
        self._extractor = extractor
        self._sender = sender
        self._sleep = sleep

    async def handle_message(self, user_id: str, text: str) -> str:
        """
        Relay `text` from `user_id` to the assistant and send back exactly one
        final message. Returns the text that was sent.

        Raises ConfigurationMissing before touching any backend when
        credentials are absent. Every other failure is logged and answered
        with the generic apology.
        """
        self._config.require_credentials()

        try:
            reply = await self._converse(user_id, text)
        except (RelayError, httpx.HTTPError):
            logger.exception("Processing message from %s failed", user_id)
            reply = GENERIC_ERROR_MESSAGE
        except Exception:
            logger.exception("Unexpected error while processing message from %s", user_id)
            reply = GENERIC_ERROR_MESSAGE

        await self._sender.send(user_id, reply)
        return reply

    async def _converse(self, user_id: str, text: str) -> str:
        provisioned = await self._provisioner.provision(user_id)
        if provisioned.is_new:
            await self._send_welcome(user_id)

        await self._submitter.submit(provisioned.thread_id, text)
        outcome = await self._orchestrator.run(provisioned.thread_id)

        reply = None
        if outcome.status == RunStatus.COMPLETED.value:
            reply = await self._extractor.extract(provisioned.thread_id, outcome.run_id)
        else:
            logger.error(
                "Run %s did not complete: outcome=%s last_status=%s last_error=%s",
                outcome.run_id,
                outcome.status,
                outcome.last_status,
                outcome.last_error.model_dump() if outcome.last_error else None,
            )
        return translate(outcome, reply)

    async def _send_welcome(self, user_id: str) -> None:
        for index, message in enumerate(WELCOME_MESSAGES):
            if index:
                await self._sleep(self._config.welcome_message_delay_seconds)
            await self._sender.send(user_id, message)


__all__ = ["ConversationRelay", "MessageSender", "WELCOME_MESSAGES"]
