"""
User-facing texts for every way a run can end.
"""

from __future__ import annotations

from typing import Optional

from relay.models import POLL_TIMEOUT, RunOutcome, RunStatus

DEFAULT_FALLBACK_MESSAGE = (
    "Desculpe, ocorreu um problema e não consegui processar sua solicitação "
    "no momento. Por favor, tente novamente."
)
FAILED_MESSAGE = "Desculpe, a solicitação falhou ({code}). Tente reformular sua pergunta."
EXPIRED_MESSAGE = "Desculpe, a solicitação demorou muito e expirou. Por favor, tente novamente."
CANCELLED_MESSAGE = "A solicitação foi cancelada."
REQUIRES_ACTION_MESSAGE = (
    "Desculpe, a solicitação requer uma ação adicional que não posso realizar no momento."
)
POLL_TIMEOUT_MESSAGE = (
    "Desculpe, não foi possível obter a resposta a tempo (Status: {status}). "
    "Por favor, tente novamente."
)
GENERIC_ERROR_MESSAGE = (
    "Ocorreu um erro inesperado ao processar sua mensagem. A equipe técnica foi "
    "notificada. Por favor, tente novamente mais tarde."
)


def translate(outcome: RunOutcome, reply: Optional[str] = None) -> str:
    """
    Map a run outcome (plus the extracted reply, for completed runs) to the
    single text sent back to the user. Never returns an empty string.
    """
    status = outcome.status
    if status == RunStatus.COMPLETED.value:
        return reply if reply else DEFAULT_FALLBACK_MESSAGE
    if status == RunStatus.FAILED.value:
        code = outcome.last_error.code if outcome.last_error else None
        return FAILED_MESSAGE.format(code=code or "Erro")
    if status == RunStatus.EXPIRED.value:
        return EXPIRED_MESSAGE
    if status == RunStatus.CANCELLED.value:
        return CANCELLED_MESSAGE
    if status == RunStatus.REQUIRES_ACTION.value:
        return REQUIRES_ACTION_MESSAGE
    if status == POLL_TIMEOUT:
        return POLL_TIMEOUT_MESSAGE.format(status=outcome.last_status)
    # Statuses the API may add later.
    return POLL_TIMEOUT_MESSAGE.format(status=status)


__all__ = [
    "DEFAULT_FALLBACK_MESSAGE",
    "FAILED_MESSAGE",
    "EXPIRED_MESSAGE",
    "CANCELLED_MESSAGE",
    "REQUIRES_ACTION_MESSAGE",
    "POLL_TIMEOUT_MESSAGE",
    "GENERIC_ERROR_MESSAGE",
    "translate",
]
