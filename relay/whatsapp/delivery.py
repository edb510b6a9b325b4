from __future__ import annotations

import httpx

from relay.logging_config import logger


class WhatsAppSender:
    """
    Sends text messages through the WhatsApp Cloud API.

    Delivery failures are logged and reported as False; they are never
    raised or retried.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        token: str,
        phone_id: str,
        graph_url: str = "https://graph.facebook.com/v18.0",
        timeout: float = 15.0,
    ) -> None:
        self._client = client
        self._token = token
        self._url = f"{graph_url.rstrip('/')}/{phone_id}/messages"
        self._timeout = timeout

    async def send(self, user_id: str, text: str) -> bool:
        logger.info("Sending message to %s: %r", user_id, text[:50])
        try:
            resp = await self._client.post(
                self._url,
                json={
                    "messaging_product": "whatsapp",
                    "to": user_id,
                    "text": {"body": text},
                },
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("Error sending WhatsApp message to %s: %s", user_id, exc)
            return False
        if resp.status_code >= 400:
            logger.error(
                "Error sending WhatsApp message to %s: HTTP %s %s",
                user_id,
                resp.status_code,
                resp.text,
            )
            return False
        logger.info("Message delivered to %s", user_id)
        return True


__all__ = ["WhatsAppSender"]
