from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.responses import PlainTextResponse

from .conversation import ConversationRelay
from .deps import get_relay, get_settings, shutdown
from .errors import ConfigurationMissing, bad_request, forbidden, internal_error
from .logging_config import logger
from .settings import Settings
from .whatsapp import extract_message, is_test_ping


async def process_message(relay: ConversationRelay, user_id: str, text: str) -> None:
    try:
        await relay.handle_message(user_id, text)
    except ConfigurationMissing as exc:
        logger.error("Message from %s dropped: %s", user_id, exc)


def create_app() -> FastAPI:
    app = FastAPI(title="WhatsApp Assistant Relay", version="0.1.0")

    @app.on_event("shutdown")
    async def _close_clients() -> None:
        await shutdown()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client_host = request.client.host if request.client else "-"
        logger.info("HTTP %s %s from %s", request.method, request.url.path, client_host)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error while processing %s %s",
                request.method,
                request.url.path,
            )
            raise
        logger.info(
            "HTTP %s %s -> %s", request.method, request.url.path, response.status_code
        )
        return response

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    @app.get("/webhook", response_class=PlainTextResponse)
    async def verify_webhook(
        mode: Optional[str] = Query(None, alias="hub.mode"),
        token: Optional[str] = Query(None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(None, alias="hub.challenge"),
        config: Settings = Depends(get_settings),
    ) -> str:
        """
        Subscription handshake performed by Meta when the webhook URL is set.
        """
        if not config.verify_token:
            logger.error("VERIFY_TOKEN is not configured")
            raise internal_error("Webhook verification is not configured")
        if not mode or not token:
            logger.warning("Webhook verification failed: mode or token missing")
            raise bad_request("hub.mode and hub.verify_token are required")
        if mode != "subscribe" or token != config.verify_token:
            logger.warning("Webhook verification failed: invalid token or mode")
            raise forbidden("Webhook verification failed")
        logger.info("Webhook verified")
        return challenge or ""

    @app.post("/webhook", response_class=PlainTextResponse)
    async def receive_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        config: Settings = Depends(get_settings),
    ) -> str:
        try:
            payload = await request.json()
        except ValueError:
            raise bad_request("Request body must be JSON")

        if is_test_ping(payload):
            logger.info("Received webhook test ping")
            return "OK"

        inbound = extract_message(payload)
        if inbound is None:
            logger.warning("Ignoring webhook payload without a text message: %s", payload)
            return "OK"

        missing = config.missing_credentials()
        if missing:
            logger.error("Required configuration missing: %s", ", ".join(missing))
            raise internal_error("Relay is not configured")

        logger.info("Message received from %s: %r", inbound.user_id, inbound.text)
        background_tasks.add_task(process_message, get_relay(), inbound.user_id, inbound.text)
        return "OK"

    return app


__all__ = ["create_app", "process_message"]
