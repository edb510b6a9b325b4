"""
FastAPI dependencies and the process-wide objects behind them.

The HTTP client, the session backend and the relay itself are created
lazily and shared by every request: messages are processed in background
tasks that outlive the request, and the per-user provisioning locks only
work when every request sees the same provisioner.
"""

from __future__ import annotations

from typing import Optional

import httpx
from .assistant import AssistantsClient
from .conversation import (
    ConversationRelay,
    MessageSubmitter,
    PollingPolicy,
    ResponseExtractor,
    RunOrchestrator,
    ThreadProvisioner,
)
from .redis_client import close_redis_client, get_redis_client
from .settings import Settings, build_openai_headers, settings
from .storage import MemorySessionBackend, RedisSessionBackend, SessionBackend, SessionStore
from .whatsapp import WhatsAppSender

_http_client: Optional[httpx.AsyncClient] = None
_relay: Optional[ConversationRelay] = None


def get_settings() -> Settings:
    return settings


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    return _http_client


def build_session_backend(config: Settings) -> SessionBackend:
    backend = config.session_backend.strip().lower()
    if backend == "memory":
        return MemorySessionBackend(max_entries=config.session_memory_max_entries)
    if backend == "redis":
        return RedisSessionBackend(get_redis_client())
    raise ValueError(f"Unknown SESSION_BACKEND {config.session_backend!r}")


def build_relay(
    config: Settings,
    client: httpx.AsyncClient,
    backend: SessionBackend,
) -> ConversationRelay:
    """
    Wire the conversation components for the given configuration.
    """
    assistants = AssistantsClient(
        client,
        base_url=config.openai_base_url,
        headers=build_openai_headers(config),
        assistant_id=config.openai_assistant_id or "",
        timeout=config.http_timeout_seconds,
        poll_timeout=config.poll_timeout_seconds,
    )
    store = SessionStore(
        backend,
        ttl_seconds=config.session_ttl_seconds,
        sliding_expiration=config.session_sliding_expiration,
    )
    sender = WhatsAppSender(
        client,
        token=config.whatsapp_token or "",
        phone_id=config.whatsapp_phone_id or "",
        graph_url=config.whatsapp_graph_url,
        timeout=config.http_timeout_seconds,
    )
    return ConversationRelay(
        config=config,
        provisioner=ThreadProvisioner(store, assistants, locking=config.provision_locking),
        submitter=MessageSubmitter(assistants),
        orchestrator=RunOrchestrator(assistants, PollingPolicy.from_settings(config)),
        extractor=ResponseExtractor(assistants),
        sender=sender,
    )


def get_relay() -> ConversationRelay:
    global _relay
    if _relay is None:
        _relay = build_relay(settings, get_http_client(), build_session_backend(settings))
    return _relay


async def shutdown() -> None:
    global _http_client, _relay
    _relay = None
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    await close_redis_client()


__all__ = [
    "get_settings",
    "get_http_client",
    "build_session_backend",
    "build_relay",
    "get_relay",
    "shutdown",
]
