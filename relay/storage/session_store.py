"""
Durable mapping from a WhatsApp user to the assistant thread of their
current conversation.
"""

from __future__ import annotations

import json
import time
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError
from redis.exceptions import RedisError

from relay.errors import SessionStoreUnavailable
from relay.logging_config import logger
from relay.models import Session

from .backends import SessionBackend

SESSION_KEY_TEMPLATE = "relay:session:{user_id}"
DEFAULT_SESSION_TTL_SECONDS = 12 * 60 * 60

T = TypeVar("T")


def session_key(user_id: str) -> str:
    return SESSION_KEY_TEMPLATE.format(user_id=user_id)


class SessionStore:
    """
    Every read and write goes to the backend; nothing is cached here.

    With `sliding_expiration` enabled a successful read rewrites the session
    with a fresh TTL, otherwise the TTL set at creation is never extended.
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        sliding_expiration: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self.ttl_seconds = ttl_seconds
        self.sliding_expiration = sliding_expiration
        self._clock = clock

    async def _call(self, operation: str, user_id: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        except (RedisError, OSError) as exc:
            logger.error(
                "Session store %s failed for %s: %s", operation, user_id, exc
            )
            raise SessionStoreUnavailable(
                f"Session store unavailable during {operation}"
            ) from exc

    def _decode(self, user_id: str, raw: str) -> Optional[Session]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            try:
                session = Session.model_validate(data)
            except ValidationError:
                logger.warning("Discarding malformed session for %s: %r", user_id, raw)
                return None
            if session.is_expired(self._clock()):
                return None
            return session
        # Bare thread id, as written by plain SETEX deployments.
        now = self._clock()
        return Session(
            user_id=user_id,
            thread_id=raw,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )

    async def _write(self, session: Session, ttl: int, *, only_if_absent: bool = False) -> bool:
        key = session_key(session.user_id)
        payload = session.model_dump_json()
        return await self._call(
            "write",
            session.user_id,
            lambda: self._backend.set(key, payload, ttl, only_if_absent=only_if_absent),
        )

    def _ttl(self, ttl: Optional[int]) -> int:
        if ttl is None:
            return self.ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        return ttl

    def _new_session(self, user_id: str, thread_id: str, ttl: int) -> Session:
        now = self._clock()
        return Session(
            user_id=user_id, thread_id=thread_id, created_at=now, expires_at=now + ttl
        )

    async def get_session(self, user_id: str) -> Optional[Session]:
        try:
            raw = await self._call(
                "read", user_id, lambda: self._backend.get(session_key(user_id))
            )
        except UnicodeDecodeError:
            logger.warning("Discarding undecodable session for %s", user_id)
            return None
        if raw is None:
            return None
        session = self._decode(user_id, raw)
        if session is None:
            return None
        if self.sliding_expiration:
            session = session.model_copy(
                update={"expires_at": self._clock() + self.ttl_seconds}
            )
            await self._write(session, self.ttl_seconds)
        return session

    async def get(self, user_id: str) -> Optional[str]:
        session = await self.get_session(user_id)
        return session.thread_id if session else None

    async def put(self, user_id: str, thread_id: str, ttl: Optional[int] = None) -> Session:
        """
        Install or overwrite the mapping, expiring `ttl` seconds from now.
        """
        ttl = self._ttl(ttl)
        session = self._new_session(user_id, thread_id, ttl)
        await self._write(session, ttl)
        return session

    async def put_if_absent(
        self, user_id: str, thread_id: str, ttl: Optional[int] = None
    ) -> str:
        """
        Atomically install the mapping only when no live session exists.

        Returns the thread id that owns the session afterwards: `thread_id`
        when the write won, otherwise the one installed concurrently.
        """
        ttl = self._ttl(ttl)
        session = self._new_session(user_id, thread_id, ttl)
        if await self._write(session, ttl, only_if_absent=True):
            return thread_id
        existing = await self.get(user_id)
        if existing is None:
            # The competing session lapsed between the two calls.
            await self._write(session, ttl)
            return thread_id
        return existing


__all__ = ["SESSION_KEY_TEMPLATE", "DEFAULT_SESSION_TTL_SECONDS", "SessionStore", "session_key"]
