"""
Obtain the conversation thread for a user, creating one when the user has
no live session.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

from relay.assistant import AssistantsClient
from relay.logging_config import logger
from relay.models import ProvisionResult
from relay.storage import SessionStore


class UserLocks:
    """
    asyncio.Lock per user id; a lock is dropped once nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(user_id, (asyncio.Lock(), 0))
        self._locks[user_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[user_id]
            if users <= 1:
                del self._locks[user_id]
            else:
                self._locks[user_id] = (lock, users - 1)


class ThreadProvisioner:
    def __init__(
        self,
        store: SessionStore,
        assistants: AssistantsClient,
        *,
        locking: bool = True,
    ) -> None:
        self._store = store
        self._assistants = assistants
        self._locking = locking
        self._locks = UserLocks()

    async def provision(self, user_id: str) -> ProvisionResult:
        if not self._locking:
            return await self._provision(user_id)
        async with self._locks.hold(user_id):
            return await self._provision(user_id)

    async def _provision(self, user_id: str) -> ProvisionResult:
        logger.info("Looking up thread for %s", user_id)
        thread_id = await self._store.get(user_id)
        if thread_id:
            logger.info("Continuing conversation for %s on thread %s", user_id, thread_id)
            return ProvisionResult(thread_id=thread_id, is_new=False)

        logger.info("No live thread for %s; creating a new one", user_id)
        created = await self._assistants.create_thread()
        logger.info("Created thread %s", created)

        if not self._locking:
            await self._store.put(user_id, created)
            logger.info(
                "Saved thread %s for %s with %ss expiry",
                created,
                user_id,
                self._store.ttl_seconds,
            )
            return ProvisionResult(thread_id=created, is_new=True)

        owner = await self._store.put_if_absent(user_id, created)
        if owner != created:
            # Another worker installed a session first; its thread wins.
            logger.warning(
                "Thread %s for %s lost the race to %s and is orphaned",
                created,
                user_id,
                owner,
            )
            return ProvisionResult(thread_id=owner, is_new=False)
        logger.info(
            "Saved thread %s for %s with %ss expiry", created, user_id, self._store.ttl_seconds
        )
        return ProvisionResult(thread_id=created, is_new=True)


__all__ = ["ThreadProvisioner", "UserLocks"]
