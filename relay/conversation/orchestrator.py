"""
Run orchestration: start an assistant run on a thread and poll it until it
reaches a terminal status or the attempt budget runs out.

Timeline with the default policy:

    create run -> sleep 2s -> (sleep 3s, poll) x up to 15

A poll answered with HTTP 429 is followed by an extra cooldown before the
next attempt. Other poll failures are logged and polling continues; one
failed poll never aborts the run. When the budget is spent while the run is
still queued, in progress or cancelling, the outcome is `poll_timeout`.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from pydantic import BaseModel, Field

from relay.assistant import AssistantsClient
from relay.errors import BackendStatusError, RelayError
from relay.logging_config import logger
from relay.models import POLL_TIMEOUT, RunOutcome, is_terminal
from relay.settings import Settings

Sleep = Callable[[float], Awaitable[None]]


class PollingPolicy(BaseModel):
    initial_delay: float = Field(2.0, ge=0, description="Seconds before the first poll")
    interval: float = Field(3.0, ge=0, description="Seconds before every poll")
    max_attempts: int = Field(15, ge=0, description="Poll budget")
    rate_limit_cooldown: float = Field(
        5.0, ge=0, description="Extra seconds to wait after a rate-limited poll"
    )
    rate_limited_poll_counts: bool = Field(
        True, description="Whether a rate-limited poll consumes an attempt"
    )
    max_rate_limited_polls: int = Field(
        15,
        ge=0,
        description="Rate-limited polls allowed outside the budget when they do not count",
    )

    @classmethod
    def from_settings(cls, config: Settings) -> "PollingPolicy":
        return cls(
            initial_delay=config.run_initial_delay_seconds,
            interval=config.run_poll_interval_seconds,
            max_attempts=config.run_max_poll_attempts,
            rate_limit_cooldown=config.run_rate_limit_cooldown_seconds,
            rate_limited_poll_counts=config.run_rate_limited_poll_counts,
            max_rate_limited_polls=config.run_max_rate_limited_polls,
        )

    def worst_case_seconds(self) -> float:
        """Polling time excluding rate-limit cooldowns and request latency."""
        return self.initial_delay + self.max_attempts * self.interval


class RunOrchestrator:
    def __init__(
        self,
        assistants: AssistantsClient,
        policy: PollingPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._assistants = assistants
        self.policy = policy or PollingPolicy()
        self._sleep = sleep

    async def run(self, thread_id: str) -> RunOutcome:
        """
        Create a run on `thread_id` and drive it to an outcome.

        Errors creating the run propagate; errors while polling do not.
        """
        policy = self.policy
        logger.info("Creating run for thread %s", thread_id)
        created = await self._assistants.create_run(thread_id)
        run_id = created.id
        status = created.status
        last_error = created.last_error
        logger.info("Run %s created with initial status %s", run_id, status)

        attempts = 0
        polls = 0
        rate_limited_free = 0

        await self._sleep(policy.initial_delay)

        while not is_terminal(status) and attempts < policy.max_attempts:
            consumes_attempt = True
            logger.info(
                "[%d/%d] Checking run %s (current status: %s)",
                attempts + 1,
                policy.max_attempts,
                run_id,
                status,
            )
            await self._sleep(policy.interval)
            polls += 1
            try:
                current = await self._assistants.get_run(thread_id, run_id)
            except BackendStatusError as exc:
                logger.warning(
                    "Polling run %s failed (poll %d): HTTP %s %s",
                    run_id,
                    polls,
                    exc.status_code,
                    exc,
                )
                if exc.rate_limited:
                    logger.info(
                        "Rate limited while polling run %s; cooling down %.1fs",
                        run_id,
                        policy.rate_limit_cooldown,
                    )
                    await self._sleep(policy.rate_limit_cooldown)
                    if (
                        not policy.rate_limited_poll_counts
                        and rate_limited_free < policy.max_rate_limited_polls
                    ):
                        rate_limited_free += 1
                        consumes_attempt = False
            except RelayError as exc:
                logger.warning("Polling run %s failed (poll %d): %s", run_id, polls, exc)
            else:
                status = current.status
                last_error = current.last_error
                logger.info("Run %s status: %s", run_id, status)
                if is_terminal(status):
                    logger.info("Run %s reached terminal status %s", run_id, status)
            if consumes_attempt:
                attempts += 1

        outcome_status = status if is_terminal(status) else POLL_TIMEOUT
        logger.info(
            "Polling finished for run %s: outcome=%s last_status=%s polls=%d",
            run_id,
            outcome_status,
            status,
            polls,
        )
        return RunOutcome(
            run_id=run_id,
            status=outcome_status,
            last_status=status,
            last_error=last_error,
            attempts=polls,
        )


__all__ = ["PollingPolicy", "RunOrchestrator", "Sleep"]
