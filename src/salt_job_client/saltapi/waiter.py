"""Bounded wait loop for Salt jobs.

Polls a job on a fixed interval until every targeted minion has reported or
the attempt budget runs out. Running out of attempts is not an error: the
last observed status is returned, tagged so callers can tell it apart from a
confirmed completion.
"""

import asyncio
import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

import structlog

from .types import JobStatus

logger = structlog.get_logger(__name__)

J = TypeVar("J")

Poller: TypeAlias = Callable[[J], Awaitable[JobStatus]]
Sleeper: TypeAlias = Callable[[float], Awaitable[object]]

DEFAULT_WAIT_TRIES = 3
DEFAULT_WAIT_SECONDS = 10.0


class WaitOutcome(enum.Enum):
    """Terminal state of a wait loop."""

    DONE = "done"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class WaitResult:
    """Last observed job status and how the wait loop ended."""

    status: JobStatus
    outcome: WaitOutcome
    attempts: int

    @property
    def complete(self) -> bool:
        return self.outcome is WaitOutcome.DONE


class JobWaiter(Generic[J]):
    """Drives a poll function until the job completes or attempts run out.

    Polls are strictly sequential. A failing poll aborts the loop and its
    exception propagates unchanged; only an incomplete status is retried.
    """

    def __init__(
        self,
        poll: Poller[J],
        max_attempts: int = DEFAULT_WAIT_TRIES,
        interval: float = DEFAULT_WAIT_SECONDS,
        sleep: Sleeper = asyncio.sleep,
        on_attempt: Callable[[int, JobStatus], None] | None = None,
    ):
        """Initialize the waiter.

        Args:
            poll: Coroutine function fetching the current status of a job.
            max_attempts: Maximum number of polls per wait.
            interval: Seconds to sleep between polls.
            sleep: Coroutine function used for the inter-poll delay.
            on_attempt: Optional hook called with the attempt number and
                status after every successful poll.

        Raises:
            ValueError: If max_attempts or interval is not positive.
        """
        if max_attempts <= 0:
            msg = "max_attempts must be positive"
            raise ValueError(msg)
        if interval <= 0:
            msg = "interval must be positive"
            raise ValueError(msg)

        self._poll = poll
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep
        self._on_attempt = on_attempt

    async def wait(self, job: J) -> WaitResult:
        """Poll ``job`` until it completes or the attempt budget is spent.

        Args:
            job: Job reference handed to the poll function on every attempt.

        Returns:
            WaitResult with outcome DONE if the job completed, EXHAUSTED with
            the last (incomplete) status otherwise.
        """
        attempts = 0
        while True:
            status = await self._poll(job)
            attempts += 1
            if self._on_attempt is not None:
                self._on_attempt(attempts, status)

            if status.is_complete:
                logger.debug("Job complete", attempts=attempts)
                return WaitResult(status, WaitOutcome.DONE, attempts)

            if attempts >= self.max_attempts:
                logger.info(
                    "Gave up waiting for job",
                    attempts=attempts,
                    expected=len(status.minions),
                    reported=len(status.result),
                )
                return WaitResult(status, WaitOutcome.EXHAUSTED, attempts)

            await self._sleep(self.interval)
