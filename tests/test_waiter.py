"""Tests for the bounded wait loop, driven by a stub poll function."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from salt_job_client.saltapi import errors, types, waiter

INCOMPLETE = {"Minions": ["m1", "m2"], "Result": {"m1": True}}
COMPLETE = {"Minions": ["m1", "m2"], "Result": {"m1": True, "m2": True}}


def _statuses(*raw: dict) -> list[types.JobStatus]:
    return [types.JobStatus.model_validate(r) for r in raw]


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.mark.asyncio
async def test_complete_on_first_poll_returns_done(sleep: AsyncMock):
    """A complete first status ends the loop without sleeping."""
    poll = AsyncMock(side_effect=_statuses(COMPLETE))
    job_waiter = waiter.JobWaiter(poll, max_attempts=3, interval=10, sleep=sleep)

    result = await job_waiter.wait("20230101120000123456")

    assert result.outcome is waiter.WaitOutcome.DONE
    assert result.complete
    assert result.attempts == 1
    poll.assert_awaited_once_with("20230101120000123456")
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_completes_after_retries(sleep: AsyncMock):
    """Incomplete statuses are retried until one is complete."""
    poll = AsyncMock(side_effect=_statuses(INCOMPLETE, INCOMPLETE, COMPLETE))
    job_waiter = waiter.JobWaiter(poll, max_attempts=5, interval=2.5, sleep=sleep)

    result = await job_waiter.wait("jid")

    assert result.complete
    assert result.attempts == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(2.5)


@pytest.mark.asyncio
async def test_exhaustion_returns_last_status_after_exactly_max_polls(sleep: AsyncMock):
    """Three incomplete polls resolve with the third status and no fourth poll."""
    statuses = _statuses(
        {"Minions": ["m1", "m2"], "Result": {}},
        {"Minions": ["m1", "m2"], "Result": {}},
        INCOMPLETE,
        COMPLETE,
    )
    poll = AsyncMock(side_effect=statuses)
    job_waiter = waiter.JobWaiter(poll, max_attempts=3, interval=10, sleep=sleep)

    result = await job_waiter.wait("jid")

    assert result.outcome is waiter.WaitOutcome.EXHAUSTED
    assert not result.complete
    assert result.status is statuses[2]
    assert result.attempts == 3
    assert poll.await_count == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_single_attempt_budget_never_sleeps(sleep: AsyncMock):
    """With a budget of one, an incomplete status is returned immediately."""
    poll = AsyncMock(side_effect=_statuses(INCOMPLETE))
    job_waiter = waiter.JobWaiter(poll, max_attempts=1, interval=10, sleep=sleep)

    result = await job_waiter.wait("jid")

    assert result.outcome is waiter.WaitOutcome.EXHAUSTED
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_poll_error_aborts_without_retry(sleep: AsyncMock):
    """A failing poll propagates immediately; errors are never retried."""
    poll = AsyncMock(side_effect=[*_statuses(INCOMPLETE), errors.Unauthorized()])
    job_waiter = waiter.JobWaiter(poll, max_attempts=5, interval=10, sleep=sleep)

    with pytest.raises(errors.Unauthorized):
        await job_waiter.wait("jid")

    assert poll.await_count == 2
    assert sleep.await_count == 1


@pytest.mark.asyncio
async def test_on_attempt_hook_sees_every_status(sleep: AsyncMock):
    """The attempt hook is called once per successful poll, in order."""
    statuses = _statuses(INCOMPLETE, COMPLETE)
    hook = MagicMock()
    job_waiter = waiter.JobWaiter(
        AsyncMock(side_effect=statuses),
        max_attempts=3,
        interval=1,
        sleep=sleep,
        on_attempt=hook,
    )

    await job_waiter.wait("jid")

    assert [c.args for c in hook.call_args_list] == [(1, statuses[0]), (2, statuses[1])]


@pytest.mark.parametrize(("max_attempts", "interval"), [(0, 10), (-1, 10), (3, 0), (3, -1)])
def test_rejects_non_positive_budget(max_attempts: int, interval: float):
    with pytest.raises(ValueError, match="must be positive"):
        waiter.JobWaiter(AsyncMock(), max_attempts=max_attempts, interval=interval)
