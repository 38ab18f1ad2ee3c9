"""Tests for session state and renewal task ownership."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pydantic
import pytest

from salt_job_client import session

URL = "http://salt.example:8000"


def _expiry(seconds: float) -> datetime:
    return datetime.now(tz=timezone.utc) + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Token and expiry invariant
# ---------------------------------------------------------------------------


def test_new_session_is_unauthenticated():
    s = session.Session(URL)
    assert s.token is None
    assert s.token_expire is None
    assert s.renewal is None
    assert not s.is_authenticated


def test_resumed_session_keeps_token_and_expiry():
    expire = _expiry(60)
    s = session.Session(URL, token="abc", token_expire=expire)
    assert s.is_authenticated
    assert s.token_expire == expire


@pytest.mark.parametrize(
    ("token", "token_expire"),
    [("abc", None), (None, datetime(2030, 1, 1, tzinfo=timezone.utc))],
)
def test_token_without_expiry_is_rejected(token, token_expire):
    """A session never holds a token without its expiry or vice versa."""
    with pytest.raises(ValueError, match="together"):
        session.Session(URL, token=token, token_expire=token_expire)


def test_seconds_until_expiry():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    s = session.Session(URL, token="t", token_expire=now + timedelta(seconds=90))
    assert s.seconds_until_expiry(now) == 90.0
    assert session.Session(URL).seconds_until_expiry(now) is None


def test_clear_is_idempotent():
    """Clearing twice leaves everything empty and does not raise."""
    s = session.Session(URL, token="t", token_expire=_expiry(60))
    s.retain_credentials(session.Credentials(username="u", password="p"))

    s.clear()
    s.clear()

    assert s.token is None
    assert s.token_expire is None
    assert s.renewal is None
    assert s.credentials is None


def test_credentials_hide_password():
    creds = session.Credentials(username="saltdev", password="hunter2")
    assert "hunter2" not in repr(creds)
    assert creds.password.get_secret_value() == "hunter2"
    assert isinstance(creds.password, pydantic.SecretStr)


# ---------------------------------------------------------------------------
# Renewal task
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_renewal_fires_after_delay():
    s = session.Session(URL)
    renew = AsyncMock()

    task = s.arm_renewal(0.01, renew)
    await task

    renew.assert_awaited_once()


@pytest.mark.asyncio
async def test_arming_cancels_previous_renewal():
    """Only one renewal is ever pending."""
    s = session.Session(URL)
    first = s.arm_renewal(3600, AsyncMock())
    second = s.arm_renewal(3600, AsyncMock())

    await asyncio.sleep(0)

    assert first.cancelled()
    assert not second.done()
    assert s.renewal is second
    s.clear()


@pytest.mark.asyncio
async def test_renewal_can_rearm_itself():
    """A renewal that arms its successor is not cancelled by doing so."""
    s = session.Session(URL)
    successors: list[asyncio.Task] = []

    async def renew():
        successors.append(s.arm_renewal(3600, AsyncMock()))

    first = s.arm_renewal(0.01, renew)
    await first

    assert not first.cancelled()
    assert s.renewal is successors[0]
    assert not successors[0].done()
    s.clear()


@pytest.mark.asyncio
async def test_clear_cancels_pending_renewal():
    """No renewal outlives the session."""
    s = session.Session(URL, token="t", token_expire=_expiry(3600))
    renew = AsyncMock()
    task = s.arm_renewal(3600, renew)

    s.clear()
    await asyncio.sleep(0)

    assert task.cancelled()
    assert s.renewal is None
    renew.assert_not_awaited()
