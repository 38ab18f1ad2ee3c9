"""Session state for the Salt REST API client.

Holds the token, its expiry, the credentials retained for auto-renewal and
the single pending renewal task. The client owns exactly one Session and
mutates it only through :meth:`Session.store_token` and
:meth:`Session.clear`, so token and expiry are always set together.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import pydantic
import structlog

logger = structlog.get_logger(__name__)


class Credentials(pydantic.BaseModel):
    """Login credentials kept for the lifetime of an auto-renewing session.

    The password is wrapped in :class:`pydantic.SecretStr` so it never shows
    up in reprs or log events.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    username: str
    password: pydantic.SecretStr


class Session:
    """Authentication state of one client instance."""

    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        token_expire: datetime | None = None,
        auto_renew: bool = False,
        renewal: asyncio.Task | None = None,
    ):
        """Initialize the session.

        Args:
            endpoint: Base URL of the Salt REST API.
            token: Previously issued token, to resume a session.
            token_expire: Expiry of ``token``; required if ``token`` is given.
            auto_renew: Re-authenticate automatically when the token expires.
            renewal: Renewal task already armed for the resumed token.

        Raises:
            ValueError: If only one of ``token`` and ``token_expire`` is given.
        """
        if (token is None) != (token_expire is None):
            msg = "token and token_expire must be given together"
            raise ValueError(msg)

        self.endpoint = endpoint
        self.auto_renew = auto_renew
        self._token = token
        self._token_expire = token_expire
        self._renewal = renewal
        self._credentials: Credentials | None = None

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def token_expire(self) -> datetime | None:
        return self._token_expire

    @property
    def renewal(self) -> asyncio.Task | None:
        return self._renewal

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def seconds_until_expiry(self, now: datetime | None = None) -> float | None:
        """Seconds left before the token expires, or None without a token."""
        if self._token_expire is None:
            return None
        now = now or datetime.now(tz=timezone.utc)
        return (self._token_expire - now).total_seconds()

    def store_token(self, token: str, token_expire: datetime) -> None:
        """Replace the token and its expiry in one step."""
        self._token = token
        self._token_expire = token_expire

    def retain_credentials(self, credentials: Credentials) -> None:
        self._credentials = credentials

    def arm_renewal(
        self,
        delay: float,
        renew: Callable[[], Awaitable[object]],
    ) -> asyncio.Task:
        """Schedule a single-shot renewal, replacing any pending one.

        The previous renewal task is cancelled unless it is the task doing the
        arming, which happens when a renewal re-authenticates and re-arms.

        Args:
            delay: Seconds to wait before calling ``renew``.
            renew: Coroutine function performing the renewal.

        Returns:
            The newly created renewal task.
        """
        self._cancel_renewal()

        async def _fire() -> None:
            await asyncio.sleep(delay)
            await renew()

        self._renewal = asyncio.create_task(_fire(), name="salt_token_renewal")
        logger.debug("Armed token renewal", delay_seconds=round(delay, 3))
        return self._renewal

    def _cancel_renewal(self) -> None:
        task = self._renewal
        self._renewal = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            # No running event loop
            current = None
        if task is not current:
            task.cancel()
            logger.debug("Cancelled pending token renewal")

    def clear(self) -> None:
        """Cancel any renewal and forget the token, expiry and credentials.

        Safe to call repeatedly.
        """
        self._cancel_renewal()
        self._token = None
        self._token_expire = None
        self._credentials = None
