"""Salt REST API client.

Provides an asyncio HTTP client with token authentication, optional
automatic token renewal, command dispatch and bounded job waiting. Every
response is classified and unwrapped by :mod:`.response`.
"""

import asyncio
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeAlias, TypeVar
from urllib.parse import quote

import httpx
import pydantic
import structlog
from prometheus_client import CollectorRegistry

from ..metrics import ClientMetrics
from ..session import Credentials, Session
from .errors import (
    BadCredentials,
    InvalidJobReference,
    MalformedResponse,
    SaltApiError,
    TokenAlreadyExpired,
    Unauthorized,
    UnsupportedBatchPoll,
)
from .response import HTTP_UNAUTHORIZED, normalize_response
from .types import AuthResult, JobHandle, JobStatus
from .waiter import DEFAULT_WAIT_SECONDS, DEFAULT_WAIT_TRIES, JobWaiter, WaitResult

logger = structlog.get_logger(__name__)

DEFAULT_EAUTH = "pam"

DEFAULT_TIMEOUT = 30.0

# Salt's compound matcher; target expressions are passed through unchecked.
TARGET_TYPE = "compound"

JobRef: TypeAlias = str | JobHandle | Mapping[str, Any]

M = TypeVar("M", bound=pydantic.BaseModel)


class SaltApiClient:
    """HTTP client for the Salt REST API.

    Holds one :class:`~salt_job_client.session.Session`. ``authenticate``
    must succeed before ``start``, ``poll`` or ``wait`` can be used. Can be
    used as an async context manager; leaving it drops the session and
    closes the HTTP connection pool.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        token_expire: datetime | None = None,
        renewal: asyncio.Task | None = None,
        auto_renew: bool = False,
        wait_tries: int = DEFAULT_WAIT_TRIES,
        wait_seconds: float = DEFAULT_WAIT_SECONDS,
        debug: bool = False,
        eauth: str = DEFAULT_EAUTH,
        timeout: float = DEFAULT_TIMEOUT,
        registry: CollectorRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the REST API client.

        Args:
            url: Base URL of the Salt REST API (e.g., "https://salt:8000").
            token: Token of a resumed session.
            token_expire: Expiry of the resumed token.
            renewal: Renewal task already armed for the resumed token.
            auto_renew: Re-authenticate automatically when the token expires.
            wait_tries: Maximum polls per ``wait`` call (default: 3).
            wait_seconds: Seconds between polls while waiting (default: 10).
            debug: Emit verbose diagnostic log events.
            eauth: External authentication backend (default: pam).
            timeout: Request timeout in seconds (default: 30.0).
            registry: Prometheus registry for client metrics.
            transport: Custom httpx transport, mainly for tests.

        Raises:
            ValueError: If url is empty, a numeric setting is not positive,
                or only one of token and token_expire is given.
        """
        if not url:
            msg = "url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if wait_tries <= 0:
            msg = "wait_tries must be positive"
            raise ValueError(msg)
        if wait_seconds <= 0:
            msg = "wait_seconds must be positive"
            raise ValueError(msg)

        self.url = url.rstrip("/")
        self.eauth = eauth
        self.wait_tries = wait_tries
        self.wait_seconds = wait_seconds
        self.debug = debug
        self._timeout = timeout
        self._transport = transport

        self.session = Session(
            self.url,
            token=token,
            token_expire=token_expire,
            auto_renew=auto_renew,
            renewal=renewal,
        )
        self.metrics = ClientMetrics(registry)

        self._headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._http: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or lazily create the httpx client.

        Redirects are never followed: rest_cherrypy answers some failures
        with a redirect that must surface as an unexpected status.
        """
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.url,
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=False,
                transport=self._transport,
            )
        return self._http

    @property
    def token(self) -> str | None:
        return self.session.token

    @property
    def token_expire(self) -> datetime | None:
        return self.session.token_expire

    async def __aenter__(self) -> "SaltApiClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and cleanup resources."""
        await self.aclose()

    async def aclose(self) -> None:
        """Drop the session and close the HTTP client if open."""
        self.deauthenticate()
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()

    def _trace(self, event: str, **kw: Any) -> None:
        if self.debug:
            logger.info(event, **kw)

    async def _call(
        self,
        operation: str,
        method: str,
        endpoint: str,
        model: type[M],
        unauthorized: type[SaltApiError] = Unauthorized,
        **kwargs: Any,
    ) -> M:
        """Make an HTTP request and return its validated envelope payload.

        Logs request details and duration, and records the outcome in the
        client metrics.

        Args:
            operation: Short operation name for logs and metrics.
            method: HTTP method.
            endpoint: API endpoint path (e.g., "/minions").
            model: Pydantic model the envelope payload is validated into.
            unauthorized: Exception type raised on HTTP 401.
            **kwargs: Passed through to ``httpx.AsyncClient.request``.

        Returns:
            The validated payload.

        Raises:
            httpx.HTTPError: If the HTTP request itself fails.
            SaltApiError: If the response is rejected by the normalizer.
        """
        start_time = time.time()
        outcome = "success"
        try:
            logger.debug("Making API request", method=method, endpoint=endpoint)
            response = await self.client.request(method, endpoint, **kwargs)
            logger.debug(
                "API request completed",
                status_code=response.status_code,
                duration_seconds=round(time.time() - start_time, 3),
            )

            if response.status_code == HTTP_UNAUTHORIZED:
                raise unauthorized()
            payload = normalize_response(response, model.model_validate)
            if not isinstance(payload, model):
                msg = (
                    "Malformed response from server: expected JSON, got "
                    f"{response.headers.get('Content-Type')!r}"
                )
                raise MalformedResponse(msg)
            return payload

        except httpx.HTTPError:
            outcome = "transport_error"
            logger.exception(
                "API request failed",
                endpoint=endpoint,
                duration_seconds=round(time.time() - start_time, 3),
            )
            raise
        except SaltApiError as err:
            outcome = type(err).__name__
            logger.warning("API request rejected", endpoint=endpoint, error=str(err))
            raise
        finally:
            self.metrics.observe_request(operation, outcome, time.time() - start_time)

    def _auth_headers(self) -> dict[str, str]:
        # The token is captured here; a renewal mid-request does not affect it.
        token = self.session.token
        if not token:
            msg = "No active session, authenticate first"
            raise Unauthorized(msg)
        return {"X-Auth-Token": token}

    async def authenticate(self, username: str, password: str) -> AuthResult:
        """Log in and store the issued token on the session.

        With auto-renewal enabled, the credentials are retained and a renewal
        is scheduled for the moment the token expires.

        Args:
            username: Salt external-auth user name.
            password: Password for ``username``.

        Returns:
            The validated login result.

        Raises:
            BadCredentials: If the server rejects the credentials.
            TokenAlreadyExpired: If auto-renewal is enabled and the new token
                is already expired. The token is stored regardless.
            UnexpectedStatus, MalformedJson, MalformedResponse: See
                :func:`.response.normalize_response`.
        """
        auth = await self._call(
            "login",
            "POST",
            "/login",
            AuthResult,
            unauthorized=BadCredentials,
            json={"eauth": self.eauth, "username": username, "password": password},
        )

        self.session.store_token(auth.token, auth.expires_at)
        logger.info(
            "Authenticated",
            user=auth.user or username,
            expires_at=auth.expires_at.isoformat(),
        )
        self._trace("Login result", eauth=auth.eauth, perms=auth.perms, start=auth.start)

        if self.session.auto_renew:
            self.session.retain_credentials(
                Credentials(username=username, password=pydantic.SecretStr(password)),
            )
            expires_in = self.session.seconds_until_expiry()
            if expires_in is None or expires_in <= 0:
                raise TokenAlreadyExpired(expires_in or 0.0)
            self.session.arm_renewal(expires_in, self._renew)
            self._trace("Login auto renewal scheduled", renew_in_seconds=round(expires_in, 3))

        return auth

    async def _renew(self) -> None:
        credentials = self.session.credentials
        if credentials is None:
            return
        try:
            await self.authenticate(
                credentials.username,
                credentials.password.get_secret_value(),
            )
        except (SaltApiError, httpx.HTTPError):
            self.metrics.renewals.labels(outcome="failure").inc()
            logger.exception("Token renewal failed", user=credentials.username)
            return
        self.metrics.renewals.labels(outcome="success").inc()

    def deauthenticate(self) -> None:
        """Forget the session locally.

        Cancels any pending renewal and clears token, expiry and retained
        credentials. No request is made. Safe to call without a session.
        """
        was_authenticated = self.session.is_authenticated
        self.session.clear()
        if was_authenticated:
            logger.info("Deauthenticated")

    async def start(
        self,
        target: str = "*",
        command: str = "test.ping",
        args: list[Any] | None = None,
        kwargs: dict[str, Any] | None = None,
    ) -> JobHandle:
        """Dispatch a command to the minions matching a compound target.

        Args:
            target: Compound target expression.
            command: Salt execution function (e.g., "cmd.run").
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.

        Returns:
            Handle of the started job.

        Raises:
            Unauthorized: Without an active session, or on HTTP 401.
            UnexpectedStatus, MalformedJson, MalformedResponse: See
                :func:`.response.normalize_response`.
        """
        headers = self._auth_headers()
        self._trace("Start", target=target, command=command, args=args, kwargs=kwargs)

        body: dict[str, Any] = {"tgt_type": TARGET_TYPE, "tgt": target, "fun": command}
        if args is not None:
            body["arg"] = args
        if kwargs is not None:
            body["kwarg"] = kwargs

        job = await self._call("start", "POST", "/minions", JobHandle, headers=headers, json=body)
        logger.info("Started job", jid=job.jid, command=command, minions=len(job.minions))
        return job

    @staticmethod
    def job_id(job: JobRef) -> str:
        """Extract the job ID from a poll target.

        Args:
            job: A JID string, a JobHandle, or a mapping with a ``jid`` key.

        Returns:
            The non-empty job ID.

        Raises:
            UnsupportedBatchPoll: If ``job`` is a collection of references.
            InvalidJobReference: If no non-empty string JID can be found.
        """
        if isinstance(job, (list, tuple, set, frozenset)):
            raise UnsupportedBatchPoll
        if isinstance(job, JobHandle):
            jid = job.jid
        elif isinstance(job, Mapping):
            jid = job.get("jid")
        else:
            jid = job
        if not isinstance(jid, str) or not jid:
            msg = f"Not a proper job reference: {job!r}"
            raise InvalidJobReference(msg)
        return jid

    async def poll(self, job: JobRef) -> JobStatus:
        """Fetch the current status of a job once.

        Args:
            job: A JID string, a JobHandle, or a mapping with a ``jid`` key.

        Returns:
            Validated job status.

        Raises:
            UnsupportedBatchPoll, InvalidJobReference: Before any request,
                see :meth:`job_id`.
            Unauthorized: Without an active session, or on HTTP 401.
            UnexpectedStatus, MalformedJson, MalformedResponse: See
                :func:`.response.normalize_response`.
        """
        jid = self.job_id(job)
        headers = self._auth_headers()
        endpoint = f"/jobs/{quote(jid, safe='')}"
        return await self._call("poll", "GET", endpoint, JobStatus, headers=headers)

    async def wait(self, job: JobRef) -> WaitResult:
        """Poll a job until it completes or ``wait_tries`` polls were made.

        Args:
            job: A JID string, a JobHandle, or a mapping with a ``jid`` key.

        Returns:
            WaitResult holding the last status and whether the job completed
            or the attempts ran out.

        Raises:
            Any error raised by :meth:`poll`; polling stops on the first one.
        """
        waiter = JobWaiter(
            self.poll,
            max_attempts=self.wait_tries,
            interval=self.wait_seconds,
            on_attempt=self._trace_attempt,
        )
        result = await waiter.wait(job)
        self.metrics.waits.labels(outcome=result.outcome.value).inc()
        return result

    def _trace_attempt(self, attempt: int, status: JobStatus) -> None:
        self._trace(
            "Wait poll",
            attempt=attempt,
            expected=len(status.minions),
            reported=len(status.result),
        )
