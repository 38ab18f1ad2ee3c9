"""Salt REST API client package.

Provides an asyncio HTTP client for the Salt REST API that authenticates,
dispatches commands and waits for jobs, returning pydantic-validated
payloads unwrapped from the API's ``return`` envelope.

Exports:
    SaltApiClient: HTTP client with session management and job waiting.
    JobWaiter, WaitResult, WaitOutcome: Bounded wait loop and its result.
    types: Module containing Pydantic models for API responses.
    Exception classes: The client's error taxonomy rooted at SaltApiError.
"""

from . import types
from .client import DEFAULT_EAUTH, DEFAULT_TIMEOUT, SaltApiClient
from .errors import (
    BadCredentials,
    InvalidJobReference,
    MalformedJson,
    MalformedResponse,
    SaltApiError,
    TokenAlreadyExpired,
    Unauthorized,
    UnexpectedStatus,
    UnsupportedBatchPoll,
)
from .types import AuthResult, JobHandle, JobStatus
from .waiter import (
    DEFAULT_WAIT_SECONDS,
    DEFAULT_WAIT_TRIES,
    JobWaiter,
    WaitOutcome,
    WaitResult,
)

__all__ = [
    "DEFAULT_EAUTH",
    "DEFAULT_TIMEOUT",
    "DEFAULT_WAIT_SECONDS",
    "DEFAULT_WAIT_TRIES",
    "AuthResult",
    "BadCredentials",
    "InvalidJobReference",
    "JobHandle",
    "JobStatus",
    "JobWaiter",
    "MalformedJson",
    "MalformedResponse",
    "SaltApiClient",
    "SaltApiError",
    "TokenAlreadyExpired",
    "Unauthorized",
    "UnexpectedStatus",
    "UnsupportedBatchPoll",
    "WaitOutcome",
    "WaitResult",
    "types",
]
