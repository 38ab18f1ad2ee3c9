"""Exceptions raised by the Salt REST API client."""


class SaltApiError(Exception):
    """Base class for all Salt REST API client errors."""


class BadCredentials(SaltApiError):
    """Raised when the login endpoint rejects the username or password."""

    def __init__(self) -> None:
        super().__init__("Bad username or password")


class Unauthorized(SaltApiError):
    """Raised when a request is rejected for lack of a valid token."""

    def __init__(self, msg: str = "Unauthorized") -> None:
        super().__init__(msg)


class UnexpectedStatus(SaltApiError):
    """Raised for any non-success HTTP status other than 401."""

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Unexpected error, report to admin: {status_code} - {reason}")


class MalformedJson(SaltApiError):
    """Raised when a body declared as JSON cannot be decoded."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed JSON: {detail}")


class MalformedResponse(SaltApiError):
    """Raised when decoded JSON lacks the ``{"return": [...]}`` envelope."""

    def __init__(self, msg: str = "Malformed response from server") -> None:
        super().__init__(msg)


class InvalidJobReference(SaltApiError):
    """Raised when a poll target does not carry a usable job ID."""


class UnsupportedBatchPoll(SaltApiError):
    """Raised when several job IDs are passed to a single poll."""

    def __init__(self) -> None:
        super().__init__("Polling several JIDs at once is not supported")


class TokenAlreadyExpired(SaltApiError):
    """Raised when a freshly issued token is already past its expiry.

    The token is still stored on the session when this is raised.
    """

    def __init__(self, expires_in: float) -> None:
        self.expires_in = expires_in
        super().__init__(f"Token already expired (expires_in={expires_in:.3f}s)")
