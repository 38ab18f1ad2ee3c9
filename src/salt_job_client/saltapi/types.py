"""Response types for the Salt REST API.

Pydantic models for the first element of the ``return`` envelope of each
endpoint. Only the fields that drive the session and job lifecycle are
declared; everything else the server sends is kept as extra data.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

# 9999-12-31T23:59:59Z, the largest instant a datetime can hold
MAX_EXPIRE = 253402300799


class AuthResult(BaseModel):
    """Login result from ``POST /login``.

    ``expire`` is the absolute expiry in seconds since the epoch, exactly as
    returned by the server.
    """

    model_config = ConfigDict(extra="allow")

    token: str = Field(min_length=1)
    expire: float = Field(ge=0, le=MAX_EXPIRE, allow_inf_nan=False)

    # Informational fields returned by rest_cherrypy
    start: float | None = None
    user: str | None = None
    eauth: str | None = None
    perms: list[Any] | None = None

    @property
    def expires_at(self) -> datetime:
        """Token expiry as a timezone-aware UTC datetime."""
        return datetime.fromtimestamp(self.expire, tz=timezone.utc)


class JobHandle(BaseModel):
    """Job metadata returned by ``POST /minions``."""

    model_config = ConfigDict(extra="allow")

    jid: str = Field(min_length=1)
    minions: list[str] = Field(default_factory=list)


class JobStatus(BaseModel):
    """Job state returned by ``GET /jobs/{jid}``.

    ``minions`` lists the targets expected to report and ``result`` maps each
    minion that has reported to its return value.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    minions: list[str] = Field(default_factory=list, alias="Minions")
    result: dict[str, Any] = Field(default_factory=dict, alias="Result")

    @field_validator("minions", "result", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        # The job cache reports null before any minion has returned
        if value is None:
            return [] if info.field_name == "minions" else {}
        return value

    @property
    def is_complete(self) -> bool:
        """Whether every expected minion has reported.

        Compares counts only: a result keyed by minions that were not
        targeted still counts. A job with no targeted minions is never
        complete.
        """
        return bool(self.minions) and len(self.result) == len(self.minions)
