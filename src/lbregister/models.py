"""Wire models for the ``PUT /port`` registration contract.

The load balancer accepts one of two mutually exclusive payload shapes:

  - origin variant: ``{"origin": "http://host:port"}``
  - port variant:   ``{"number": 8081}``

and answers ``{"message": ..., "current_numbers": [...]}`` on success, or an
error body that may carry an ``error`` field.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

FALLBACK_ERROR_MESSAGE = "Failed to register port"


class RegistrationVariant(str, Enum):
    """Which address identifier is sent to the load balancer.

    Attributes:
        ORIGIN: Full origin string (scheme + host + port).
        PORT: Numeric port only.
    """

    ORIGIN = "origin"
    PORT = "port"


class RegistrationState(str, Enum):
    """Lifecycle of the single registration attempt."""

    PENDING = "pending"
    DONE = "done"


class RegistrationError(Exception):
    """Raised when the registration request fails.

    ``reason`` is the human-readable failure reason: either the backend's
    structured ``error`` field or :data:`FALLBACK_ERROR_MESSAGE`.
    """

    def __init__(self, reason: str = FALLBACK_ERROR_MESSAGE, status_code: Optional[int] = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class LocalPreconditionError(RegistrationError):
    """No usable address identifier; nothing was sent."""


class RegistrationRequest(BaseModel):
    """Payload of a single registration. Exactly one field is set."""

    model_config = ConfigDict(frozen=True)

    origin: Optional[str] = Field(default=None, description="Full URL origin")
    number: Optional[int] = Field(default=None, description="Numeric port")

    @model_validator(mode="after")
    def _exactly_one(self) -> "RegistrationRequest":
        if (self.origin is None) == (self.number is None):
            raise ValueError("exactly one of 'origin' or 'number' must be set")
        return self

    @classmethod
    def for_origin(cls, origin: str) -> "RegistrationRequest":
        return cls(origin=origin)

    @classmethod
    def for_port(cls, number: int) -> "RegistrationRequest":
        return cls(number=number)

    @property
    def variant(self) -> RegistrationVariant:
        return RegistrationVariant.ORIGIN if self.origin is not None else RegistrationVariant.PORT

    @property
    def identifier(self) -> Union[str, int]:
        return self.origin if self.origin is not None else self.number

    def payload(self) -> dict[str, Any]:
        """JSON body containing only the field that is set."""
        return self.model_dump(exclude_none=True)


class RegistrationResponse(BaseModel):
    """Success body returned by the load balancer.

    Attributes:
        message: Human-readable confirmation.
        current_numbers: Addresses currently known to the backend, in order.
            Ports in the numeric contract, origin strings in the origin one.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    message: str
    current_numbers: list[Union[int, str]] = Field(default_factory=list)


class RegistrationOutcome(BaseModel):
    """Terminal result of :func:`lbregister.client.register_self`."""

    state: RegistrationState = RegistrationState.DONE
    succeeded: bool = False
    request: Optional[RegistrationRequest] = None
    response: Optional[RegistrationResponse] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.succeeded

    @property
    def failed(self) -> bool:
        return not self.succeeded

    @classmethod
    def success(cls, request: RegistrationRequest, response: RegistrationResponse) -> "RegistrationOutcome":
        return cls(succeeded=True, request=request, response=response)

    @classmethod
    def failure(cls, error: str, request: Optional[RegistrationRequest] = None) -> "RegistrationOutcome":
        return cls(succeeded=False, request=request, error=error)
