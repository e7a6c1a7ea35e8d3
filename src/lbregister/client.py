"""Self-registration client — tells the load balancer where this instance lives.

On startup the application hands its address identifier (origin or port) to
:func:`register_self` or :class:`SelfRegistrationClient`, which:
  1. Checks the identifier is usable; if not, logs and sends nothing.
  2. Sends a single ``PUT`` to the registration endpoint.
  3. Logs the backend's confirmation message, or the failure reason.

Registration is best-effort: failures are logged and returned as an outcome,
never raised, never retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Union

import httpx
import structlog

from lbregister.address import is_valid_identifier
from lbregister.config import RegistrationSettings
from lbregister.models import (
    FALLBACK_ERROR_MESSAGE,
    LocalPreconditionError,
    RegistrationError,
    RegistrationOutcome,
    RegistrationRequest,
    RegistrationResponse,
    RegistrationState,
    RegistrationVariant,
)

logger = structlog.get_logger(__name__)

Identifier = Union[str, int]

_MISSING_IDENTIFIER = {
    RegistrationVariant.ORIGIN: "No origin available",
    RegistrationVariant.PORT: "No port number available",
}

# Strong references to fire-and-forget registrations
_background_tasks: set[asyncio.Task] = set()


def build_request(variant: RegistrationVariant, identifier: Any) -> RegistrationRequest:
    """Build the payload for ``identifier``.

    Raises:
        LocalPreconditionError: If the identifier is empty, zero or of the
            wrong kind for ``variant``.
    """
    variant = RegistrationVariant(variant)
    if not is_valid_identifier(variant, identifier):
        raise LocalPreconditionError(_MISSING_IDENTIFIER[variant])
    try:
        if variant == RegistrationVariant.ORIGIN:
            return RegistrationRequest.for_origin(identifier.strip())
        return RegistrationRequest.for_port(identifier)
    except ValueError as e:
        raise LocalPreconditionError(_MISSING_IDENTIFIER[variant]) from e


def error_reason(response: httpx.Response) -> str:
    """Failure reason from an error response.

    The backend's ``error`` field when the body carries one, otherwise the
    generic fallback message.
    """
    try:
        body = response.json()
    except ValueError:
        return FALLBACK_ERROR_MESSAGE
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return FALLBACK_ERROR_MESSAGE


async def _send(
    http_client: httpx.AsyncClient,
    settings: RegistrationSettings,
    request: RegistrationRequest,
) -> RegistrationResponse:
    """PUT the registration and parse the reply.

    Raises:
        RegistrationError: On transport failure, non-2xx status, or a 2xx
            body that is not a registration response.
    """
    try:
        headers = httpx.Headers(settings.headers)
        # The load balancer keys origin registrations by this header;
        # header values must be ASCII, the body carries the origin either way
        if request.origin is not None and "origin" not in headers and request.origin.isascii():
            headers["Origin"] = request.origin
        response = await http_client.put(
            settings.endpoint_url,
            json=request.payload(),
            headers=headers,
        )
    except (httpx.HTTPError, UnicodeError, RuntimeError) as e:
        # RuntimeError: httpx refuses to send on a closed client
        raise RegistrationError(FALLBACK_ERROR_MESSAGE) from e

    if not response.is_success:
        raise RegistrationError(error_reason(response), status_code=response.status_code)

    try:
        return RegistrationResponse.model_validate(response.json())
    except ValueError as e:
        raise RegistrationError(FALLBACK_ERROR_MESSAGE, status_code=response.status_code) from e


async def register_self(
    identifier: Any,
    *,
    settings: Optional[RegistrationSettings] = None,
    variant: Optional[RegistrationVariant] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RegistrationOutcome:
    """Register this instance's address with the load balancer, once.

    Args:
        identifier: Origin string or port number of this instance.
        settings: Endpoint and payload settings (defaults if omitted).
        variant: Overrides ``settings.variant``.
        http_client: Client to send with. A temporary one is created and
            closed when omitted.

    Returns:
        The settled outcome. Never raises for registration failures.
    """
    settings = settings or RegistrationSettings()
    variant = RegistrationVariant(variant) if variant is not None else settings.variant

    try:
        request = build_request(variant, identifier)
    except LocalPreconditionError as e:
        await logger.aerror("registration_skipped", variant=variant.value, reason=e.reason)
        return RegistrationOutcome.failure(e.reason)

    owns_client = http_client is None
    if owns_client:
        http_client = httpx.AsyncClient(timeout=settings.timeout)

    try:
        response = await _send(http_client, settings, request)
    except RegistrationError as e:
        await logger.aerror(
            "registration_failed",
            variant=variant.value,
            endpoint=settings.endpoint_url,
            reason=e.reason,
            status_code=e.status_code,
            cause=str(e.__cause__) if e.__cause__ else None,
        )
        return RegistrationOutcome.failure(e.reason, request=request)
    finally:
        if owns_client:
            await http_client.aclose()

    await logger.ainfo(
        "port_registered",
        message=response.message,
        variant=variant.value,
        identifier=request.identifier,
    )
    return RegistrationOutcome.success(request, response)


class SelfRegistrationClient:
    """Single-shot registration for one application lifetime.

    The first :meth:`register` or :meth:`start` call sends the request; later
    calls share that attempt (one task, one result) and never hit the network
    again.

    Args:
        settings: Endpoint and payload settings.
        http_client: Optional client to send with (not closed by us).
    """

    def __init__(
        self,
        settings: Optional[RegistrationSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or RegistrationSettings()
        self._http_client = http_client
        self._identifier: Optional[Identifier] = None
        self._task: Optional[asyncio.Task] = None
        self._outcome: Optional[RegistrationOutcome] = None

    @property
    def state(self) -> RegistrationState:
        return RegistrationState.DONE if self._outcome is not None else RegistrationState.PENDING

    @property
    def outcome(self) -> Optional[RegistrationOutcome]:
        return self._outcome

    @property
    def started(self) -> bool:
        return self._task is not None

    def start(self, identifier: Identifier) -> asyncio.Task:
        """Schedule the registration without waiting for it.

        Must be called from inside a running event loop.
        """
        if self._task is None:
            self._identifier = identifier
            self._task = asyncio.create_task(self._run(identifier))
        elif identifier != self._identifier:
            logger.warning(
                "registration_already_started",
                identifier=identifier,
                registered=self._identifier,
            )
        return self._task

    async def register(self, identifier: Identifier) -> RegistrationOutcome:
        """Register and wait for the (shared) outcome."""
        return await asyncio.shield(self.start(identifier))

    async def _run(self, identifier: Identifier) -> RegistrationOutcome:
        outcome = await register_self(
            identifier,
            settings=self.settings,
            http_client=self._http_client,
        )
        self._outcome = outcome
        return outcome


def register_in_background(
    identifier: Identifier,
    settings: Optional[RegistrationSettings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> asyncio.Task:
    """Fire-and-forget registration for application startup hooks.

    Returns the task so callers may await it, but startup need not.
    """
    client = SelfRegistrationClient(settings=settings, http_client=http_client)
    task = client.start(identifier)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
