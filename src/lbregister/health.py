"""Health endpoint probed by the load balancer.

Before sending traffic to a registered origin the load balancer issues
``GET {origin}/healthCheck`` and only uses origins answering 2xx. Instances
without their own health route can run this minimal app alongside the
registration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from lbregister.models import RegistrationOutcome

logger = structlog.get_logger(__name__)

HEALTH_PATH = "/healthCheck"


def create_health_app(
    identity: str = "",
    outcome_provider: Optional[Callable[[], Optional[RegistrationOutcome]]] = None,
) -> Starlette:
    """Build the health-check app.

    Args:
        identity: Address identifier reported in the body.
        outcome_provider: Returns the registration outcome so far (or None).
    """

    async def health(request: Request) -> JSONResponse:
        body: dict[str, Any] = {
            "status": "ok",
            "identity": identity,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        outcome = outcome_provider() if outcome_provider else None
        body["registered"] = outcome.succeeded if outcome is not None else None
        return JSONResponse(body)

    return Starlette(routes=[Route(HEALTH_PATH, health, methods=["GET"])])


async def serve_health(
    host: str,
    port: int,
    identity: str = "",
    outcome_provider: Optional[Callable[[], Optional[RegistrationOutcome]]] = None,
) -> None:
    """Serve the health app until cancelled."""
    await logger.ainfo("health_server_starting", host=host, port=port, path=HEALTH_PATH)
    config = uvicorn.Config(
        app=create_health_app(identity, outcome_provider),
        host=host,
        port=port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    await server.serve()
