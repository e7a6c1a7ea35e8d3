"""Load balancer self-registration.

An application instance announces, once at startup, the address it can be
reached on (its origin, or just its port) to the load balancer's
``PUT /port`` endpoint. Registration is best-effort and never blocks startup.
"""

from lbregister.client import SelfRegistrationClient, register_in_background, register_self
from lbregister.config import RegistrationSettings, load_settings
from lbregister.models import (
    FALLBACK_ERROR_MESSAGE,
    RegistrationOutcome,
    RegistrationRequest,
    RegistrationResponse,
    RegistrationState,
    RegistrationVariant,
)

__all__ = [
    "FALLBACK_ERROR_MESSAGE",
    "RegistrationOutcome",
    "RegistrationRequest",
    "RegistrationResponse",
    "RegistrationSettings",
    "RegistrationState",
    "RegistrationVariant",
    "SelfRegistrationClient",
    "load_settings",
    "register_in_background",
    "register_self",
]
