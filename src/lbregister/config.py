"""Registration settings.

Resolution order (later wins):
  1. Built-in defaults.
  2. YAML file (``config/registration.yaml``, ``registration:`` section).
  3. Environment variables:
       - LBREGISTER_ENDPOINT_URL: registration endpoint
       - LBREGISTER_VARIANT: ``origin`` or ``port``
       - LBREGISTER_TIMEOUT: request timeout in seconds (empty = none)
  4. Explicit overrides (e.g. CLI flags).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import httpx
import structlog
import yaml
from pydantic import BaseModel, Field, field_validator

from lbregister.models import RegistrationVariant

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT_URL = "http://localhost:8080/port"
DEFAULT_CONFIG_PATH = "config/registration.yaml"

ENV_ENDPOINT_URL = "LBREGISTER_ENDPOINT_URL"
ENV_VARIANT = "LBREGISTER_VARIANT"
ENV_TIMEOUT = "LBREGISTER_TIMEOUT"


class RegistrationSettings(BaseModel):
    """Where and how to register.

    Attributes:
        endpoint_url: Load balancer registration URL (``PUT``).
        variant: Payload shape sent to the endpoint.
        timeout: Request timeout in seconds; ``None`` waits indefinitely.
        headers: Extra request headers.
    """

    endpoint_url: str = Field(default=DEFAULT_ENDPOINT_URL, description="Registration endpoint")
    variant: RegistrationVariant = Field(default=RegistrationVariant.ORIGIN, description="Payload shape")
    timeout: Optional[float] = Field(default=None, gt=0, description="Request timeout (seconds)")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")

    @field_validator("endpoint_url")
    @classmethod
    def _http_endpoint(cls, value: str) -> str:
        value = value.strip()
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid endpoint URL {value!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"endpoint URL must be http(s): {value!r}")
        return value


def load_config_file(config_path: str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Read the ``registration`` section of a YAML config file.

    A missing file yields an empty mapping.

    Raises:
        ValueError: If the file cannot be read or parsed, or has the wrong shape.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        return {}

    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ValueError(f"{config_path}: cannot read config file: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"{config_path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a mapping at top level")
    section = data.get("registration", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{config_path}: 'registration' must be a mapping")
    return section


def _env_values() -> dict[str, Any]:
    values: dict[str, Any] = {}
    endpoint = os.getenv(ENV_ENDPOINT_URL)
    if endpoint:
        values["endpoint_url"] = endpoint
    variant = os.getenv(ENV_VARIANT)
    if variant:
        values["variant"] = variant.strip().lower()
    timeout = os.getenv(ENV_TIMEOUT)
    if timeout is not None:
        values["timeout"] = float(timeout) if timeout.strip() else None
    return values


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> RegistrationSettings:
    """Resolve settings from file, environment and explicit overrides.

    Raises:
        ValueError: If any layer holds an invalid value.
    """
    values: dict[str, Any] = {}
    values.update(load_config_file(config_path or DEFAULT_CONFIG_PATH))
    values.update(_env_values())
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    settings = RegistrationSettings(**values)
    logger.debug(
        "registration_settings_loaded",
        endpoint_url=settings.endpoint_url,
        variant=settings.variant.value,
        timeout=settings.timeout,
    )
    return settings
