"""Command-line entry point: register this instance with the load balancer.

Usage:
    lbregister --origin http://10.0.0.5:4200        # origin payload
    lbregister --port 8081                          # numeric port payload
    lbregister --listen-port 4200                   # detect local origin
    lbregister --listen-port 4200 --serve-health    # register, then serve /healthCheck

Exit status: 0 registered, 1 registration failed or skipped, 2 bad configuration.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence, Union

import structlog

from lbregister.address import detect_local_origin
from lbregister.client import SelfRegistrationClient
from lbregister.config import RegistrationSettings, load_settings
from lbregister.health import serve_health
from lbregister.logs import configure_logging
from lbregister.models import RegistrationVariant

logger = structlog.get_logger(__name__)

DEFAULT_LISTEN_PORT = 8000


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lbregister",
        description="Register this instance's address with the load balancer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --origin http://10.0.0.5:4200\n"
            "  %(prog)s --port 8081 --endpoint http://lb:8080/port\n"
            "  %(prog)s --listen-port 4200 --serve-health\n"
        ),
    )
    address = parser.add_mutually_exclusive_group()
    address.add_argument("--origin", help="Origin to register (origin payload)")
    address.add_argument("--port", type=int, help="Port to register (numeric payload)")
    parser.add_argument(
        "--listen-port",
        type=int,
        default=DEFAULT_LISTEN_PORT,
        help=f"Port this instance listens on (default: {DEFAULT_LISTEN_PORT})",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address for --serve-health")
    parser.add_argument("--endpoint", help="Registration endpoint URL (default: $LBREGISTER_ENDPOINT_URL)")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: none)")
    parser.add_argument("--config", help="YAML config file (default: config/registration.yaml)")
    parser.add_argument("--serve-health", action="store_true", help="Serve /healthCheck after starting registration")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--log-level", default="info", help="Minimum log level (default: info)")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> RegistrationSettings:
    overrides = {"endpoint_url": args.endpoint, "timeout": args.timeout}
    if args.port is not None:
        overrides["variant"] = RegistrationVariant.PORT
    elif args.origin is not None:
        overrides["variant"] = RegistrationVariant.ORIGIN
    return load_settings(args.config, overrides)


def resolve_identifier(args: argparse.Namespace, settings: RegistrationSettings) -> Union[str, int]:
    """Pick the identifier to send: explicit flag first, else the listen port."""
    if args.port is not None:
        return args.port
    if args.origin is not None:
        return args.origin
    if settings.variant == RegistrationVariant.PORT:
        return args.listen_port
    return detect_local_origin(args.listen_port)


async def run(args: argparse.Namespace, settings: RegistrationSettings) -> int:
    identifier = resolve_identifier(args, settings)
    client = SelfRegistrationClient(settings)

    if args.serve_health:
        client.start(identifier)
        await serve_health(args.host, args.listen_port, str(identifier), lambda: client.outcome)
        return 0

    outcome = await client.register(identifier)
    return 0 if outcome.succeeded else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        configure_logging(json_logs=args.json_logs, level=args.log_level)
        settings = settings_from_args(args)
    except ValueError as e:
        logger.error("invalid_configuration", error=str(e))
        return 2

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        logger.info("lbregister_shutdown", reason="User interrupt")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
