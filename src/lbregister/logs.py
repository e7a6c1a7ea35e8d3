"""structlog setup for the command-line entry point."""

import logging

import structlog


def configure_logging(json_logs: bool = False, level: str = "info") -> None:
    """Configure structlog for console (default) or JSON output.

    Args:
        json_logs: Render one JSON object per line instead of the dev console format.
        level: Minimum level name (debug, info, warning, error).
    """
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
