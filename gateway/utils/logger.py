"""
Gateway Logging
===============

structlog setup shared by the gateway and the CLI. Standard-library loggers
used inside ``delphi_canonical`` and ``oracle_tee`` flow through the same
handler, so one call to ``configure_logging`` covers the whole process.

NEVER log seeds, private keys or API keys.
"""

import logging
import sys

import structlog

_CONFIGURED = False


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog + stdlib logging once per process."""
    global _CONFIGURED

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if not _CONFIGURED:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="%(message)s",
            stream=sys.stdout,
        )
        _CONFIGURED = True
    else:
        logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str = "gateway"):
    return structlog.get_logger(name)


def log_event(event: str, **fields) -> None:
    """Log one request-lifecycle event with structured fields."""
    get_logger("gateway.events").info(event, **fields)
