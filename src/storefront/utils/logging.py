"""Logging for the storefront service.

Everything goes through structlog. Stdlib records (protean, uvicorn) share the
same root handlers, so order, refund and notification events end up in one
stream: console always, plus ``storefront.log`` when ``STOREFRONT_LOG_DIR`` is set.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

from storefront import config

QUIET_LOGGERS = ("protean", "asyncio", "uvicorn.access")


def _handlers(level: str, log_dir: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                path / "storefront.log", maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _renderer(environment: str):
    if environment in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(level: str | None = None, log_dir: str | None = None) -> None:
    """Wire stdlib handlers and structlog processors; arguments override the environment."""
    level = level or config.log_level()
    log_dir = log_dir if log_dir is not None else config.log_dir()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(level, log_dir)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _renderer(config.environment()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
