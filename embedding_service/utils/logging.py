"""Structured logging setup using structlog.

Dual-renderer pattern: one shared processor chain feeds either a coloured
console renderer (development) or a JSON renderer (``APP_ENV=production``
or ``json_output=True``).  Standard-library loggers (uvicorn, httpx,
chromadb) are routed through the same chain, so a single request produces
uniformly formatted lines whichever library emitted them.

Every event carries the ``request_id`` bound by
:class:`~embedding_service.api.middleware.RequestLoggingMiddleware`, which
is how the ``embedding_created`` / ``chromadb_query`` lines of one request
are correlated.
"""

import logging
import os
import sys

import structlog

# Libraries that log per-call chatter at INFO.  uvicorn.access duplicates
# the ``http_request`` event written by RequestLoggingMiddleware.
_NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "chromadb": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def _shared_processors() -> list[structlog.types.Processor]:
    # merge_contextvars first: request-scoped bindings must be visible to
    # every later processor.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and bridge stdlib logging into it.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: Force JSON lines.  When False, JSON is still used if
            ``APP_ENV`` is ``production``.

    Returns:
        The root structlog logger.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    level = logging.getLevelName(log_level.upper())
    shared = _shared_processors()
    renderer = _renderer(use_json)

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(noisy_level, level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound with ``logger_name=name``.

    Configures logging with defaults on first use so modules imported
    before ``configure_logging`` (tests, the CLI) still get structured output.
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
