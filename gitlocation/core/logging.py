"""Structured logging configuration — structlog + stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

LOG_LEVEL_ENV = "GITLOCATION_LOG_LEVEL"
LOG_FORMAT_ENV = "GITLOCATION_LOG_FORMAT"


def _pre_chain() -> list[structlog.types.Processor]:
    # shared by structlog events and foreign stdlib records
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and stdlib logging for the CLI.

    Reads from environment variables:
        GITLOCATION_LOG_LEVEL  — log level (default: INFO)
        GITLOCATION_LOG_FORMAT — console | json (default: console)

    An explicit *level* wins over the environment. Output goes to stderr so
    that command output on stdout stays machine-readable.
    """
    log_level = (level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    log_format = os.environ.get(LOG_FORMAT_ENV, "console").lower()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": pre_chain,
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"structlog": formatter},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": {
                "gitlocation": {"level": log_level},
                "asyncio": {"level": "WARNING"},
            },
        }
    )


def _drop_event(_logger, _method_name, _event_dict):
    raise structlog.DropEvent


def null_logger() -> structlog.typing.BindableLogger:
    """Return a logger that discards every event.

    Default sink for components constructed without an explicit logger.
    """
    return structlog.wrap_logger(None, processors=[_drop_event])


def get_logger(name: str = "gitlocation") -> structlog.typing.BindableLogger:
    return structlog.get_logger(name)
