"""
Structured logging setup.

structlog renders every record, including records emitted through the
standard ``logging`` module by Django itself. JSON in production, colored
console output in development. The request id bound by
``assignment.middleware.RequestContextMiddleware`` is merged into each event.
"""

import structlog


SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


def build_logging_config(level: str = "INFO", json_format: bool = False) -> dict:
    """
    Build the ``LOGGING`` dict for Django settings.

    Args:
        level: root log level name
        json_format: render JSON lines instead of console output

    Returns:
        dict: dictConfig-compatible configuration
    """
    if json_format:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    *renderers,
                ],
                "foreign_pre_chain": SHARED_PROCESSORS,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "structlog",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
        "loggers": {
            "django.db.backends": {
                "level": "WARNING",
            },
        },
    }


def configure_structlog() -> None:
    """Route structlog loggers through the stdlib handlers configured above."""
    structlog.configure(
        processors=SHARED_PROCESSORS + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
