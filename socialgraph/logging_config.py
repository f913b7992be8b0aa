from logging.config import dictConfig

from socialgraph.config import settings


def _level() -> str:
    return "DEBUG" if settings.debug else settings.log_level.upper()


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "level": "WARNING",
        "handlers": ["console"],
    },
    "loggers": {
        "socialgraph": {
            "level": _level(),
            "handlers": ["console"],
            "propagate": False,
        },
        "sqlalchemy.engine": {
            "level": "INFO" if settings.db_echo else "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    },
}


def setup_logging():
    """Apply the logging configuration. Call once at process start."""
    dictConfig(LOGGING_CONFIG)
