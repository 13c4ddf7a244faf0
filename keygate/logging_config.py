"""
Logging configuration with health and metrics scrape suppression
"""

import logging
import logging.config
from typing import Any, Dict

QUIET_PATHS = ("/health", "/metrics")


class ProbeFilter(logging.Filter):
    """Filter to suppress health check and metrics scrape logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out probe requests from uvicorn access logs."""
        if record.name == "uvicorn.access":
            message = record.getMessage()
            if "GET" in message and any(path in message for path in QUIET_PATHS):
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with probe suppression."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "probe_filter": {
                "()": ProbeFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "access": {
                "format": "%(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["probe_filter"]
            }
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": level,
                "propagate": False
            },
            "keygate": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            }
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
