"""
Logging setup shared by the API, the admin console and the scripts.

Call ``init_logging()`` once at startup; every other module just uses
``logging.getLogger(__name__)``.
"""
import logging
import os
from logging.config import dictConfig
from typing import Optional

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _norm_level(value: Optional[str], default: str) -> str:
    level = (value or default).upper().strip()
    return level if level in _LEVELS else default


def init_logging(
    *,
    root_level: str = "INFO",
    app_level: Optional[str] = None,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure console logging.

    - root logger controls generic libs
    - "vinyl_pricing" logger controls the engine itself
    - noisy third-party libs are held at WARNING

    Env overrides:
      LOG_ROOT_LEVEL, LOG_APP_LEVEL, LOG_THIRD_PARTY_LEVEL
    """
    root_lvl = _norm_level(os.getenv("LOG_ROOT_LEVEL"), root_level)
    app_lvl = _norm_level(os.getenv("LOG_APP_LEVEL"), app_level or root_lvl)
    third_lvl = _norm_level(os.getenv("LOG_THIRD_PARTY_LEVEL"), third_party_level)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "standard",
                }
            },
            "root": {"level": root_lvl, "handlers": ["console"]},
            "loggers": {
                "vinyl_pricing": {"level": app_lvl, "handlers": ["console"], "propagate": False},
                "uvicorn": {"level": root_lvl, "handlers": ["console"], "propagate": False},
                "uvicorn.access": {"level": root_lvl, "handlers": ["console"], "propagate": False},
                "sqlalchemy.engine": {"level": third_lvl, "handlers": ["console"], "propagate": False},
                "urllib3": {"level": third_lvl, "handlers": ["console"], "propagate": False},
                "requests": {"level": third_lvl, "handlers": ["console"], "propagate": False},
            },
        }
    )

    logging.getLogger(__name__).info(
        "[logging] configured root=%s app=%s third_party=%s",
        root_lvl,
        app_lvl,
        third_lvl,
    )
