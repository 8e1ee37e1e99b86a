import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Route planner logs to stderr; telemetry lines get their own handler.

    ``STUDYPLAN_TELEMETRY_LOG_LEVEL=WARNING`` silences the per-run ``TELEMETRY``
    lines without touching the rest of the planner output.
    """
    resolved = (level or os.getenv("STUDYPLAN_LOG_LEVEL", "INFO")).upper()
    telemetry_level = os.getenv("STUDYPLAN_TELEMETRY_LOG_LEVEL", "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DEFAULT_LOG_FORMAT},
                "telemetry": {"format": TELEMETRY_LOG_FORMAT},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
                "telemetry": {
                    "class": "logging.StreamHandler",
                    "formatter": "telemetry",
                },
            },
            "loggers": {
                "studyplan.telemetry": {
                    "handlers": ["telemetry"],
                    "level": telemetry_level,
                    "propagate": False,
                },
            },
            "root": {
                "handlers": ["default"],
                "level": resolved,
            },
        }
    )

    if os.getenv("STUDYPLAN_DEBUG_SCHEDULER", "0") == "1":
        logging.getLogger("studyplan.schedule_optimizer").setLevel(logging.DEBUG)
        logging.getLogger("studyplan.retention").setLevel(logging.DEBUG)
