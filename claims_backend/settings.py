from __future__ import annotations

import logging
import os
from dataclasses import dataclass

# NOTE:
# - data_dir should be an absolute path on the host running the backend.
# - You can override ANY value with environment variables if you prefer.
#
# Suggested env overrides:
#   CLAIMS_DATA_DIR     (folder holding claims/ and settings/)
#   CLAIMS_BALANCE_TOL  (default 0.01)
#   CLAIMS_TZ           (timezone used for "today", default US/Eastern)
#   CLAIMS_PORT         (default 8000)
#   CLAIMS_LOG_LEVEL    (default INFO)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ClaimsSettings:
    # Root folder for the per-date claim documents and the admin secret
    data_dir: str = os.environ.get("CLAIMS_DATA_DIR", os.path.join(os.getcwd(), "data"))

    # Balancing tolerance (dollars), used for both staff and daily checks
    balance_tolerance: float = float(os.environ.get("CLAIMS_BALANCE_TOL", "0.01"))

    # "Today" is resolved in this timezone when no date is given
    timezone: str = os.environ.get("CLAIMS_TZ", "US/Eastern")

    port: int = int(os.environ.get("CLAIMS_PORT", "8000"))
    log_level: str = os.environ.get("CLAIMS_LOG_LEVEL", "INFO")


DEFAULT_SETTINGS = ClaimsSettings()


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install one console handler on the package logger."""
    logger = logging.getLogger("claims_backend")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)
    return logger
