"""
logging.py — Worker log setup for the pipeline, the API and scripts.

Lines read `timestamp | level | logger | message`. HTTP and SQL chatter from
the libraries underneath the EDGAR client and the repository is held at
WARNING.

Operational outcomes the dashboard needs (per-filing errors, backfill counts)
go to the `processing_logs` table instead, see
`bdc_tracker.services.ingestion.run_context`.
"""

import logging
from typing import Optional

from bdc_tracker.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Library loggers that only matter when debugging the library itself
QUIET_LOGGERS = ("urllib3", "charset_normalizer", "sqlalchemy.engine")


def resolve_level(level: Optional[str]) -> int:
    """Numeric level for a name such as "debug"; unknown names fall back to INFO."""
    value = logging.getLevelName((level or "INFO").strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """
    Call once, at API startup (`main.py`) or at the top of a script.
    Without an explicit level, `settings.LOG_LEVEL` is used.
    """
    numeric = resolve_level(settings.LOG_LEVEL if level is None else level)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)

    # WARNING at least, and never below the root level
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

    logging.getLogger(__name__).info("Logging at %s", logging.getLevelName(numeric))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
