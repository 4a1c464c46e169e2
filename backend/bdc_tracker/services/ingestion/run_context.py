"""
run_context.py — Per-run context threaded through the pipeline.

A `RunContext` is created by the caller of a pipeline operation and passed
explicitly to the controller and orchestrator. It carries:

- the repository used for the operational log,
- a run id that tags every log entry of one invocation,
- a cooperative cancellation flag (checked between companies).

Nothing in the pipeline reads a "current run" from module state.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Dict, Optional

from bdc_tracker.core.logging import get_logger
from bdc_tracker.services.ingestion.repositories.filing_repository import FilingRepository

logger = get_logger(__name__)

_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class RunContext:
    def __init__(
        self,
        repository: FilingRepository,
        operation: str,
        cancel_event: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ) -> None:
        self.repository = repository
        self.operation = operation
        self.cancel_event = cancel_event or threading.Event()
        self.run_id = run_id or uuid.uuid4().hex[:12]

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    # ------------------------------------------------------------------ #
    # Operational log (processing_logs + worker log)
    # ------------------------------------------------------------------ #
    def log(self, level: str, message: str, filing_id: Optional[int] = None, **details: Any) -> None:
        payload: Dict[str, Any] = {"run_id": self.run_id, "operation": self.operation}
        payload.update({k: _jsonable(v) for k, v in details.items()})
        logger.log(_LEVELS[level], "[%s %s] %s %s", self.operation, self.run_id, message, details or "")
        self.repository.add_log(level, message, details=payload, filing_id=filing_id)

    def info(self, message: str, filing_id: Optional[int] = None, **details: Any) -> None:
        self.log("info", message, filing_id=filing_id, **details)

    def warning(self, message: str, filing_id: Optional[int] = None, **details: Any) -> None:
        self.log("warning", message, filing_id=filing_id, **details)

    def error(self, message: str, filing_id: Optional[int] = None, **details: Any) -> None:
        self.log("error", message, filing_id=filing_id, **details)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
