"""
extractor.py — Pipeline trigger endpoint (API Layer)

Purpose:
- Expose the pipeline's named operations behind one action-dispatch route:
    • POST /extractor {"action": "backfill_all"}
    • POST /extractor {"action": "backfill_ticker", "ticker": "ARCC", "years_back": 9}
    • POST /extractor {"action": "extract_filing", "filing_id": 42, "force": false}
    • POST /extractor {"action": "incremental_check", "ticker": "ARCC", "filing_type": "10-Q"}
    • POST /extractor {"action": "recompute_schedule"}
    • POST /extractor {"action": "run_due_checks"}
    • POST /extractor {"action": "requeue_filing", "filing_id": 42}

Key Interactions:
- bdc_tracker.services.ingestion.ingest_orchestrator → runs every operation.
- bdc_tracker.core.database → DB session.

Role in System:
- No business logic here: request → orchestrator call → JSON summary.
- Typed pipeline errors become HTTP errors (404 / 409 / 502 / 500).
"""

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from bdc_tracker.core.database import get_db
from bdc_tracker.core.logging import get_logger
from bdc_tracker.services.ingestion.errors import (
    CompanyNotFoundError,
    DiscoveryError,
    FilingNotFoundError,
    InvalidStatusTransitionError,
    MissingCikError,
    PipelineError,
    RetrievalError,
)
from bdc_tracker.services.ingestion.ingest_orchestrator import IngestOrchestrator

logger = get_logger(__name__)

router = APIRouter(
    prefix="/extractor",
    tags=["extractor"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

Action = Literal[
    "backfill_all",
    "backfill_ticker",
    "extract_filing",
    "incremental_check",
    "recompute_schedule",
    "run_due_checks",
    "requeue_filing",
]


class ExtractorRequest(BaseModel):
    action: Action
    ticker: Optional[str] = None
    years_back: Optional[int] = Field(None, ge=1, le=30)
    filing_id: Optional[int] = None
    filing_type: Optional[Literal["10-K", "10-Q"]] = None
    force: bool = False


class ExtractorResponse(BaseModel):
    action: str
    success: bool = True
    result: Dict[str, Any]


_ERROR_STATUS = (
    ((CompanyNotFoundError, FilingNotFoundError), 404),
    ((InvalidStatusTransitionError, MissingCikError), 409),
    ((DiscoveryError, RetrievalError), 502),
)


def error_status(exc: PipelineError) -> int:
    for types, status in _ERROR_STATUS:
        if isinstance(exc, types):
            return status
    return 500


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

def get_orchestrator(db=Depends(get_db)) -> IngestOrchestrator:
    return IngestOrchestrator(db)


def _require(value: Any, name: str, action: str) -> Any:
    if value is None:
        raise HTTPException(status_code=422, detail=f"'{name}' is required for action '{action}'")
    return value


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("", response_model=ExtractorResponse)
def run_extractor(request: ExtractorRequest, orchestrator: IngestOrchestrator = Depends(get_orchestrator)):
    """
    POST /extractor

    Runs one pipeline operation synchronously and returns its summary.
    """
    action = request.action
    logger.info("Extractor action requested: %s", action)

    try:
        if action == "backfill_all":
            result = orchestrator.run_full_backfill(years_back=request.years_back)
        elif action == "backfill_ticker":
            ticker = _require(request.ticker, "ticker", action)
            result = orchestrator.run_ticker_backfill(ticker, years_back=request.years_back)
        elif action == "extract_filing":
            filing_id = _require(request.filing_id, "filing_id", action)
            result = orchestrator.extract_single_filing(filing_id, force=request.force)
        elif action == "incremental_check":
            ticker = _require(request.ticker, "ticker", action)
            filing_type = _require(request.filing_type, "filing_type", action)
            result = orchestrator.run_incremental_check(ticker, filing_type)
        elif action == "recompute_schedule":
            result = orchestrator.recompute_schedule()
        elif action == "run_due_checks":
            result = orchestrator.run_due_checks()
        else:
            filing_id = _require(request.filing_id, "filing_id", action)
            result = orchestrator.requeue_filing(filing_id)
    except PipelineError as exc:
        status = error_status(exc)
        logger.warning("Extractor action %s failed (%s): %s", action, status, exc)
        raise HTTPException(status_code=status, detail=str(exc)) from exc

    return ExtractorResponse(action=action, result=result.to_dict())
