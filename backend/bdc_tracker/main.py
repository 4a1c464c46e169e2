"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, config, DB session dependency).
- Register API routers.
- Define root-level health/status endpoints.
- Provide `app` object used by ASGI server (uvicorn / hypercorn).

This file should stay clean — no business logic here.
"""

from fastapi import FastAPI

from bdc_tracker import __version__
from bdc_tracker.api.v1 import extractor
from bdc_tracker.core.logging import configure_logging

# -----------------------------------------------------------------------------
# App Initialization
# -----------------------------------------------------------------------------

configure_logging()  # LOG_LEVEL from settings

app = FastAPI(
    title="BDC Tracker Pipeline",
    description="SEC filing discovery + Schedule of Investments extraction for tracked BDCs",
    version=__version__,
)

# -----------------------------------------------------------------------------
# Router Registration
# -----------------------------------------------------------------------------

app.include_router(extractor.router, prefix="/api/v1")

# -----------------------------------------------------------------------------
# Health Check
# -----------------------------------------------------------------------------

@app.get("/")
def root():
    return {"status": "ok", "message": "BDC tracker pipeline running"}
