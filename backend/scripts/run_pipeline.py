"""
run_pipeline.py — Run pipeline operations from the command line.

Same operations as POST /api/v1/extractor, plus `init-db` to create the
schema on the configured database.

Examples:
    python scripts/run_pipeline.py init-db
    python scripts/run_pipeline.py backfill-all --years-back 9
    python scripts/run_pipeline.py backfill-ticker ARCC
    python scripts/run_pipeline.py extract-filing 42 --force
    python scripts/run_pipeline.py incremental-check ARCC --form-type 10-Q
    python scripts/run_pipeline.py recompute-schedule
    python scripts/run_pipeline.py run-due-checks
    python scripts/run_pipeline.py requeue-filing 42
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading

from bdc_tracker.core import database
from bdc_tracker.core.config import settings
from bdc_tracker.core.logging import configure_logging, get_logger
from bdc_tracker.services.ingestion.errors import PipelineError
from bdc_tracker.services.ingestion.ingest_orchestrator import IngestOrchestrator

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BDC Schedule of Investments extraction pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all pipeline tables")

    backfill_all = sub.add_parser("backfill-all", help="Backfill every active company")
    backfill_all.add_argument("--years-back", type=int, default=None)

    backfill_ticker = sub.add_parser("backfill-ticker", help="Backfill one company")
    backfill_ticker.add_argument("ticker")
    backfill_ticker.add_argument("--years-back", type=int, default=None)

    extract = sub.add_parser("extract-filing", help="(Re-)extract one stored filing")
    extract.add_argument("filing_id", type=int)
    extract.add_argument("--force", action="store_true", help="Replace rows of a completed filing")

    incremental = sub.add_parser("incremental-check", help="Fetch filings newer than the latest stored one")
    incremental.add_argument("ticker")
    incremental.add_argument("--form-type", choices=["10-K", "10-Q"], required=True)

    sub.add_parser("recompute-schedule", help="Recompute expected filing due dates")
    sub.add_parser("run-due-checks", help="Run scheduled checks that have come due")

    requeue = sub.add_parser("requeue-filing", help="Move a stuck / failed filing back to pending")
    requeue.add_argument("filing_id", type=int)

    return parser


def run(args: argparse.Namespace, orchestrator: IngestOrchestrator):
    if args.command == "backfill-all":
        cancel = threading.Event()
        # Ctrl-C stops between companies instead of mid-filing
        signal.signal(signal.SIGINT, lambda *_: cancel.set())
        return orchestrator.run_full_backfill(years_back=args.years_back, cancel_event=cancel)
    if args.command == "backfill-ticker":
        return orchestrator.run_ticker_backfill(args.ticker, years_back=args.years_back)
    if args.command == "extract-filing":
        return orchestrator.extract_single_filing(args.filing_id, force=args.force)
    if args.command == "incremental-check":
        return orchestrator.run_incremental_check(args.ticker, args.form_type)
    if args.command == "recompute-schedule":
        return orchestrator.recompute_schedule()
    if args.command == "run-due-checks":
        return orchestrator.run_due_checks()
    return orchestrator.requeue_filing(args.filing_id)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    if database.SessionLocal is None:
        logger.error("SUPABASE_DB_URL is not set; nothing to run against.")
        return 2

    if args.command == "init-db":
        database.init_db()
        logger.info("Schema created.")
        return 0

    db = database.SessionLocal()
    try:
        result = run(args, IngestOrchestrator(db))
    except PipelineError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        db.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
