"""
base.py — Shared declarative Base for all pipeline ORM models.

Every model registers on the same metadata so relationships between
filings, investments and logs resolve, and `init_db()` can create the
whole schema in one call.
"""

import datetime

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
