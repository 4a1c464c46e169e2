"""
errors.py — Typed failures raised by the extraction pipeline.

Discovery and retrieval translate low-level HTTP failures
(`EdgarClientError`) into these types at their boundary, so callers only ever
handle `PipelineError` subclasses.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base exception for pipeline failures."""


class DiscoveryError(PipelineError):
    """The EDGAR filing index was unreachable or returned a non-success status."""


class RetrievalError(PipelineError):
    """A filing document could not be downloaded."""


class PersistenceError(PipelineError):
    """Writing extracted rows or filing state to the store failed."""


class ExtractionError(PipelineError):
    """Unexpected failure while parsing a retrieved document."""


class CompanyNotFoundError(PipelineError):
    """No tracked company with the requested ticker."""


class MissingCikError(PipelineError):
    """The tracked company has no CIK, so EDGAR cannot be queried."""


class FilingNotFoundError(PipelineError):
    """No filing with the requested id."""


class InvalidStatusTransitionError(PipelineError):
    """A filing or scheduled check was asked to move to a state it cannot reach."""
