from .filing_repository import FilingRepository  # noqa: F401
