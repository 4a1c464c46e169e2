"""
Tests for core/logging.py (level resolution and library logger levels).
"""

import logging

import pytest

from bdc_tracker.core.config import settings
from bdc_tracker.core.logging import QUIET_LOGGERS, configure_logging, resolve_level


@pytest.fixture
def restore_levels():
    names = ("",) + QUIET_LOGGERS
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        (" error ", logging.ERROR),
        ("verbose", logging.INFO),
        (None, logging.INFO),
    ],
)
def test_resolve_level(name, expected):
    assert resolve_level(name) == expected


def test_library_loggers_held_at_warning(restore_levels):
    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_level_defaults_to_settings(restore_levels, monkeypatch):
    monkeypatch.setattr(settings, "LOG_LEVEL", "error")

    configure_logging()

    assert logging.getLogger().level == logging.ERROR
    assert logging.getLogger("urllib3").level == logging.ERROR
