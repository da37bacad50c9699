from __future__ import annotations

import logging

from trade_journal.config.settings import DEFAULT_REFERENCE_TIMEZONE, get_settings
from trade_journal.ingest import pipeline
from trade_journal.ingest.pipeline import import_trades
from trade_journal.utils import logging as logging_utils
from trade_journal.utils.logging import get_logger

_ENV_KEYS = (
    "TRADE_JOURNAL_REFERENCE_TZ",
    "TRADE_JOURNAL_DAY_FIRST",
    "TRADE_JOURNAL_SAMPLE_LINES",
    "LOG_LEVEL",
)


def test_settings_defaults(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    settings = get_settings()

    assert settings.reference_timezone == DEFAULT_REFERENCE_TIMEZONE == "Europe/Budapest"
    assert settings.day_first is True
    assert settings.delimiter_sample_lines == 5
    assert settings.log_level == "INFO"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("TRADE_JOURNAL_REFERENCE_TZ", "America/Chicago")
    monkeypatch.setenv("TRADE_JOURNAL_DAY_FIRST", "false")
    monkeypatch.setenv("TRADE_JOURNAL_SAMPLE_LINES", "12")

    settings = get_settings()

    assert settings.reference_timezone == "America/Chicago"
    assert settings.day_first is False
    assert settings.delimiter_sample_lines == 12


def test_invalid_sample_lines_fall_back_to_default(monkeypatch):
    monkeypatch.setenv("TRADE_JOURNAL_SAMPLE_LINES", "abc")
    assert get_settings().delimiter_sample_lines == 5

    monkeypatch.setenv("TRADE_JOURNAL_SAMPLE_LINES", "0")
    assert get_settings().delimiter_sample_lines == 5


def test_get_logger_returns_named_logger():
    logger = get_logger("trade_journal.tests")

    assert isinstance(logger, logging.Logger)
    assert logger.name == "trade_journal.tests"


def test_library_use_leaves_logging_configuration_to_the_caller(monkeypatch, topstep_csv, settings):
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)

    import_trades(topstep_csv, settings=settings)

    assert logging_utils._CONFIGURED is False
    assert pipeline.logger.name == "trade_journal.ingest.pipeline"
