import importlib
import json
import logging
from contextlib import contextmanager

import pytest

import logging_utils
import scoring
from config import Settings
from logging_utils import JsonFormatter, configure_logging, get_logger


@pytest.fixture(autouse=True)
def unconfigured(monkeypatch):
    monkeypatch.setattr(logging_utils, "_configured", False)


@contextmanager
def root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        yield root
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_importing_the_engine_keeps_host_logging():
    with root_logger() as root:
        handler = logging.NullHandler()
        root.addHandler(handler)
        before = root.handlers[:]

        importlib.reload(scoring)
        get_logger("scoring")

        assert root.handlers == before
        assert logging_utils._configured is False


def test_configure_logging_json():
    with root_logger() as root:
        configure_logging(Settings(log_level="DEBUG", log_format="json"))

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, JsonFormatter)

    record = logging.LogRecord("scoring", logging.INFO, __file__, 1, "scored %d", (42,), None)
    line = json.loads(formatter.format(record))
    assert line["severity"] == "INFO"
    assert line["logger"] == "scoring"
    assert line["message"] == "scored 42"


def test_configure_logging_runs_once():
    with root_logger() as root:
        configure_logging(Settings())
        extra = logging.NullHandler()
        root.addHandler(extra)

        configure_logging(Settings(log_level="DEBUG"))
        assert extra in root.handlers
        assert root.level == logging.INFO

        configure_logging(Settings(log_level="DEBUG"), force=True)
        assert extra not in root.handlers
        assert root.level == logging.DEBUG
