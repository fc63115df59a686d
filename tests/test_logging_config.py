"""
Tests for structured logging helpers.
"""

import io
import json
import logging
import threading

import pytest

from migration_auditor.logging_config import (
    HumanReadableFormatter,
    LogContext,
    StructuredFormatter,
    log_api_call,
    setup_structured_logging,
)


def make_record(msg="hello", **attrs):
    record = logging.LogRecord("migration_auditor.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestFormatters:

    def test_json_output(self):
        data = json.loads(StructuredFormatter().format(make_record(correlation_id="acme/api#42->99")))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["service"] == "migration-auditor"
        assert data["correlation_id"] == "acme/api#42->99"
        assert "status_code" not in data

    def test_human_readable_context(self):
        text = HumanReadableFormatter().format(make_record(status_code=404))

        assert "INFO" in text
        assert text.endswith("migration_auditor.test: hello [status_code=404]")


class TestSetup:

    def test_json_lines_to_stream(self, restore_root_logger):
        stream = io.StringIO()

        logger = setup_structured_logging(level=logging.INFO, json_format=True, stream=stream)
        logger.info("audit started")
        logger.debug("hidden")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "audit started"


class TestLogContext:

    def test_context_added_and_removed(self, caplog):
        logger = logging.getLogger("migration_auditor.test")

        with caplog.at_level(logging.INFO, logger="migration_auditor"):
            with LogContext(correlation_id="abc"):
                logger.info("inside")
            logger.info("outside")

        inside, outside = caplog.records
        assert inside.correlation_id == "abc"
        assert not hasattr(outside, "correlation_id")

    def test_context_reaches_worker_threads(self, caplog):
        logger = logging.getLogger("migration_auditor.test")

        with caplog.at_level(logging.INFO, logger="migration_auditor"):
            with LogContext(correlation_id="abc"):
                worker = threading.Thread(target=logger.info, args=("from worker",))
                worker.start()
                worker.join()

        assert caplog.records[0].correlation_id == "abc"


class TestLogApiCall:

    def test_levels(self, caplog):
        logger = logging.getLogger("migration_auditor.test")

        with caplog.at_level(logging.DEBUG, logger="migration_auditor"):
            log_api_call(logger, "GET", "https://j/api/json", 200, 12.0)
            log_api_call(logger, "GET", "https://j/job/x/api/json", 404, 5.0)
            log_api_call(logger, "GET", "https://j/api/json", 503, 5.0)

        assert [r.levelno for r in caplog.records] == [logging.DEBUG, logging.WARNING, logging.ERROR]
        assert caplog.records[1].status_code == 404
