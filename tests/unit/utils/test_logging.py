import json
import logging

import pytest

from event_timing_engine.utils.logging import JSONFormatter, configure_logging, get_logger


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**extra):
    record = logging.LogRecord("event_timing_engine.test", logging.INFO, __file__, 1, "fit done", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields():
    payload = json.loads(JSONFormatter().format(_record(group="north", iterations=7, unrelated="x")))

    assert payload["message"] == "fit done"
    assert payload["level"] == "INFO"
    assert payload["group"] == "north"
    assert payload["iterations"] == 7
    assert payload["unrelated"] == "x"
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_emits_extras_and_skips_record_internals():
    record = _record(initial=[0.03, 0.5, 14.5], parameters={"rate": 0.04}, n_points=25)
    payload = json.loads(JSONFormatter().format(record))

    assert payload["initial"] == [0.03, 0.5, 14.5]
    assert payload["parameters"] == {"rate": 0.04}
    assert payload["n_points"] == 25
    for internal in ("args", "msg", "lineno", "pathname", "levelno", "created", "exc_info"):
        assert internal not in payload


def test_json_formatter_carries_extra_passed_to_logger(caplog):
    logger = logging.getLogger("event_timing_engine.test_extra")
    with caplog.at_level("INFO"):
        logger.info("batch fit complete", extra={"n_groups": 2, "n_failed": 0})

    payload = json.loads(JSONFormatter().format(caplog.records[-1]))
    assert payload["n_groups"] == 2
    assert payload["n_failed"] == 0


def test_configure_logging_installs_single_json_handler(restore_root_logger):
    configure_logging(run_id="run-1", component="cli", level=logging.DEBUG)
    configure_logging(run_id="run-2", component="cli")

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert root.level == logging.INFO


def test_get_logger_adds_context_filter_once(caplog):
    logger = get_logger("event_timing_engine.test_ctx", component="fitter")
    get_logger("event_timing_engine.test_ctx", component="fitter")
    assert len(logger.filters) == 1

    with caplog.at_level("INFO"):
        logger.info("hello")
    assert caplog.records[-1].component == "fitter"
