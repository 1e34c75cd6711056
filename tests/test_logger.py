import json
import logging

from pgstore.logger import CustomFormatter, JSONFormatter, setup_logger


def _record(msg, *args, **extra):
    record = logging.LogRecord("pgstore.test", logging.ERROR, "/tmp/mod.py", 12, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logger_is_idempotent():
    first = setup_logger("pgstore.tests.idempotent")
    second = setup_logger("pgstore.tests.idempotent")

    assert first is second
    assert len(second.handlers) == 1
    assert not second.propagate
    assert hasattr(second, "success")


def test_custom_formatter_renders_args_and_extra():
    text = CustomFormatter().format(_record("connId:%d failed", 4, query="SELECT 1"))

    assert "[ERROR]" in text
    assert "Message: connId:4 failed" in text
    assert "query: SELECT 1" in text


def test_json_formatter():
    payload = json.loads(JSONFormatter().format(_record("connId:%d failed", 4, conn_id=4)))

    assert payload["level"] == "ERROR"
    assert payload["message"] == "connId:4 failed"
    assert payload["conn_id"] == 4
    assert payload["location"]["line"] == 12
