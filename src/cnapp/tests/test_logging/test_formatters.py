import json
import logging

from cnapp.core.logging.formatters import ColorFormatter, JsonFormatter


def make_record(msg="db.connect.success", level=logging.INFO, exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("cnapp.database", level, __file__, 10, msg, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_basic_fields():
    fmt = JsonFormatter(env="testing", service="cnapp")
    payload = json.loads(fmt.format(make_record(correlation_id="op-1")))

    assert payload["message"] == "db.connect.success"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "cnapp.database"
    assert payload["env"] == "testing"
    assert payload["service"] == "cnapp"
    assert payload["correlation_id"] == "op-1"
    assert "version" in payload


def test_json_formatter_includes_extras_only():
    fmt = JsonFormatter()
    payload = json.loads(fmt.format(make_record(provider="sqlite", duration_ms=12)))

    assert payload["provider"] == "sqlite"
    assert payload["duration_ms"] == 12
    # standard LogRecord attributes are not repeated as extras
    assert "threadName" not in payload
    assert "args" not in payload


def test_json_formatter_stringifies_unserializable_extras():
    class Opaque:
        def __str__(self):
            return "opaque!"

    payload = json.loads(JsonFormatter().format(make_record(thing=Opaque())))
    assert payload["thing"] == "opaque!"


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        import sys

        record = make_record(level=logging.ERROR, exc_info=sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]


def test_color_formatter_line():
    line = ColorFormatter().format(make_record(correlation_id="op-9"))
    assert ColorFormatter.COLOR_CODES["INFO"] in line
    assert "cnapp.database" in line
    assert "op-9" in line
    assert line.endswith("db.connect.success")
