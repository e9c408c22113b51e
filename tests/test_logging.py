import json
import logging
import sys

from services.logging import JsonFormatter


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.bot.sessions", logging.WARNING, __file__, 1, "Polled %d sessions", (3,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_message_is_rendered_as_json():
    output = json.loads(JsonFormatter().format(make_record()))

    assert output["level"] == "warning"
    assert output["message"] == "Polled 3 sessions"
    assert output["name"] == "services.bot.sessions"
    assert output["timestamp"].endswith("Z")
    assert "stack" not in output


def test_context_fields_are_forwarded():
    output = json.loads(JsonFormatter().format(make_record(session_id=100, user_id="u1", unrelated="x")))

    assert output["session_id"] == "100"
    assert output["user_id"] == "u1"
    assert "unrelated" not in output


def test_exception_stack_is_included():
    try:
        raise ValueError("bad guess")
    except ValueError:
        record = make_record()
        record.exc_info = sys.exc_info()

    output = json.loads(JsonFormatter().format(record))

    assert "ValueError: bad guess" in output["stack"]
