"""Structured logging — JSON records with domain extras, idempotent setup."""

import json
import logging

from ticketbot.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "ticketbot.test", logging.INFO, __file__, 1, "Order %s paid", ("o-1",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    line = JSONFormatter().format(_record(order_id="o-1", sender="+234", unrelated="x"))
    log = json.loads(line)

    assert log["message"] == "Order o-1 paid"
    assert log["level"] == "INFO"
    assert log["order_id"] == "o-1"
    assert log["sender"] == "+234"
    assert "unrelated" not in log


def test_setup_logging_is_idempotent():
    level = logging.root.level
    setup_logging("DEBUG", "json")
    setup_logging("DEBUG", "text")

    named = [h for h in logging.root.handlers if h.get_name() == "ticketbot"]
    assert len(named) == 1
    assert logging.root.level == logging.DEBUG

    logging.root.removeHandler(named[0])
    logging.root.setLevel(level)
