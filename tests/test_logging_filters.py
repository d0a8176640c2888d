"""Tests for sensitive data filtering and event correlation in logs."""

from __future__ import annotations

import json
import logging
import sys
from io import StringIO

from relayguard.core.config import LogSettings
from relayguard.core.logging import (
    EventIdFilter,
    JsonFormatter,
    SensitiveDataFilter,
    clear_event_id,
    configure_logging,
    set_event_id,
    short_identity,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(EventIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_event_text():
    """Event bodies never reach the log output."""

    logger, stream = _capture("test_text_redaction")

    logger.info(
        "relay.event.rejected",
        extra={
            "content": "my private note",
            "reason": "content_blocked",
            "detail": ["spam"],
        },
    )

    output = json.loads(stream.getvalue())
    assert output["content"] == "[REDACTED]"
    assert output["reason"] == "content_blocked"
    assert output["detail"] == ["spam"]


def test_sensitive_filter_redacts_nested_credentials():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "startup.failed",
        extra={"details": {"password": "changeme", "path": "/etc/relayguard/config.toml"}},
    )

    output = stream.getvalue()
    assert "changeme" not in output
    assert "[REDACTED]" in output
    assert "/etc/relayguard/config.toml" in output


def test_event_id_is_attached_from_context():
    logger, stream = _capture("test_event_id")

    set_event_id("ev-123")
    try:
        logger.info("relay.event.accepted")
    finally:
        clear_event_id()
    logger.info("relay.stopped")

    first, second = (json.loads(line) for line in stream.getvalue().splitlines())
    assert first["event_id"] == "ev-123"
    assert "event_id" not in second


def test_short_identity():
    assert short_identity("abc") == "abc"
    assert short_identity("a" * 64) == "a" * 16 + "..."


def test_configure_logging_never_writes_to_stdout(tmp_path, capsys):
    log_file = tmp_path / "logs" / "relayguard.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(LogSettings(output="file", file_path=str(log_file)))
        logging.getLogger("relayguard.test").warning("written.to.file")

        configure_logging(LogSettings(format="plain"))
        assert root.handlers[0].stream is sys.stderr
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert capsys.readouterr().out == ""
    assert "written.to.file" in log_file.read_text(encoding="utf-8")
