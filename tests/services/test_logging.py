import json
import logging

from chat_widget.services.logging import StructuredLogger


def test_human_readable_console(caplog, monkeypatch):
    monkeypatch.setenv("CHAT_WIDGET_LOG_FORMAT", "human")
    caplog.set_level(logging.INFO)

    logger = StructuredLogger("test-widget.session")
    logger.info("chat.send.started", message_id=3, has_files=False)

    records = [record for record in caplog.records if record.name == "test-widget.session"]
    assert records
    message = records[-1].message
    assert "INFO chat.send.started (session)" in message
    assert "message_id=3" in message
    assert "has_files=false" in message


def test_json_payload_carries_context(caplog, monkeypatch):
    monkeypatch.setenv("CHAT_WIDGET_LOG_FORMAT", "json")
    monkeypatch.setenv("CHAT_WIDGET_ENVIRONMENT", "STAGING")
    caplog.set_level(logging.DEBUG, logger="test-widget-json")

    logger = StructuredLogger("test-widget-json")
    logger.configure_context(widget_id="support-widget")
    logger.error("flow.segments.failed", error="boom", error_type="CatalogError")

    records = [record for record in caplog.records if record.name == "test-widget-json"]
    assert len(records) == 1
    assert records[0].levelno == logging.ERROR
    body = json.loads(records[0].message)
    assert body["event"] == "flow.segments.failed"
    assert body["severity"] == "error"
    assert body["widget_id"] == "support-widget"
    assert body["environment"] == "staging"
    assert body["error_type"] == "CatalogError"


def test_both_format_emits_two_lines(caplog, monkeypatch):
    monkeypatch.setenv("CHAT_WIDGET_LOG_FORMAT", "both")
    caplog.set_level(logging.INFO)

    StructuredLogger("test-widget-both").info("chat.cleared")

    records = [record for record in caplog.records if record.name == "test-widget-both"]
    assert len(records) == 2
    assert json.loads(records[0].message)["event"] == "chat.cleared"
    assert "chat.cleared" in records[1].message


def test_console_can_be_disabled(caplog, monkeypatch):
    monkeypatch.setenv("CHAT_WIDGET_DISABLE_CONSOLE_LOGS", "1")
    caplog.set_level(logging.DEBUG)

    StructuredLogger("test-widget-silent").warning("chat.send.skipped")

    assert not [record for record in caplog.records if record.name == "test-widget-silent"]


def test_debug_suppressed_unless_enabled(caplog, monkeypatch):
    monkeypatch.delenv("CHAT_WIDGET_DEBUG", raising=False)
    monkeypatch.setenv("CHAT_WIDGET_LOG_FORMAT", "human")
    caplog.set_level(logging.DEBUG)

    logger = StructuredLogger("test-widget-debug")
    logger.debug("telemetry.span.start")
    assert not [record for record in caplog.records if record.name == "test-widget-debug"]

    monkeypatch.setenv("CHAT_WIDGET_DEBUG", "1")
    StructuredLogger("test-widget-debug").debug("telemetry.span.start")
    assert [record for record in caplog.records if record.name == "test-widget-debug"]


def test_child_loggers_share_context(caplog, monkeypatch):
    monkeypatch.setenv("CHAT_WIDGET_LOG_FORMAT", "json")
    caplog.set_level(logging.INFO)

    root = StructuredLogger("test-widget-family")
    transport = root.child("transport")
    root.configure_context(widget_id="claims-desk", environment="PROD")
    transport.info("transport.chat.retry", attempt=2)

    assert transport.name == "test-widget-family.transport"
    assert transport.component == "transport"
    records = [record for record in caplog.records if record.name == "test-widget-family.transport"]
    assert len(records) == 1
    body = json.loads(records[0].message)
    assert body["component"] == "transport"
    assert body["widget_id"] == "claims-desk"
    assert body["environment"] == "prod"
