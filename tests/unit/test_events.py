"""Unit tests for event sinks and log formatting."""

import json
import logging
from datetime import datetime, timezone

from docflow.events import FanOutSink, InMemoryEventSink, LoggingEventSink, WorkflowEvent
from docflow.utils.logging import JSONFormatter, TextFormatter


def make_event(event_type: str = "document.saved") -> WorkflowEvent:
    return WorkflowEvent(
        type=event_type,
        entity="document",
        entity_id="doc_1",
        document_id="doc_1",
        actor_id="alice",
        occurred_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        data={"version": 2},
    )


class BrokenSink:
    def emit(self, event: WorkflowEvent) -> None:
        raise RuntimeError("sink offline")


class TestSinks:
    """Tests for the event sinks."""

    def test_in_memory_queries(self) -> None:
        """Events can be filtered by type and entity."""
        sink = InMemoryEventSink()
        sink.emit(make_event())
        sink.emit(make_event("document.submitted"))
        assert sink.types() == ["document.saved", "document.submitted"]
        assert len(sink.of_type("document.saved")) == 1
        assert len(sink.for_entity("doc_1")) == 2

    def test_fan_out_survives_broken_sink(self) -> None:
        """A failing sink does not stop delivery to the others."""
        memory = InMemoryEventSink()
        FanOutSink(BrokenSink(), memory).emit(make_event())
        assert memory.types() == ["document.saved"]

    def test_event_ids_are_unique(self) -> None:
        """Each event gets its own id."""
        assert make_event().event_id != make_event().event_id
        assert make_event().event_id.startswith("evt_")

    def test_logging_sink(self, caplog) -> None:
        """The logging sink writes one INFO record carrying the event."""
        sink = LoggingEventSink("docflow.test.audit")
        logger = logging.getLogger("docflow.test.audit")
        logger.setLevel(logging.INFO)
        with caplog.at_level(logging.INFO, logger="docflow.test.audit"):
            sink.emit(make_event())
        record = caplog.records[-1]
        assert record.getMessage() == "document.saved document=doc_1 by alice"
        assert record.extra["data"] == {"version": 2}


class TestFormatters:
    """Tests for the JSON and text formatters."""

    def record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("docflow.audit", logging.INFO, __file__, 1, "saved", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_merges_extra(self) -> None:
        """Extra fields become top-level JSON keys."""
        line = JSONFormatter().format(self.record(extra={"entity_id": "doc_1", "data": {"v": 2}}))
        data = json.loads(line)
        assert data["message"] == "saved"
        assert data["entity_id"] == "doc_1"
        assert data["data"] == {"v": 2}

    def test_text_appends_event_fields(self) -> None:
        """Text lines show ids and data of audit events."""
        line = TextFormatter().format(self.record(extra={"entity_id": "doc_1", "data": {"v": 2}}))
        assert line.endswith('[entity_id="doc_1" data={"v": 2}]')

    def test_text_without_extra(self) -> None:
        """Plain records are left alone."""
        assert TextFormatter().format(self.record()).endswith("INFO - saved")
