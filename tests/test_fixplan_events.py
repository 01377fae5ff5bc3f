"""Tests for raw stream message classification."""

import json

import pytest

from gitdepsec.fixplan.events import (
    PARSE_ERROR_MESSAGE,
    CompletionEvent,
    ErrorEvent,
    GlobalPlanEvent,
    ProgressEvent,
    parse_stream_message,
    stream_event_adapter,
)


class TestParseStreamMessage:
    """Test mapping raw messages onto typed events."""

    def test_connection_ignored(self):
        assert parse_stream_message('{"type": "connection", "message": "hi"}') is None

    def test_planning_start_and_unknown_ignored(self):
        assert parse_stream_message({"step": "global_planning_start"}) is None
        assert parse_stream_message({"step": "something_new"}) is None

    def test_global_plan(self):
        message = {"step": "global_planning_complete", "data": {"globalFixPlan": "{\"x\": 1}"}}
        event = parse_stream_message(json.dumps(message))
        assert isinstance(event, GlobalPlanEvent)
        assert event.payload == "{\"x\": 1}"

    def test_global_plan_without_data(self):
        event = parse_stream_message({"step": "global_planning_complete"})
        assert isinstance(event, GlobalPlanEvent)
        assert event.payload is None

    def test_planning_error(self):
        event = parse_stream_message({"step": "global_planning_error", "progress": "lodash@4.17.20 failed"})
        assert event == ErrorEvent(message="lodash@4.17.20 failed", critical=False)

    def test_critical_planning_error(self):
        event = parse_stream_message({
            "step": "global_planning_error",
            "progress": "LLM quota exceeded",
            "data": {"isCritical": True},
        })
        assert event.critical is True

    def test_progress(self):
        event = parse_stream_message({
            "step": "synthesis_executive_complete",
            "progress": "Executive summary ready",
            "data": {"ecosystem": "npm", "progress": 55, "executive_summary": {"overview": "x"}},
        })
        assert isinstance(event, ProgressEvent)
        assert event.phase == "synthesis"
        assert event.message == "Executive summary ready"
        assert event.progress == 55.0
        assert event.ecosystem == "npm"
        assert event.fragments["executive_summary"] == {"overview": "x"}

    def test_progress_numeric_status_is_not_a_message(self):
        event = parse_stream_message({"step": "batch_processing", "progress": 30})
        assert event.message is None
        assert event.progress is None
        assert event.ecosystem is None

    def test_completion(self):
        assert isinstance(parse_stream_message({"step": "analysis_complete"}), CompletionEvent)

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "\"text\""])
    def test_unparseable_is_critical(self, raw):
        event = parse_stream_message(raw)
        assert event == ErrorEvent(message=PARSE_ERROR_MESSAGE, critical=True)


class TestStreamEventAdapter:
    def test_discriminated_by_kind(self):
        event = stream_event_adapter.validate_python({"kind": "error", "message": "m", "critical": True})
        assert isinstance(event, ErrorEvent)
        assert event.critical
