"""Unit tests for the append-only Timeline."""

import copy
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from docflow.core import ReviewRecord, Timeline, TimelineEvent, TimelineEventType

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def event(kind: TimelineEventType, note=None) -> TimelineEvent:
    return TimelineEvent(type=kind, actor_id="alice", actor_name="Alice", timestamp=T0, note=note)


class TestTimeline:
    """Tests for Timeline behaviour."""

    def test_append_and_read(self) -> None:
        """Events are kept in append order."""
        timeline = Timeline()
        first = timeline.append(event(TimelineEventType.ASSIGNED))
        timeline.append(event(TimelineEventType.STARTED))
        assert len(timeline) == 2
        assert timeline[0] is first
        assert timeline.latest().type == TimelineEventType.STARTED
        assert [e.type for e in timeline] == [TimelineEventType.ASSIGNED, TimelineEventType.STARTED]
        assert timeline.of_type(TimelineEventType.STARTED) == [timeline[1]]

    def test_rejects_non_events(self) -> None:
        """Only TimelineEvent instances can be appended."""
        with pytest.raises(TypeError):
            Timeline().append({"type": "assigned"})

    def test_no_removal_or_replacement(self) -> None:
        """Entries cannot be deleted, replaced or popped."""
        timeline = Timeline([event(TimelineEventType.ASSIGNED)])
        with pytest.raises(TypeError):
            del timeline[0]
        with pytest.raises(TypeError):
            timeline[0] = event(TimelineEventType.BLOCKED)
        assert not hasattr(timeline, "pop")
        assert not hasattr(timeline, "remove")

    def test_events_are_frozen(self) -> None:
        """A recorded event cannot be edited."""
        recorded = event(TimelineEventType.BLOCKED, note="waiting")
        with pytest.raises(ValidationError):
            recorded.note = "changed"

    def test_empty_latest(self) -> None:
        """latest() on an empty timeline is None."""
        assert Timeline().latest() is None

    def test_deep_copy_is_independent(self) -> None:
        """Appending to a copy leaves the original untouched."""
        original = Timeline([event(TimelineEventType.ASSIGNED)])
        clone = copy.deepcopy(original)
        clone.append(event(TimelineEventType.STARTED))
        assert len(original) == 1
        assert len(clone) == 2

    def test_equality(self) -> None:
        """Timelines compare equal to timelines and lists with the same events."""
        e = event(TimelineEventType.ASSIGNED)
        assert Timeline([e]) == Timeline([e])
        assert Timeline([e]) == [e]


class TestTimelineSerialization:
    """Timelines embedded in models survive JSON."""

    def test_review_history_json(self) -> None:
        """A review history serializes as a list and loads back as a Timeline."""
        record = ReviewRecord(
            review_id="rev_1",
            document_id="doc_1",
            document_title="Plan",
            document_version=1,
            submitter_id="alice",
            submitted_at=T0,
        )
        record.history.append(event(TimelineEventType.SUBMITTED, note="please review"))

        data = record.model_dump(mode="json")
        assert isinstance(data["history"], list)
        assert data["history"][0]["type"] == "submitted"

        loaded = ReviewRecord.model_validate_json(record.model_dump_json())
        assert isinstance(loaded.history, Timeline)
        assert loaded.history[0].note == "please review"

    def test_model_copy_does_not_share_history(self) -> None:
        """Deep model copies get their own timeline."""
        record = ReviewRecord(
            review_id="rev_1",
            document_id="doc_1",
            document_title="Plan",
            document_version=1,
            submitter_id="alice",
            submitted_at=T0,
        )
        clone = record.model_copy(deep=True)
        clone.history.append(event(TimelineEventType.CHECKED))
        assert len(record.history) == 0
