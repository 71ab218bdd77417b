"""Tests for Tracker."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from workshop_assistant.tracker import Tracker


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker, storage):
        """Test that track() creates a TraceEvent."""
        await tracker.track(
            event_type="message_received",
            actor="dialogue_controller",
            data={"session_id": "s1"},
        )

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "message_received"
        assert events[0].actor == "dialogue_controller"
        assert events[0].data == {"session_id": "s1"}

    @pytest.mark.asyncio
    async def test_track_generates_id_and_timestamp(self, tracker, storage):
        """Test that track() generates ID and timestamp."""
        before = datetime.now(timezone.utc)
        await tracker.track(event_type="test_event", actor="test_actor", data={})
        after = datetime.now(timezone.utc)

        events = await storage.get_trace_events()
        assert events[0].id
        assert before <= events[0].timestamp <= after

    @pytest.mark.asyncio
    async def test_track_multiple_events(self, tracker, storage):
        """Test tracking multiple events."""
        await tracker.track(event_type="event1", actor="actor1", data={})
        await tracker.track(event_type="event2", actor="actor2", data={})
        await tracker.track(event_type="event3", actor="actor3", data={})

        events = await storage.get_trace_events()
        assert len(events) == 3

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self):
        """Test that a failing store never breaks the caller."""
        storage = Mock()
        storage.save_trace_event = AsyncMock(side_effect=RuntimeError("disk full"))
        tracker = Tracker(storage=storage)

        await tracker.track(event_type="event", actor="actor", data={})

        storage.save_trace_event.assert_awaited_once()
