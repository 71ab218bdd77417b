"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from workshop_assistant.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from workshop_assistant.tracker import Tracker

    return Tracker(storage=storage)


@pytest.fixture
def mock_completion():
    """Create mock completion client."""
    client = Mock()
    client.complete = AsyncMock(return_value="Test response")
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def web_dev_workshop():
    """The workshop most tests register for."""
    from workshop_assistant.models import Workshop

    return Workshop(
        id="web-dev",
        title="Web Development Fundamentals",
        capacity=5,
        description="HTML, CSS and JavaScript for beginners.",
        location="Tech Campus, Room 101",
        start_date=datetime(2025, 4, 18, 13, 0, tzinfo=timezone.utc),
        end_date=datetime(2025, 4, 18, 16, 0, tzinfo=timezone.utc),
        price=49.99,
        instructor="Sarah Johnson",
    )


@pytest_asyncio.fixture
async def seeded_storage(storage, web_dev_workshop):
    """Storage with a small workshop catalog."""
    from workshop_assistant.models import Workshop

    await storage.save_workshop(web_dev_workshop)
    await storage.save_workshop(
        Workshop(
            id="data-science",
            title="Data Science Essentials",
            capacity=20,
            start_date=datetime(2025, 4, 20, 10, 0, tzinfo=timezone.utc),
        )
    )
    return storage


@pytest_asyncio.fixture
async def controller(seeded_storage, tracker, mock_completion):
    """Create a started DialogueController for testing."""
    from workshop_assistant.dialogue import DialogueController

    dc = DialogueController(
        completion_client=mock_completion,
        storage=seeded_storage,
        tracker=tracker,
        timeout=5.0,
    )
    await dc.start()
    yield dc
    await dc.stop()


async def _add_registrations(storage, workshop_id: str, count: int, user_id=None):
    from workshop_assistant.models import Registration

    for i in range(count):
        await storage.insert_registration(
            Registration(
                id="",
                workshop_id=workshop_id,
                first_name=f"Guest{i}",
                last_name="Attendee",
                email=f"guest{i}@example.com",
                user_id=user_id,
            )
        )


@pytest.fixture
def add_registrations():
    """Helper that inserts ``count`` confirmed registrations for a workshop."""
    return _add_registrations

