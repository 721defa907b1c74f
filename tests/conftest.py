"""Pytest configuration for tests.

Sets up Python path and fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to Python path so imports work correctly
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from tests.fixtures.stream_fixtures import (  # noqa: E402
    FakeClock,
    InMemoryMessageStore,
    RecordingObserver,
    RecordingSleep,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def store():
    return InMemoryMessageStore()
