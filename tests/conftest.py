"""
Shared pytest fixtures and configuration for StudyBuddy tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from studybuddy.engine.session_manager import SessionManager, TutoringEngine
from studybuddy.exceptions import PersistenceFailure
from studybuddy.utils.persistence import InMemoryProgressionStore


class FakeGenerator:
    """
    Deterministic content generator.

    Returns queued responses first, then ``default``. Setting ``gate`` to an
    asyncio.Event makes every call wait for it.
    """

    def __init__(self, default: str = "Here is some tutoring content.", responses: Optional[List[str]] = None):
        self.default = default
        self.responses = list(responses or [])
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, prompt: str, context: str = "") -> str:
        self.calls.append((prompt, context))
        if self.gate is not None:
            await self.gate.wait()
        if self.responses:
            return self.responses.pop(0)
        return self.default

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][0]


class FailingGenerator:
    """Generator whose every call fails."""

    def __init__(self, error: Exception = None):
        self.error = error or RuntimeError("model unavailable")
        self.calls = 0

    async def generate(self, prompt: str, context: str = "") -> str:
        self.calls += 1
        raise self.error


class FlakyStore(InMemoryProgressionStore):
    """In-memory store whose saves fail while ``fail`` is set."""

    def __init__(self):
        super().__init__()
        self.fail = False
        self.saves = 0

    async def save(self, user_id, state):
        if self.fail:
            raise PersistenceFailure("disk full", user_id=user_id)
        self.saves += 1
        await super().save(user_id, state)


class FakeClock:
    """Controllable timezone-aware clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def generator():
    """Fixture providing a fake content generator."""
    return FakeGenerator()


@pytest.fixture
def failing_generator():
    return FailingGenerator()


@pytest.fixture
def store():
    """Fixture providing an empty in-memory progression store."""
    return FlakyStore()


@pytest.fixture
def clock():
    """
    Fixture providing a clock starting Monday 2024-03-04 09:00 UTC.

    Returns:
        FakeClock: call it for the current time, ``advance()`` to move it
    """
    return FakeClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def manager(generator, store, clock):
    """Fixture providing a SessionManager for user-1."""
    return SessionManager("user-1", generator, store, clock=clock)


@pytest.fixture
def engine(generator, store, clock):
    return TutoringEngine(generator, store, clock=clock)


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
