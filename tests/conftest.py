"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from typing import Optional
from unittest.mock import MagicMock, AsyncMock

import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from session.boundary import CookieAttributes
from session.manager import SessionManager
from session.memory_store import InMemorySessionStore

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

# 2023-11-14T22:13:20Z
FIXED_NOW_MS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: int = FIXED_NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeBoundary:
    """In-memory session boundary recording cookie operations."""

    def __init__(self, cookies: Optional[dict[str, str]] = None):
        self.cookies = dict(cookies or {})
        self.session = None
        self.set_calls: list[tuple[str, str, CookieAttributes]] = []
        self.deleted: list[str] = []

    def get_cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    def set_cookie(self, name: str, value: str, attributes: CookieAttributes) -> None:
        self.cookies[name] = value
        self.set_calls.append((name, value, attributes))

    def delete_cookie(self, name: str, attributes: CookieAttributes) -> None:
        self.cookies.pop(name, None)
        self.deleted.append(name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def manager(memory_store) -> SessionManager:
    """Manager with the k1 secret and a 60 second session lifetime."""
    return SessionManager(memory_store, secret="k1", duration=60)


@pytest.fixture
def boundary() -> FakeBoundary:
    return FakeBoundary()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client for unit tests."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.mget = AsyncMock(return_value=[])
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock(return_value=None)
    return mock
