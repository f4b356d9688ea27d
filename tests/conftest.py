"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.exam.memory_store import InMemorySessionStore  # noqa: E402

OPTIONS = {"A": "Option A", "B": "Option B", "C": "Option C", "D": "Option D"}


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite-backed store)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Controllable time source; call it to read, ``advance`` to move forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def seed_bank(store, subject: str, count: int, difficulty: str | None = None, correct: str = "A") -> list[int]:
    """Add ``count`` bank questions for a subject and return their ids."""
    return [
        store.add_question(
            question_text=f"{subject} question {i + 1}",
            options=OPTIONS,
            correct_option=correct,
            subject=subject,
            difficulty=difficulty,
        )
        for i in range(count)
    ]


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemorySessionStore()


@pytest.fixture
def sample_blueprint():
    """Two-block blueprint drawing 3 math (hard) and 2 physics questions."""
    return [
        {"subject": "math", "difficulty": "hard", "count": 3},
        {"subject": "physics", "count": 2},
    ]


@pytest.fixture
def add_questions():
    """Factory fixture: add_questions(store, subject, count, difficulty=None, correct="A")."""
    return seed_bank
