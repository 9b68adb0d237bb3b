"""Shared test fixtures for taskboard tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the repo root is importable (pkg.taskboard, verify_board)
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.taskboard.backend import SimulatedBackend
from pkg.taskboard.store import EntityStore


class StepClock:
    """Deterministic clock: each call advances by one second."""

    def __init__(self, start=None):
        self.current = start or datetime(2024, 2, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def backend():
    return SimulatedBackend()


@pytest.fixture
def store(backend):
    return EntityStore(backend=backend)


@pytest.fixture
def clock():
    return StepClock()
