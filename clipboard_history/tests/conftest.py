"""Shared fixtures for clipboard history tests."""

import shutil
import tempfile

import pytest


class FakeClock:
    """Controllable stand-in for time.time."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def temp_dir():
    """Temporary store directory, removed afterwards."""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)
