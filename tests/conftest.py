"""Shared fixtures."""

import pytest

from signalwatch.database import SignalStore
from signalwatch.models import Actor
from signalwatch.session import StaticSession


@pytest.fixture
def store(tmp_path):
    """A SignalStore backed by a temporary database."""
    return SignalStore(tmp_path / "test.db")


@pytest.fixture
def session():
    return StaticSession(Actor(actor_id="analyst-1", email="analyst@example.com"))


@pytest.fixture
def make_signal():
    """Build a minimal valid signal dict, overriding any field."""

    def _make(title="Ransomware campaign hits regional hospital", **fields):
        return {"title": title, **fields}

    return _make
