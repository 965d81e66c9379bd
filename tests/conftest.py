"""Pytest configuration and shared fixtures."""
import os
from datetime import datetime

import pytest

from pocketpal.storage import create_assistant_store


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
    }


@pytest.fixture
def now():
    """Fixed reference time: Tuesday, March 10, 2026, 9:00 AM."""
    return datetime(2026, 3, 10, 9, 0)


@pytest.fixture
async def memory_store():
    """Connected in-memory store."""
    store = create_assistant_store("memory")
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Connected store, once per backend."""
    kwargs = {"path": tmp_path / "pocketpal.db"} if request.param == "sqlite" else {}
    store = create_assistant_store(request.param, **kwargs)
    await store.connect()
    yield store
    await store.disconnect()
