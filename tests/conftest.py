"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``mediaforge``
package regardless of how pytest is invoked, and provides throwaway
SQLite / asset-tree fixtures.
"""
import asyncio
import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from mediaforge.database import build_session_factory, init_db  # noqa: E402
from mediaforge.services.catalog import CatalogStore  # noqa: E402
from mediaforge.services.task_store import TaskStore  # noqa: E402


@pytest.fixture
def task_store(tmp_path):
    """TaskStore over a fresh SQLite file.

    NullPool keeps connections from leaking between ``asyncio.run`` calls.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    return TaskStore(build_session_factory(engine))


@pytest.fixture
def catalog(tmp_path):
    store = CatalogStore(tmp_path / "assets")
    asyncio.run(store.init())
    return store


class RecordingReporter:
    """ProgressReporter stand-in that records events instead of publishing."""

    def __init__(self):
        self.events = []

    def emit_progress(self, task_id, kind, progress):
        self.events.append(("progress", task_id, progress))

    def emit_completed(self, task_id, kind, *, asset_id, output_ref):
        self.events.append(("completed", task_id, asset_id))

    def emit_failed(self, task_id, kind, error):
        self.events.append(("failed", task_id, error))

    async def drain(self):
        return None


@pytest.fixture
def reporter():
    return RecordingReporter()
