"""Shared pytest fixtures.

The Redis double is installed on ``QueueManager._client``; settings point
every artifact and log path at the test's temporary directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from crawlshot.core.config import Settings
from crawlshot.services.queue import QueueManager
from tests.fakes import FakeRedis


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def queue(fake_redis: FakeRedis) -> QueueManager:
    manager = QueueManager(redis_url="redis://localhost:6379")
    manager._client = fake_redis  # type: ignore[assignment]
    return manager


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        redis_url="redis://localhost:6379",
        public_url="http://localhost:3006",
        screenshots_dir=tmp_path / "screenshots",
        log_file=tmp_path / "logs" / "crawlshot.log",
        max_tile_height=1000,
        shutdown_grace_seconds=0,
        handler_timeout_seconds=10,
    )

