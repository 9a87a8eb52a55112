"""Integration test fixtures.

Provides a fully wired AppState around a real httpx client (mocked with
respx in the tests), an on-disk store in a temporary directory and an
in-memory sink.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
from structlog.testing import capture_logs

from monitorbot.config import Settings
from monitorbot.fetcher import Fetcher
from monitorbot.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from conftest import RecordingSink

    from monitorbot.store import ResponseStore


@pytest.fixture()
def logs() -> Iterator[list[dict]]:
    """Captured structlog events; also keeps log output off stdout."""
    with capture_logs() as captured:
        yield captured


@pytest.fixture()
async def app_state(
    store: ResponseStore,
    sink: RecordingSink,
    logs: list[dict],
) -> AsyncIterator[AppState]:
    """Full AppState wired for integration tests."""
    settings = Settings()
    async with httpx.AsyncClient() as client:
        yield AppState(
            settings=settings,
            store=store,
            fetcher=Fetcher(client, settings.fetcher.max_redirects),
            sink=sink,
            http_client=client,
        )
