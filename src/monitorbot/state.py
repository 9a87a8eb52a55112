"""Application state container.

AppState is created once by the CLI and passed to the orchestrator in
monitor.py. Tests build it directly with in-memory sinks and stores.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from monitorbot.config import Settings
    from monitorbot.protocols import DiffSink, FetcherProtocol, StoreProtocol


@dataclass
class AppState:
    """Holds all shared runtime state for one run."""

    settings: Settings
    store: StoreProtocol
    fetcher: FetcherProtocol
    sink: DiffSink
    http_client: httpx.AsyncClient | None = None
