"""Protocol interfaces for swappable components.

The orchestrator and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory stores, fetchers and sinks
- Report output to go anywhere without the differ knowing about terminals
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from monitorbot.differ import DiffLine
    from monitorbot.models.response import ResponseRecord


class StoreProtocol(Protocol):
    """Interface for the response store."""

    def load(self, key: str) -> ResponseRecord | None: ...

    def save(self, key: str, record: ResponseRecord) -> None: ...

    def alias(self, requested_key: str, final_key: str) -> None: ...

    def commit(self, requested_key: str, record: ResponseRecord) -> None: ...


class FetcherProtocol(Protocol):
    """Interface for the HTTP fetcher."""

    async def fetch(self, url: str) -> ResponseRecord: ...


class DiffSink(Protocol):
    """Destination for reports: diff lines or a full rendering."""

    def write_line(self, line: DiffLine) -> None: ...

    def write_text(self, text: str) -> None: ...
