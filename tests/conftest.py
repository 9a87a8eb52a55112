"""Shared test fixtures for the monitorbot test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest

from monitorbot.models.response import ResponseRecord
from monitorbot.store import ResponseStore

if TYPE_CHECKING:
    from pathlib import Path

    from monitorbot.differ import DiffLine

HTML_HEADERS = (("content-type", "text/html; charset=utf-8"),)


class RecordingSink:
    """DiffSink that keeps everything in memory."""

    def __init__(self) -> None:
        self.lines: list[DiffLine] = []
        self.texts: list[str] = []

    def write_line(self, line: DiffLine) -> None:
        self.lines.append(line)

    def write_text(self, text: str) -> None:
        self.texts.append(text)

    @property
    def printed(self) -> list[str]:
        return [str(line) for line in self.lines]


@pytest.fixture()
def make_record() -> Callable[..., ResponseRecord]:
    """Factory for ResponseRecords with HTML defaults."""

    def _make(
        url: str = "https://example.com/",
        body: bytes = b"<p>Hello</p>",
        *,
        status: int = 200,
        headers: tuple[tuple[str, str], ...] = HTML_HEADERS,
    ) -> ResponseRecord:
        return ResponseRecord(
            url=url,
            version="HTTP/1.1",
            status=status,
            headers=headers,
            body=body,
        )

    return _make


@pytest.fixture()
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture()
def store(state_dir: Path) -> ResponseStore:
    """Initialised store in an isolated temporary directory."""
    response_store = ResponseStore(state_dir)
    response_store.init_dir()
    return response_store


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()
