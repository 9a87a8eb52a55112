"""On-disk response store.

One JSON file per cache key under the state directory. A URL that redirects
gets a relative symlink from its own key to the key of the URL that served
the content, so loading the requested URL transparently yields the final
response.

Every write goes to a temporary sibling and is moved into place with
``os.replace``. Aliases are swapped the same way, which also means an alias is
never written through: saving under a key that is currently a symlink
replaces the link, not the file it points at.

Only one process is expected to use a state directory at a time.
"""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from monitorbot.cache_key import cache_key
from monitorbot.errors import ErrorCode, MonitorbotError
from monitorbot.models.response import ResponseRecord

if TYPE_CHECKING:
    from pathlib import Path

log = structlog.get_logger()

ENTRY_SUFFIX = ".json"
_TMP_SUFFIX = ".tmp"


class ResponseStore:
    """Filesystem-backed response store implementing StoreProtocol."""

    def __init__(self, root: Path, *, discard_corrupt_entries: bool = False) -> None:
        self._root = root
        self._discard_corrupt_entries = discard_corrupt_entries

    @property
    def root(self) -> Path:
        return self._root

    def init_dir(self) -> None:
        """Create the state directory and its parents. Called once at startup."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MonitorbotError(
                code=ErrorCode.CACHE_WRITE_FAILED,
                message=f"Could not create state directory {self._root}: {exc}",
                suggestion="Check permissions or pass a different --state-dir.",
            ) from exc

    def path_for(self, key: str) -> Path:
        return self._root / f"{key}{ENTRY_SUFFIX}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self, key: str) -> ResponseRecord | None:
        """Read the record stored under ``key``, following an alias if present.

        Returns ``None`` when nothing is stored (including a dangling alias).
        """
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            log.debug("cache_miss", key=key)
            return None
        except OSError as exc:
            raise MonitorbotError(
                code=ErrorCode.CACHE_READ_FAILED,
                message=f"Could not read cache entry {path}: {exc}",
                suggestion="Check permissions on the state directory.",
            ) from exc

        try:
            record = ResponseRecord.model_validate_json(data)
        except ValidationError as exc:
            if self._discard_corrupt_entries:
                log.warning("cache_entry_discarded", key=key, path=str(path), exc_info=True)
                return None
            raise MonitorbotError(
                code=ErrorCode.CACHE_CORRUPT,
                message=f"Malformed cache entry {path}",
                suggestion=(
                    "Delete the file to start over for this URL, or enable "
                    "state.discard_corrupt_entries."
                ),
            ) from exc

        log.debug("cache_hit", key=key, url=record.url)
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, key: str, record: ResponseRecord) -> None:
        """Persist ``record`` under ``key``, replacing whatever was there."""
        path = self.path_for(key)
        tmp_path = path.with_name(path.name + _TMP_SUFFIX)
        payload = record.model_dump_json(indent=2).encode("utf-8")

        try:
            _write_bytes_fsync(tmp_path, payload)
            os.replace(tmp_path, path)
            _fsync_directory(self._root)
        except OSError as exc:
            raise MonitorbotError(
                code=ErrorCode.CACHE_WRITE_FAILED,
                message=f"Could not write cache entry {path}: {exc}",
                suggestion="Check free space and permissions on the state directory.",
            ) from exc
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)

        log.debug("cache_saved", key=key, url=record.url, bytes=len(payload))

    def alias(self, requested_key: str, final_key: str) -> None:
        """Make ``requested_key`` resolve to the entry stored under ``final_key``.

        Any regular entry or older alias at ``requested_key`` is replaced.
        """
        path = self.path_for(requested_key)
        tmp_path = path.with_name(path.name + _TMP_SUFFIX)
        # Both live in the same directory, so link to the bare file name.
        target = self.path_for(final_key).name

        try:
            tmp_path.unlink(missing_ok=True)
            tmp_path.symlink_to(target)
            os.replace(tmp_path, path)
            _fsync_directory(self._root)
        except OSError as exc:
            raise MonitorbotError(
                code=ErrorCode.CACHE_WRITE_FAILED,
                message=f"Could not link {path} to {target}: {exc}",
                suggestion="The state directory must be on a filesystem that supports symlinks.",
            ) from exc
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)

        log.debug("alias_updated", key=requested_key, target=final_key)

    def commit(self, requested_key: str, record: ResponseRecord) -> None:
        """Persist a freshly fetched record and point the requested key at it.

        The record is written first. A crash before the alias swap leaves the
        alias on the previous entry, which is still a complete record.
        """
        final_key = cache_key(record.url)
        self.save(final_key, record)
        if final_key != requested_key:
            self.alias(requested_key, final_key)


def _write_bytes_fsync(path: Path, data: bytes) -> None:
    with path.open("wb") as file_obj:
        file_obj.write(data)
        file_obj.flush()
        os.fsync(file_obj.fileno())


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)
