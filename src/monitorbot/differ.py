"""Line diff and change report.

``diff_lines`` is a classic longest-common-subsequence diff: the common
prefix and suffix are matched directly and the middle is solved with a full
LCS table. Where several alignments are equally long, removals are listed
before the additions that replace them.

``report`` collapses unchanged runs so that at most ``CONTEXT_LEN`` common
lines are shown on either side of a change.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from monitorbot.protocols import DiffSink

CONTEXT_LEN = 2

# Moves recorded while filling the LCS table
_MATCH = 0
_ADD = 1
_REMOVE = 2


class LineKind(StrEnum):
    """Classification of a diff line; the value is its printed prefix."""

    REMOVED = "-"
    ADDED = "+"
    COMMON = " "


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    text: str

    def __str__(self) -> str:
        return f"{self.kind.value}{self.text}"


def diff_lines(old: list[str], new: list[str]) -> list[DiffLine]:
    """Classify every line of ``old`` and ``new`` as removed, added or common."""
    prefix = 0
    while prefix < len(old) and prefix < len(new) and old[prefix] == new[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < len(old) - prefix
        and suffix < len(new) - prefix
        and old[len(old) - 1 - suffix] == new[len(new) - 1 - suffix]
    ):
        suffix += 1

    result = [DiffLine(LineKind.COMMON, line) for line in old[:prefix]]
    result.extend(_lcs_diff(old[prefix : len(old) - suffix], new[prefix : len(new) - suffix]))
    result.extend(DiffLine(LineKind.COMMON, line) for line in old[len(old) - suffix :])
    return result


def _lcs_diff(old: list[str], new: list[str]) -> list[DiffLine]:
    """LCS diff of two line lists with no common prefix or suffix.

    Only two rows of LCS lengths are kept while filling the table. The walk
    back reads one move byte per cell, so memory is ``len(old) * len(new)``
    bytes: a full rewrite of a 10k-line page on both sides needs about 100 MB.
    """
    width = len(new)
    moves = bytearray(len(old) * width)
    above = [0] * (width + 1)
    for i, old_line in enumerate(old):
        row = [0] * (width + 1)
        offset = i * width
        for j, new_line in enumerate(new):
            if old_line == new_line:
                row[j + 1] = above[j] + 1
                moves[offset + j] = _MATCH
            elif row[j] >= above[j + 1]:
                # Preferring additions here puts removals first once the
                # result is reversed.
                row[j + 1] = row[j]
                moves[offset + j] = _ADD
            else:
                row[j + 1] = above[j + 1]
                moves[offset + j] = _REMOVE
        above = row

    result: list[DiffLine] = []
    i, j = len(old), len(new)
    while i > 0 and j > 0:
        move = moves[(i - 1) * width + j - 1]
        if move == _MATCH:
            result.append(DiffLine(LineKind.COMMON, old[i - 1]))
            i -= 1
            j -= 1
        elif move == _ADD:
            result.append(DiffLine(LineKind.ADDED, new[j - 1]))
            j -= 1
        else:
            result.append(DiffLine(LineKind.REMOVED, old[i - 1]))
            i -= 1
    result.extend(DiffLine(LineKind.ADDED, line) for line in reversed(new[:j]))
    result.extend(DiffLine(LineKind.REMOVED, line) for line in reversed(old[:i]))
    result.reverse()
    return result


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` and ``\\r\\n`` only; a final line ending is optional."""
    lines = text.split("\n")
    last = lines.pop()
    lines = [line.removesuffix("\r") for line in lines]
    if last:
        lines.append(last)
    return lines


def report(old_text: str, new_text: str, context_len: int = CONTEXT_LEN) -> list[DiffLine]:
    """Diff two renderings and keep only changes plus their context.

    Common lines are buffered in a window of ``context_len`` lines and
    flushed just before the next change; after a change, up to
    ``context_len`` common lines are passed through before buffering
    resumes. Identical texts yield an empty report.
    """
    lines: list[DiffLine] = []
    pending: deque[DiffLine] = deque(maxlen=context_len)
    since_change: int | None = None

    for line in diff_lines(split_lines(old_text), split_lines(new_text)):
        if line.kind is not LineKind.COMMON:
            lines.extend(pending)
            pending.clear()
            lines.append(line)
            since_change = 0
        elif since_change is not None and since_change < context_len:
            lines.append(line)
            since_change += 1
        else:
            since_change = None
            pending.append(line)

    return lines


def write_report(lines: Iterable[DiffLine], sink: DiffSink) -> int:
    """Send report lines to ``sink``. Returns the number of changed lines."""
    changes = 0
    for line in lines:
        sink.write_line(line)
        if line.kind is not LineKind.COMMON:
            changes += 1
    return changes
