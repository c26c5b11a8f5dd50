"""Batch filtering of log files into a filtered copy with context lines."""

from __future__ import annotations

import logging
import os
import tempfile
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os

from loglens.errors import IoError
from loglens.matcher import MatchPlan, check_line, compile_groups
from loglens.models import ProcessResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from loglens.models import FilterGroup

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "filtered_"


def default_output_path(prefix: str = DEFAULT_PREFIX, now: datetime | None = None) -> Path:
    """Timestamped output file in the system temp directory."""
    stamp = (now or datetime.now()).strftime("%y%m%d_%H%M%S")  # noqa: DTZ005 - local time in file name
    return Path(tempfile.gettempdir()) / f"{prefix}{stamp}.log"


def merge_windows(windows: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    """Merge inclusive (start, end) line windows that overlap or touch."""
    merged: list[tuple[int, int]] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1] + 1:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def select_lines(lines: list[str], groups: Iterable[FilterGroup]) -> tuple[list[int], int]:
    """Indices of lines to keep (matches plus context), and the primary match count."""
    plan = compile_groups(groups)
    last = len(lines) - 1
    windows: list[tuple[int, int]] = []
    for i, line in enumerate(lines):
        result = check_line(line, plan)
        if result.matched:
            n = result.context_lines
            windows.append((max(0, i - n), min(last, i + n)))
    indices = [i for start, end in merge_windows(windows) for i in range(start, end + 1)]
    return indices, len(windows)


@dataclass(slots=True)
class _Pending:
    index: int
    text: str
    keep: bool = False


class _ContextWindow:
    """Streaming context expansion.

    The last max_context lines stay pending, since a later match may still
    pull them in as context. A line is written (if kept) once it falls out
    of that range, and the rest are written by flush at end of input, so
    every line is emitted at most once and in file order.
    """

    def __init__(self, plan: MatchPlan) -> None:
        self._plan = plan
        self._lookback = plan.max_context
        self._pending: deque[_Pending] = deque()
        self._ahead = 0
        self.processed = 0
        self.matched = 0

    def feed(self, line: str) -> list[str]:
        index = self.processed
        self.processed += 1
        entry = _Pending(index, line)
        result = check_line(line, self._plan)
        if result.matched:
            self.matched += 1
            first = index - result.context_lines
            for pending in reversed(self._pending):
                if pending.index < first:
                    break
                pending.keep = True
            entry.keep = True
            self._ahead = max(self._ahead - 1, result.context_lines)
        elif self._ahead > 0:
            self._ahead -= 1
            entry.keep = True
        self._pending.append(entry)

        out: list[str] = []
        while len(self._pending) > self._lookback:
            done = self._pending.popleft()
            if done.keep:
                out.append(done.text)
        return out

    def flush(self) -> list[str]:
        out = [p.text for p in self._pending if p.keep]
        self._pending.clear()
        return out


def _prepare_output(output_path: Path | None, prefix: str | None) -> tuple[Path, Path]:
    target = output_path if output_path is not None else default_output_path(prefix or DEFAULT_PREFIX)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
        os.close(fd)
    except OSError as e:
        msg = f"Cannot create output file in {target.parent}: {e}"
        raise IoError(msg) from e
    return target, Path(tmp_name)


def _discard(tmp: Path) -> None:
    try:
        tmp.unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove partial output %s", tmp)


def process_file(
    path: Path | str,
    groups: Iterable[FilterGroup],
    output_path: Path | str | None = None,
    *,
    prefix: str | None = None,
) -> ProcessResult:
    """Filter a log file line by line into a new file.

    matched counts primary matches only; context lines are written but not
    counted. The output is written to a temporary file and moved into place
    on success, so a failed run leaves no partial output behind.
    """
    source = Path(path)
    window = _ContextWindow(compile_groups(groups))
    target, tmp = _prepare_output(Path(output_path) if output_path is not None else None, prefix)
    try:
        with source.open(encoding="utf-8", errors="replace") as src, tmp.open("w", encoding="utf-8") as dst:
            for raw_line in src:
                for out in window.feed(raw_line.rstrip("\r\n")):
                    dst.write(out + "\n")
            for out in window.flush():
                dst.write(out + "\n")
        tmp.replace(target)
    except OSError as e:
        _discard(tmp)
        msg = f"Failed to filter {source}: {e}"
        raise IoError(msg) from e

    logger.info("Filtered %s: %d of %d lines matched -> %s", source, window.matched, window.processed, target)
    return ProcessResult(processed=window.processed, matched=window.matched, output_path=str(target))


async def process_file_async(
    path: Path | str,
    groups: Iterable[FilterGroup],
    output_path: Path | str | None = None,
    *,
    prefix: str | None = None,
) -> ProcessResult:
    """Async variant of process_file; yields to the event loop around file I/O."""
    source = Path(path)
    window = _ContextWindow(compile_groups(groups))
    target, tmp = _prepare_output(Path(output_path) if output_path is not None else None, prefix)
    try:
        async with (
            aiofiles.open(source, encoding="utf-8", errors="replace") as src,
            aiofiles.open(tmp, "w", encoding="utf-8") as dst,
        ):
            async for raw_line in src:
                lines = window.feed(raw_line.rstrip("\r\n"))
                if lines:
                    await dst.write("".join(f"{out}\n" for out in lines))
            lines = window.flush()
            if lines:
                await dst.write("".join(f"{out}\n" for out in lines))
        await aiofiles.os.replace(tmp, target)
    except OSError as e:
        _discard(tmp)
        msg = f"Failed to filter {source}: {e}"
        raise IoError(msg) from e

    logger.info("Filtered %s: %d of %d lines matched -> %s", source, window.matched, window.processed, target)
    return ProcessResult(processed=window.processed, matched=window.matched, output_path=str(target))
