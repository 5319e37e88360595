"""One-way progress channel from a background operation to its consumer."""

from __future__ import annotations

import queue
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union


class Completion(Enum):
    """Sentinel type pushed once an operation is over."""

    FINISHED = "finished"


FINISHED = Completion.FINISHED


@dataclass(frozen=True)
class LogLine:
    """A progress line. Headings are banners, everything else is command output."""

    text: str
    is_heading: bool = False

    @classmethod
    def parse(cls, raw: str, marker: str = "#") -> LogLine:
        """Build a line from raw text, stripping the heading marker if present."""
        if marker and raw.startswith(marker):
            return cls(raw[len(marker) :], True)
        return cls(raw, False)


RelayItem = Union[LogLine, Completion]


class LogRelay:
    """FIFO of log lines terminated by ``FINISHED``.

    Written by exactly one worker thread, read by the polling consumer.
    """

    def __init__(self, marker: str = "#") -> None:
        """Initialize relay."""
        self.marker = marker
        self._queue: "queue.Queue[RelayItem]" = queue.Queue()

    def send(self, raw: str) -> None:
        """Push a line; a leading marker makes it a heading."""
        self._queue.put(LogLine.parse(raw, self.marker))

    def finish(self) -> None:
        """Push the completion sentinel."""
        self._queue.put(FINISHED)

    def poll(self, timeout: Optional[float] = 0.0) -> Optional[RelayItem]:
        """Return the next item, or None if nothing arrived in time.

        Args:
            timeout: Seconds to wait. ``0`` does not block, ``None`` waits
                until an item is available.
        """
        try:
            if timeout == 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


def write_log_mirror(path: Path, lines: Iterable[LogLine]) -> None:
    """Truncate ``path`` and write one line per non-empty log message."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            if not line.text:
                continue
            f.write(line.text.rstrip("\n") + "\n")
