"""Bounded capture of a single run's combined stdout/stderr."""

import codecs
from collections import deque
from collections.abc import Iterator
from datetime import datetime

from tddwatch.models import RunOutcome


class RunOutput:
    """Output of one run, kept to at most ``limit_bytes`` of the most recent lines.

    Bytes are fed in arbitrary chunks as they arrive from the pipe; complete
    lines are stored, the trailing partial line is held back until the next
    newline or close(). When the buffer exceeds its limit the oldest lines
    are dropped, so the tail of the output (where test failures are usually
    reported) is what remains.

    A RunOutput belongs to exactly one run. A new run always gets a new one.
    """

    def __init__(self, limit_bytes: int, run_id: int = 0):
        """Initialize buffer.

        Args:
            limit_bytes: Maximum stored size, counted as UTF-8 bytes including newlines
            run_id: Sequence number of the run this output belongs to
        """
        if limit_bytes <= 0:
            raise ValueError("limit_bytes must be positive")
        self.limit_bytes = limit_bytes
        self.run_id = run_id
        self.started_at = datetime.now()
        self.finished_at: datetime | None = None
        self.outcome: RunOutcome | None = None
        self.dropped_lines = 0
        self.total_lines = 0

        self._lines: deque[str] = deque()
        self._size = 0
        self._partial = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Stored size in bytes."""
        return self._size

    @property
    def truncated(self) -> bool:
        return self.dropped_lines > 0

    def feed(self, data: bytes) -> None:
        """Append raw bytes from the process pipe."""
        if self._closed:
            raise ValueError("output buffer is closed")
        text = self._partial + self._decoder.decode(data)
        *complete, self._partial = text.split("\n")
        for line in complete:
            self._push(line)

    def close(self) -> None:
        """Flush the trailing partial line. Further feed() calls are rejected."""
        if self._closed:
            return
        tail = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        if tail:
            self._push(tail)
        self._closed = True

    def finish(self, outcome: RunOutcome) -> None:
        """Record the run's outcome and completion time."""
        self.close()
        self.outcome = outcome
        self.finished_at = datetime.now()

    def _push(self, line: str) -> None:
        line = line.rstrip("\r")
        size = len(line.encode("utf-8")) + 1
        if size > self.limit_bytes:
            # Keep the end of an oversized line
            raw = line.encode("utf-8")[-(self.limit_bytes - 1) :] if self.limit_bytes > 1 else b""
            line = raw.decode("utf-8", errors="ignore")
            size = len(line.encode("utf-8")) + 1
        self._lines.append(line)
        self.total_lines += 1
        self._size += size
        while self._size > self.limit_bytes and self._lines:
            dropped = self._lines.popleft()
            self._size -= len(dropped.encode("utf-8")) + 1
            self.dropped_lines += 1

    def __iter__(self) -> Iterator[str]:
        # Snapshot so iteration is safe while the run keeps writing
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def lines(self) -> Iterator[str]:
        """Lazily yield stored lines, oldest first."""
        yield from list(self._lines)

    def tail(self, count: int) -> list[str]:
        """Return the last ``count`` stored lines."""
        if count <= 0:
            return []
        return list(self._lines)[-count:]

    def lines_since(self, index: int) -> tuple[list[str], int]:
        """Return stored lines numbered ``index`` or later, plus the next index.

        Lines are numbered from 0 in the order they were produced. Lines that
        were already dropped to honour the byte limit are skipped.
        """
        first = self.total_lines - len(self._lines)
        start = max(index - first, 0)
        return list(self._lines)[start:], self.total_lines

    def text(self) -> str:
        """Stored output joined into a single string."""
        return "\n".join(self._lines)
