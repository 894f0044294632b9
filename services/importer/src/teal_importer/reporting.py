"""Progress reporting handle passed into the fetch, publish and sweep loops."""

import logging
import time
from typing import Protocol

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Format a duration as ``1h 5m``, ``2m 3s`` or ``4s``."""
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class ProgressReporter(Protocol):
    """Sink for named progress indicators and status lines."""

    def start(self, name: str, total: int | None = None) -> None: ...

    def update(self, name: str, completed: int, detail: str = "") -> None: ...

    def stop(self, name: str, summary: str = "") -> None: ...

    def message(self, text: str) -> None: ...


class LoggingReporter:
    """ProgressReporter that writes through the standard logging setup.

    Each indicator remembers its total and start time so updates can show a
    percentage and elapsed time.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger
        self._active: dict[str, tuple[int | None, float]] = {}

    def start(self, name: str, total: int | None = None) -> None:
        self._active[name] = (total, time.monotonic())
        if total is None:
            self._log.info("%s...", name)
        else:
            self._log.info("%s (%d total)...", name, total)

    def update(self, name: str, completed: int, detail: str = "") -> None:
        total, started = self._active.get(name, (None, time.monotonic()))
        elapsed = format_duration(time.monotonic() - started)
        suffix = f" {detail}" if detail else ""
        if total:
            percent = completed / total * 100
            self._log.info("%s: %d/%d (%.1f%%, %s elapsed)%s", name, completed, total, percent, elapsed, suffix)
        else:
            self._log.info("%s: %d (%s elapsed)%s", name, completed, elapsed, suffix)

    def stop(self, name: str, summary: str = "") -> None:
        total, started = self._active.pop(name, (None, time.monotonic()))
        elapsed = format_duration(time.monotonic() - started)
        self._log.info("%s done in %s%s", name, elapsed, f": {summary}" if summary else "")

    def message(self, text: str) -> None:
        self._log.info("%s", text)
