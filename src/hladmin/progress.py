"""Live "completed/total hosts" indicator for parallel runs."""

from __future__ import annotations

import threading

from rich.console import Console
from rich.status import Status


class ProgressReporter:
    """Spinner showing how many hosts have finished.

    Output for individual hosts is only printed after :meth:`stop`, so the
    spinner line is never interleaved with a transcript.
    """

    def __init__(self, console: Console, message: str, total: int):
        self.console = console
        self.message = message or "Executing on hosts"
        self.total = total
        self.completed = 0
        self._lock = threading.Lock()  # rich refreshes from its own thread
        self._status: Status | None = None
        self._stopped = False

    def _text(self) -> str:
        return f"{self.message}... ({self.completed}/{self.total} hosts)"

    def start(self) -> None:
        if self._status is not None or self._stopped:
            return
        self._status = self.console.status(self._text(), spinner="dots")
        self._status.start()

    def advance(self) -> None:
        """Record one more finished host."""
        with self._lock:
            self.completed += 1
            if self._status is not None:
                self._status.update(self._text())

    def stop(self) -> None:
        """Tear down the spinner; only the first call has any effect."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            if self._status is not None:
                self._status.stop()
        self.console.print(
            f"✓ {self.message} completed ({self.completed}/{self.total} hosts)",
            style="green",
            highlight=False,
        )
