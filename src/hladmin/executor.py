"""Multi-host execution engine for hladmin."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from .errors import ExecutionError

if TYPE_CHECKING:
    from .progress import ProgressReporter
    from .transport import Transport

logger = logging.getLogger(__name__)


class ExecutionMode(Enum):
    """How a command is fanned out across hosts."""

    SEQUENTIAL = "sequential"  # captured, one host at a time
    PARALLEL = "parallel"  # captured, all hosts at once
    INTERACTIVE = "interactive"  # terminal attached, one host at a time


class EngineState(Enum):
    """Lifecycle of a single execute() call."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    COLLECTING = "collecting"
    DONE = "done"


@dataclass(frozen=True)
class Result:
    """Outcome of one command on one host."""

    hostname: str
    command: str
    stdout: str = ""
    stderr: str = ""
    error: ExecutionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Type aliases for callbacks
StartCallback = Callable[[str, str], None]  # (hostname, command) -> None
ResultCallback = Callable[[Result], None]


def first_error(batch: list[Result]) -> ExecutionError | None:
    """Return the error of the first failed host, in batch order."""
    for result in batch:
        if result.error is not None:
            return result.error
    return None


def failed_hosts(batch: list[Result]) -> list[str]:
    return [result.hostname for result in batch if result.error is not None]


class TranscriptLog:
    """Writes each host's result to ``<log_dir>/<timestamp>/<host>.log``."""

    def __init__(self, log_dir: Path):
        self.log_dir = log_dir
        self.run_dir: Path | None = None

    def start(self) -> Path:
        """Create a fresh timestamped directory for this run."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_dir = self.log_dir / timestamp
        self.run_dir.mkdir(parents=True, exist_ok=True)
        return self.run_dir

    def write(self, result: Result) -> None:
        run_dir = self.run_dir or self.start()
        log_file = run_dir / f"{result.hostname.replace('/', '_')}.log"
        with open(log_file, "a") as f:
            f.write(f"$ {result.command}\n")
            f.write(result.stdout)
            if result.stderr:
                f.write(f"STDERR: {result.stderr}")
            f.write(f"ERROR: {result.error}\n" if result.error else "OK\n")


class Executor:
    """Runs one command across a list of hosts.

    Whatever the mode, the returned batch is index-aligned with the input
    host list: ``batch[i].hostname == hosts[i]``.
    """

    def __init__(
        self,
        transport: Transport,
        on_start: StartCallback | None = None,
        on_result: ResultCallback | None = None,
        progress: ProgressReporter | None = None,
        transcript_log: TranscriptLog | None = None,
    ):
        self.transport = transport
        self.on_start = on_start
        self.on_result = on_result
        self.progress = progress
        self.transcript_log = transcript_log
        self.state = EngineState.IDLE

    def _emit_result(self, result: Result) -> None:
        if self.transcript_log:
            self.transcript_log.write(result)
        if self.on_result:
            self.on_result(result)

    def run(
        self,
        hosts: list[str],
        command: str,
        mode: ExecutionMode,
        input: str | None = None,
    ) -> list[Result]:
        """Synchronous wrapper around :meth:`execute`."""
        return asyncio.run(self.execute(hosts, command, mode, input=input))

    async def execute(
        self,
        hosts: list[str],
        command: str,
        mode: ExecutionMode,
        input: str | None = None,
    ) -> list[Result]:
        """Run ``command`` on every host under ``mode`` and return the batch."""
        if not hosts:
            raise ValueError("at least one hostname must be specified")
        if not command.strip():
            raise ValueError("command cannot be empty")
        if input is not None and mode is ExecutionMode.INTERACTIVE:
            raise ValueError("input cannot be sent to an interactive session")

        logger.debug("Executing %r on %d host(s), mode=%s", command, len(hosts), mode.value)
        self.state = EngineState.DISPATCHING

        if mode is ExecutionMode.PARALLEL:
            batch = await self._run_parallel(hosts, command, input)
        elif mode is ExecutionMode.SEQUENTIAL:
            batch = await self._run_sequential(hosts, command, input)
        else:
            batch = await self._run_interactive(hosts, command)

        self.state = EngineState.DONE
        return batch

    async def _run_sequential(
        self, hosts: list[str], command: str, input: str | None
    ) -> list[Result]:
        batch = []
        self.state = EngineState.COLLECTING
        for hostname in hosts:
            result = await self.transport.run_captured(hostname, command, input=input)
            batch.append(result)
            self._emit_result(result)
        return batch

    async def _run_parallel(
        self, hosts: list[str], command: str, input: str | None
    ) -> list[Result]:
        # Each task owns exactly one slot, so completion order cannot
        # reorder the batch.
        slots: dict[int, Result] = {}

        async def run_host(index: int, hostname: str) -> None:
            result = await self.transport.run_captured(hostname, command, input=input)
            slots[index] = result
            logger.debug("Host %s finished (%s)", hostname, "ok" if result.ok else "failed")
            if self.progress:
                self.progress.advance()

        tasks = [run_host(i, hostname) for i, hostname in enumerate(hosts)]

        if self.progress:
            self.progress.start()
        try:
            self.state = EngineState.COLLECTING
            await asyncio.gather(*tasks)
        finally:
            if self.progress:
                self.progress.stop()

        batch = [slots[index] for index in range(len(hosts))]
        for result in batch:
            self._emit_result(result)
        return batch

    async def _run_interactive(self, hosts: list[str], command: str) -> list[Result]:
        batch = []
        self.state = EngineState.COLLECTING
        for hostname in hosts:
            if self.on_start:
                self.on_start(hostname, command)
            # A failed session is reported and the next host still runs
            result = await self.transport.run_attached(hostname, command)
            batch.append(result)
            self._emit_result(result)
        return batch
