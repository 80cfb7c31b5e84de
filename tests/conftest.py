"""Shared fixtures for hladmin tests."""

import asyncio

import pytest

from hladmin.errors import CommandFailedError
from hladmin.executor import Result


class FakeTransport:
    """In-memory transport recording calls and concurrency."""

    def __init__(self) -> None:
        self.outputs: dict[str, str] = {}
        self.delays: dict[str, float] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str, str, str | None]] = []
        self.finished: list[str] = []
        self.active = 0
        self.max_active = 0

    async def _run(
        self, mode: str, hostname: str, command: str, input: str | None = None
    ) -> Result:
        self.calls.append((mode, hostname, command, input))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(hostname, 0))
        finally:
            self.active -= 1
        self.finished.append(hostname)

        error = CommandFailedError(hostname, 1) if hostname in self.failing else None
        if mode == "attached":
            return Result(hostname, command, error=error)
        stdout = self.outputs.get(hostname, f"hello from {hostname}\n")
        return Result(hostname, command, stdout=stdout, error=error)

    async def run_captured(
        self, hostname: str, command: str, input: str | None = None
    ) -> Result:
        return await self._run("captured", hostname, command, input)

    async def run_attached(self, hostname: str, command: str) -> Result:
        return await self._run("attached", hostname, command)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def patched_transport(monkeypatch, fake_transport: FakeTransport) -> FakeTransport:
    """Make the CLI use the fake transport."""
    monkeypatch.setattr("hladmin.runner.Transport", lambda settings=None: fake_transport)
    return fake_transport
