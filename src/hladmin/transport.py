"""Run one command on one host, locally or over SSH."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import asyncssh

from .config import Settings
from .errors import CommandFailedError, CommandTimeoutError, ExecutionError, LaunchError
from .executor import Result

logger = logging.getLogger(__name__)

LOCALHOST = "localhost"


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class Transport:
    """Executes commands in captured or terminal-attached mode.

    ``localhost`` is run through the local shell; every other host name is
    treated as an SSH target (``user@host`` selects the login user).
    Failures are never raised: they are classified and attached to the
    returned ``Result``.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        if not self.settings.ssh.known_hosts:
            logger.warning(
                "SSH host key verification DISABLED - vulnerable to MITM attacks. "
                "Set ssh.known_hosts to true in %s to enable it.",
                self.settings.source_path or "config.yaml",
            )

    async def run_captured(
        self, hostname: str, command: str, input: str | None = None
    ) -> Result:
        """Run ``command`` with stdout and stderr buffered separately."""
        if hostname == LOCALHOST:
            runner = self._run_local_captured(command, input)
        else:
            runner = self._run_remote_captured(hostname, command, input)

        timeout = self.settings.timeout
        try:
            if timeout is not None:
                stdout, stderr, exit_status = await asyncio.wait_for(runner, timeout)
            else:
                stdout, stderr, exit_status = await runner
        except LaunchError as e:
            return Result(hostname, command, error=e)
        except asyncio.TimeoutError:
            return Result(hostname, command, error=CommandTimeoutError(hostname, timeout))
        except asyncssh.Error as e:
            return Result(hostname, command, error=LaunchError(hostname, f"SSH error: {e}"))
        except asyncssh.KeyImportError as e:
            return Result(hostname, command, error=LaunchError(hostname, f"invalid SSH key: {e}"))
        except OSError as e:
            return Result(hostname, command, error=LaunchError(hostname, e))

        error: ExecutionError | None = None
        if exit_status != 0:
            error = CommandFailedError(hostname, exit_status)
        return Result(hostname, command, stdout=stdout, stderr=stderr, error=error)

    async def run_attached(self, hostname: str, command: str) -> Result:
        """Run ``command`` with the controlling terminal wired to it.

        Nothing is captured; only the exit status is classified.
        """
        if hostname == LOCALHOST:
            argv = [self.settings.shell, "-c", command]
        else:
            argv = self.ssh_argv(hostname, command)

        try:
            # stdin/stdout/stderr are inherited from this process
            proc = await asyncio.create_subprocess_exec(*argv)
            exit_status = await proc.wait()
        except OSError as e:
            return Result(hostname, command, error=LaunchError(hostname, e))

        if exit_status != 0:
            return Result(hostname, command, error=CommandFailedError(hostname, exit_status))
        return Result(hostname, command)

    async def _run_local_captured(
        self, command: str, input: str | None
    ) -> tuple[str, str, int | None]:
        proc = await asyncio.create_subprocess_exec(
            self.settings.shell,
            "-c",
            command,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await proc.communicate(
                input.encode() if input is not None else None
            )
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        return _decode(stdout), _decode(stderr), proc.returncode

    async def _run_remote_captured(
        self, hostname: str, command: str, input: str | None
    ) -> tuple[str, str, int | None]:
        try:
            async with asyncssh.connect(**self.connect_options(hostname)) as conn:
                result = await conn.run(command, input=input, check=False, errors="replace")
        except asyncio.TimeoutError as e:
            # wait_for cancels this coroutine, so only connect_timeout lands here
            raise LaunchError(hostname, "connection timed out") from e
        return _decode(result.stdout), _decode(result.stderr), result.returncode

    def connect_options(self, hostname: str) -> dict[str, Any]:
        """Build ``asyncssh.connect`` keyword arguments for a host."""
        user, _, host = hostname.rpartition("@")
        ssh = self.settings.ssh

        options: dict[str, Any] = {
            "host": host,
            "connect_timeout": ssh.connect_timeout,
        }
        username = user or ssh.user
        if username:
            options["username"] = username
        if ssh.port:
            options["port"] = ssh.port
        if ssh.ssh_key:
            options["client_keys"] = [str(ssh.ssh_key)]
        if not ssh.known_hosts:
            options["known_hosts"] = None
        return options

    def ssh_argv(self, hostname: str, command: str) -> list[str]:
        """Build an OpenSSH client command line requesting a pseudo-terminal."""
        ssh = self.settings.ssh
        argv = ["ssh", "-t", "-o", f"ConnectTimeout={ssh.connect_timeout}"]
        if ssh.user and "@" not in hostname:
            argv += ["-l", ssh.user]
        if ssh.port:
            argv += ["-p", str(ssh.port)]
        if ssh.ssh_key:
            argv += ["-i", str(ssh.ssh_key)]
        if not ssh.known_hosts:
            argv += ["-o", "StrictHostKeyChecking=no", "-o", "UserKnownHostsFile=/dev/null"]
        argv += [hostname, command]
        return argv
