#!/usr/bin/env python3
"""Main entry point for hladmin."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from . import commands
from .config import HostConfig, Settings, load_host_config, load_settings, resolve_hosts
from .errors import HladminError, ResolutionError
from .executor import ExecutionMode, Executor, Result, TranscriptLog, first_error
from .presenter import PresentationConfig, Presenter
from .progress import ProgressReporter
from .status import HostStatus
from .transport import LOCALHOST, Transport

logger = logging.getLogger(__name__)

EXEC_USAGE = "hladmin exec [--parallel | --interactive] <hosts...> -- <command> [args...]"


@dataclass
class Context:
    """Everything a subcommand needs, built once per invocation."""

    settings: Settings
    presenter: Presenter
    hosts_file: Path | None = None
    transcript_log: TranscriptLog | None = None

    def host_config(self) -> HostConfig:
        return load_host_config(self.hosts_file)

    def resolve(self, names: list[str]) -> list[str]:
        """Resolve host arguments, failing when nothing is selected."""
        hosts = resolve_hosts(names, self.host_config())
        if not hosts:
            raise ResolutionError("at least one hostname must be specified")
        return hosts

    def executor(self, **callbacks) -> Executor:
        return Executor(
            Transport(self.settings), transcript_log=self.transcript_log, **callbacks
        )

    def progress(self, message: str, hosts: list[str]) -> ProgressReporter | None:
        # A spinner for a single host is just noise
        if len(hosts) < 2:
            return None
        return ProgressReporter(self.presenter.err_console, message, len(hosts))

    def run_parallel(
        self, hosts: list[str], command: str, message: str, input: str | None = None
    ) -> list[Result]:
        executor = self.executor(progress=self.progress(message, hosts))
        return executor.run(hosts, command, ExecutionMode.PARALLEL, input=input)


def _exit_status(batch: list[Result]) -> int:
    return 1 if first_error(batch) is not None else 0


def cmd_exec(ctx: Context, args: argparse.Namespace) -> int:
    if not args.command or not " ".join(args.command).strip():
        raise HladminError(f"no command specified after '--'. Usage: {EXEC_USAGE}")
    hosts = ctx.resolve(args.hosts)
    command = " ".join(args.command)
    presenter = ctx.presenter

    if args.interactive:
        executor = ctx.executor(on_start=presenter.header, on_result=presenter.footer)
        batch = executor.run(hosts, command, ExecutionMode.INTERACTIVE)
    elif args.parallel:
        batch = ctx.run_parallel(hosts, command, "Executing on hosts")
        presenter.transcript(batch)
    else:
        executor = ctx.executor(on_result=presenter.result)
        batch = executor.run(hosts, command, ExecutionMode.SEQUENTIAL)

    presenter.failures(batch)
    return _exit_status(batch)


def cmd_pull(ctx: Context, args: argparse.Namespace) -> int:
    hosts = ctx.resolve(args.hosts)
    batch = ctx.run_parallel(
        hosts, commands.pull_command(ctx.settings.repo_path), "Pulling changes"
    )
    ctx.presenter.transcript(batch)
    ctx.presenter.failures(batch)
    return _exit_status(batch)


def cmd_rebuild(ctx: Context, args: argparse.Namespace) -> int:
    if args.local and not args.hosts:
        # --local alone never falls back to the default group
        hosts = [LOCALHOST]
    else:
        hosts = ctx.resolve(args.hosts)
        if args.local:
            hosts = [LOCALHOST] + [host for host in hosts if host != LOCALHOST]

    presenter = ctx.presenter
    executor = ctx.executor(on_start=presenter.header, on_result=presenter.footer)
    batch = executor.run(
        hosts, commands.rebuild_command(ctx.settings.repo_path), ExecutionMode.INTERACTIVE
    )
    presenter.failures(batch)
    return _exit_status(batch)


def cmd_status(ctx: Context, args: argparse.Namespace) -> int:
    hosts = ctx.resolve(args.hosts)
    batch = ctx.run_parallel(
        hosts, commands.status_probe(ctx.settings.repo_path), "Collecting status"
    )
    for result in batch:
        if result.error is not None:
            logger.info("%s", result.error)
    ctx.presenter.status_table([HostStatus.from_result(result) for result in batch])
    return _exit_status(batch)


def cmd_push_staged(ctx: Context, args: argparse.Namespace) -> int:
    presenter = ctx.presenter
    repo = ctx.settings.repo_path

    hosts = ctx.resolve(args.hosts)

    diff = asyncio.run(
        Transport(ctx.settings).run_captured(LOCALHOST, commands.staged_diff_command(repo))
    )
    if diff.error is not None:
        raise HladminError(f"failed to check staged changes: {diff.error}")
    if not diff.stdout:
        presenter.message("No staged changes found")
        return 0

    if args.dry_run:
        presenter.message("Staged changes:", style="bold")
        presenter.console.out(diff.stdout, highlight=False)

    checks = ctx.run_parallel(hosts, commands.porcelain_command(repo), "Checking repositories")

    failed = False
    clean = []
    for result in checks:
        if result.error is not None:
            presenter.message(f"{result.hostname}: error checking status: {result.error}", style="red")
            failed = True
        elif result.stdout.strip():
            presenter.message(f"{result.hostname}: repository is dirty, skipping", style="yellow")
        elif args.dry_run:
            presenter.message(f"{result.hostname}: repository is clean, would apply patch")
        else:
            clean.append(result.hostname)

    if clean:

        def report(result: Result) -> None:
            if result.error is not None:
                presenter.message(
                    f"{result.hostname}: error applying patch: {result.error}", style="red"
                )
            else:
                presenter.message(f"{result.hostname}: patch applied successfully", style="green")

        executor = ctx.executor(on_result=report)
        applied = executor.run(
            clean, commands.apply_patch_command(repo), ExecutionMode.SEQUENTIAL, input=diff.stdout
        )
        failed = failed or first_error(applied) is not None

    return 1 if failed else 0


def cmd_resolve(ctx: Context, args: argparse.Namespace) -> int:
    config = ctx.host_config()
    if not args.hosts:
        ctx.presenter.config_summary(config)
        return 0

    try:
        hosts = resolve_hosts(args.hosts, config)
    except ResolutionError:
        ctx.presenter.resolution(config, args.hosts, None)
        raise
    ctx.presenter.resolution(config, args.hosts, hosts)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hladmin",
        description="Run commands across homelab hosts over SSH",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--hosts-file", type=Path, help="Override the host groups file")
    parser.add_argument("--settings", type=Path, help="Override the settings file")
    parser.add_argument("--log-dir", type=Path, help="Write per-host transcripts to this directory")

    subparsers = parser.add_subparsers(dest="subcommand", required=True, metavar="command")
    hosts_help = "Hostnames or @group references (default group when omitted)"

    exec_parser = subparsers.add_parser(
        "exec", help="Execute a command on hosts", usage=EXEC_USAGE
    )
    mode = exec_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-p", "--parallel", action="store_true", help="Execute on hosts concurrently"
    )
    mode.add_argument(
        "-i", "--interactive", action="store_true",
        help="Attach the terminal to each host in turn",
    )
    exec_parser.add_argument("hosts", nargs="*", help=hosts_help)
    exec_parser.set_defaults(handler=cmd_exec)

    pull_parser = subparsers.add_parser("pull", help="Run git pull in the repository on hosts")
    pull_parser.add_argument("hosts", nargs="*", help=hosts_help)
    pull_parser.set_defaults(handler=cmd_pull)

    rebuild_parser = subparsers.add_parser(
        "rebuild", help="Run the rebuild script interactively on hosts"
    )
    rebuild_parser.add_argument(
        "--local", action="store_true", help="Include localhost in the rebuild"
    )
    rebuild_parser.add_argument("hosts", nargs="*", help=hosts_help)
    rebuild_parser.set_defaults(handler=cmd_rebuild)

    status_parser = subparsers.add_parser("status", help="Show status information for hosts")
    status_parser.add_argument("hosts", nargs="*", help=hosts_help)
    status_parser.set_defaults(handler=cmd_status)

    push_parser = subparsers.add_parser(
        "push-staged", help="Apply locally staged changes to clean hosts"
    )
    push_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be done without making changes"
    )
    push_parser.add_argument("hosts", nargs="*", help=hosts_help)
    push_parser.set_defaults(handler=cmd_push_staged)

    resolve_parser = subparsers.add_parser(
        "resolve", help="Show host configuration and resolve groups"
    )
    resolve_parser.add_argument("hosts", nargs="*", help=hosts_help)
    resolve_parser.set_defaults(handler=cmd_resolve)

    return parser


def _split_command(argv: list[str]) -> tuple[list[str], list[str] | None]:
    """Split ``argv`` at the first ``--``; the rest is the remote command."""
    if "--" not in argv:
        return argv, None
    index = argv.index("--")
    return argv[:index], argv[index + 1:]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("asyncssh").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    argv, command = _split_command(argv)

    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.subcommand == "exec":
        args.command = command
    elif command is not None:
        parser.error(f"unexpected '--' for {args.subcommand}")

    _configure_logging(args.verbose)
    presenter = Presenter(PresentationConfig.from_environment(os.environ, sys.stdout))

    try:
        settings = load_settings(args.settings)
        log_dir = args.log_dir or settings.log_dir
        ctx = Context(
            settings=settings,
            presenter=presenter,
            hosts_file=args.hosts_file,
            transcript_log=TranscriptLog(log_dir) if log_dir else None,
        )
        return args.handler(ctx, args)
    except HladminError as e:
        presenter.error(str(e))
        return 1
    except KeyboardInterrupt:
        presenter.error("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
