"""Rendering of result batches, status tables and host configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, TextIO

from rich.console import Console
from rich.text import Text

from .config import GROUP_SIGIL, HostConfig
from .executor import Result, failed_hosts
from .status import ERROR, HostStatus

STATUS_COLUMNS = ["HOSTNAME", "HOSTCLASS", "VERSION", "DISK", "MEM", "GIT"]
COLUMN_GAP = 2


@dataclass(frozen=True)
class PresentationConfig:
    """Display options, decided once at startup."""

    color: bool = True

    @classmethod
    def from_environment(cls, environ: Mapping[str, str], stream: TextIO) -> PresentationConfig:
        """Honor NO_COLOR, HLADMIN_NO_COLOR and non-TTY output."""
        if environ.get("NO_COLOR") or environ.get("HLADMIN_NO_COLOR"):
            return cls(color=False)
        isatty = getattr(stream, "isatty", None)
        return cls(color=bool(isatty and isatty()))


def colorize_usage(value: str) -> Text:
    """Color a percentage by severity: >=90 red, >=70 yellow, else green."""
    if value == ERROR:
        return Text(value, style="red")
    if value.endswith("%"):
        try:
            percent = int(value[:-1])
        except ValueError:
            return Text(value)
        if percent >= 90:
            return Text(value, style="red")
        if percent >= 70:
            return Text(value, style="yellow")
        return Text(value, style="green")
    return Text(value)


def _cell(value: str) -> Text:
    return Text(value, style="red" if value == ERROR else "")


class Presenter:
    """Writes everything the user sees on stdout/stderr."""

    def __init__(
        self,
        config: PresentationConfig,
        console: Console | None = None,
        err_console: Console | None = None,
    ):
        self.config = config
        color_system = "auto" if config.color else None
        self.console = console or Console(
            color_system=color_system, highlight=False, soft_wrap=True
        )
        self.err_console = err_console or Console(
            stderr=True, color_system=color_system, highlight=False, soft_wrap=True
        )

    def header(self, hostname: str, command: str) -> None:
        self.console.print(
            f"=== Executing on {hostname}: {command}", style="bold cyan", markup=False
        )

    def footer(self, result: Result) -> None:
        if result.error is not None:
            self.console.print(str(result.error), style="red", markup=False)
        else:
            self.console.print(
                f"=== ✓ Successfully executed on {result.hostname}",
                style="green",
                markup=False,
            )

    def result(self, result: Result) -> None:
        """Header, stdout, stderr, then the error or a success line."""
        self.header(result.hostname, result.command)
        if result.stdout:
            self.console.out(result.stdout, end="", highlight=False)
        if result.stderr:
            self.console.out(result.stderr, end="", highlight=False)
        self.footer(result)

    def transcript(self, batch: list[Result]) -> None:
        for result in batch:
            self.result(result)

    def status_table(self, records: list[HostStatus]) -> None:
        rows = [[Text(name, style="bold") for name in STATUS_COLUMNS]]
        for r in records:
            rows.append(
                [
                    Text(r.hostname, style="bold yellow"),
                    _cell(r.hostclass),
                    _cell(r.version),
                    colorize_usage(r.disk_usage),
                    colorize_usage(r.mem_usage),
                    _cell(r.git_status),
                ]
            )

        # Columns are sized to their widest cell, whatever the terminal width
        widths = [max(row[i].cell_len for row in rows) for i in range(len(STATUS_COLUMNS))]
        for row in rows:
            line = Text()
            for index, cell in enumerate(row):
                line.append_text(cell)
                if index < len(row) - 1:
                    line.append(" " * (widths[index] - cell.cell_len + COLUMN_GAP))
            self.console.print(line, soft_wrap=True)

    def config_summary(self, config: HostConfig) -> None:
        """Show where the config lives plus every group and the default."""
        self._config_location(config)

        if not config.groups:
            self.console.print("No groups defined.", style="yellow")
            return

        self.console.print("Groups:", style="bold cyan")
        for name, hosts in config.groups.items():
            self.console.print(
                Text.assemble("  ", (f"{GROUP_SIGIL}{name}", "bold"), f": {', '.join(hosts)}")
            )
        self.console.print()

        if config.default_group:
            default = Text(config.default_group, style="bold")
        else:
            default = Text("none", style="bright_black")
        self.console.print(Text.assemble(("Default Group:", "cyan"), " ", default))

    def resolution(
        self, config: HostConfig, args: list[str], hosts: list[str] | None
    ) -> None:
        """Show how each argument expands, then the final host list.

        ``hosts`` is None when resolution failed; the offending group is
        marked and no final list is printed.
        """
        self._config_location(config)

        for arg in args:
            if arg.startswith(GROUP_SIGIL):
                group = config.groups.get(arg[len(GROUP_SIGIL):])
                if group is None:
                    target = Text("error: unknown group", style="red")
                else:
                    target = Text(", ".join(group))
                self.console.print(Text.assemble((arg, "bold"), " -> ", target))
            else:
                self.console.print(Text.assemble((arg, "bold yellow"), f" -> {arg}"))

        if hosts is not None:
            self.console.print()
            self.console.print(
                Text.assemble(("Final host list:", "cyan"), " ", ", ".join(hosts))
            )

    def _config_location(self, config: HostConfig) -> None:
        path = config.path
        if path is not None and path.exists():
            line = Text.assemble(("Config:", "cyan"), " ", str(path))
        else:
            line = Text.assemble(
                ("Config:", "cyan"),
                " ",
                ("No configuration file found", "yellow"),
                f" (checked {path or 'unknown'})",
            )
        self.console.print(line)
        self.console.print()

    def message(self, text: str, style: str = "") -> None:
        self.console.print(text, style=style, markup=False)

    def error(self, text: str) -> None:
        self.err_console.print(f"Error: {text}", style="red", markup=False)

    def failures(self, batch: list[Result]) -> None:
        """Name every failed host on stderr."""
        failed = failed_hosts(batch)
        if failed:
            self.err_console.print()
            self.err_console.print(
                f"Failed hosts: {', '.join(failed)}", style="red", markup=False
            )
