"""Tests for result rendering."""

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from hladmin.config import HostConfig
from hladmin.errors import CommandFailedError, LaunchError
from hladmin.executor import Result
from hladmin.presenter import PresentationConfig, Presenter, colorize_usage
from hladmin.status import HostStatus


def _console() -> Console:
    return Console(file=io.StringIO(), color_system=None, width=100, highlight=False, soft_wrap=True)


@pytest.fixture
def presenter() -> Presenter:
    return Presenter(PresentationConfig(color=False), console=_console(), err_console=_console())


def output(presenter: Presenter) -> str:
    return presenter.console.file.getvalue()


def errors(presenter: Presenter) -> str:
    return presenter.err_console.file.getvalue()


def test_transcript_sandwiches_each_host_in_batch_order(presenter: Presenter) -> None:
    batch = [
        Result("a", "uptime", stdout="up 1 day\n"),
        Result("b", "uptime", stderr="ssh: connect refused\n", error=LaunchError("b", "refused")),
        Result("c", "uptime", stdout="up 2 days\n", stderr="warning\n"),
    ]

    presenter.transcript(batch)

    assert output(presenter).splitlines() == [
        "=== Executing on a: uptime",
        "up 1 day",
        "=== ✓ Successfully executed on a",
        "=== Executing on b: uptime",
        "ssh: connect refused",
        "error executing on b: refused",
        "=== Executing on c: uptime",
        "up 2 days",
        "warning",
        "=== ✓ Successfully executed on c",
    ]


def test_output_is_not_interpreted_as_markup(presenter: Presenter) -> None:
    presenter.result(Result("a", "echo", stdout="[bold]literal[/bold]\n"))

    assert "[bold]literal[/bold]" in output(presenter)


def test_footer_only_for_interactive(presenter: Presenter) -> None:
    presenter.footer(Result("a", "rebuild", error=CommandFailedError("a", 1)))

    assert output(presenter) == "error executing on a: exit status 1\n"


def test_status_table(presenter: Presenter) -> None:
    records = [
        HostStatus("alpha", "server", "abc123", "40%", "95%", "clean"),
        HostStatus.failed("beta"),
    ]

    presenter.status_table(records)

    rows = [line.split() for line in output(presenter).splitlines()]
    assert rows == [
        ["HOSTNAME", "HOSTCLASS", "VERSION", "DISK", "MEM", "GIT"],
        ["alpha", "server", "abc123", "40%", "95%", "clean"],
        ["beta", "error", "error", "error", "error", "error"],
    ]


def test_status_table_does_not_truncate_long_values() -> None:
    console = Console(file=io.StringIO(), color_system=None, width=40)
    presenter = Presenter(PresentationConfig(color=False), console=console, err_console=_console())
    revision = "0123456789abcdef0123456789abcdef01234567"

    presenter.status_table([HostStatus("alpha", "server", revision, "1%", "2%", "clean")])

    assert revision in console.file.getvalue()


def test_status_table_keeps_full_rows_at_80_columns() -> None:
    console = Console(file=io.StringIO(), color_system=None, width=80)
    presenter = Presenter(PresentationConfig(color=False), console=console, err_console=_console())
    revision = "0123456789abcdef0123456789abcdef01234567"

    presenter.status_table(
        [
            HostStatus("nas.home.lan", "server", revision, "41%", "55%", "clean"),
            HostStatus.failed("pi"),
        ]
    )

    lines = console.file.getvalue().splitlines()
    assert "…" not in console.file.getvalue()
    assert lines[0].split() == ["HOSTNAME", "HOSTCLASS", "VERSION", "DISK", "MEM", "GIT"]
    assert lines[1].split() == ["nas.home.lan", "server", revision, "41%", "55%", "clean"]
    assert lines[2].split() == ["pi", "error", "error", "error", "error", "error"]
    # Columns line up under their headers
    assert lines[1].index(revision) == lines[0].index("VERSION")
    assert lines[2].index("error") == lines[0].index("HOSTCLASS")


@pytest.mark.parametrize(
    "value, style",
    [("95%", "red"), ("90%", "red"), ("75%", "yellow"), ("12%", "green"), ("error", "red")],
)
def test_colorize_usage(value: str, style: str) -> None:
    assert str(colorize_usage(value).style) == style


def test_colorize_usage_leaves_other_values_plain() -> None:
    assert str(colorize_usage("unknown").style) == ""
    assert str(colorize_usage("n/a%").style) == ""


def test_presentation_config_respects_no_color() -> None:
    tty = MagicMock()
    tty.isatty.return_value = True

    assert PresentationConfig.from_environment({"NO_COLOR": "1"}, tty).color is False
    assert PresentationConfig.from_environment({"HLADMIN_NO_COLOR": "1"}, tty).color is False
    assert PresentationConfig.from_environment({}, tty).color is True
    assert PresentationConfig.from_environment({}, io.StringIO()).color is False


def test_config_summary(presenter: Presenter, tmp_path: Path) -> None:
    path = tmp_path / "hosts"
    path.write_text("group servers alpha beta\n")
    config = HostConfig(groups={"servers": ["alpha", "beta"]}, default_group="servers", path=path)

    presenter.config_summary(config)

    text = output(presenter)
    assert f"Config: {path}" in text
    assert "@servers: alpha, beta" in text
    assert "Default Group: servers" in text


def test_config_summary_without_file(presenter: Presenter, tmp_path: Path) -> None:
    presenter.config_summary(HostConfig(path=tmp_path / "hosts"))

    text = output(presenter)
    assert "No configuration file found" in text
    assert "No groups defined." in text


def test_resolution(presenter: Presenter) -> None:
    config = HostConfig(groups={"g": ["h1", "h2"]})

    presenter.resolution(config, ["@g", "h3"], ["h1", "h2", "h3"])

    text = output(presenter)
    assert "@g -> h1, h2" in text
    assert "h3 -> h3" in text
    assert "Final host list: h1, h2, h3" in text


def test_resolution_marks_unknown_group(presenter: Presenter) -> None:
    presenter.resolution(HostConfig(), ["@nope"], None)

    text = output(presenter)
    assert "@nope -> error: unknown group" in text
    assert "Final host list" not in text


def test_failures_lists_every_failed_host(presenter: Presenter) -> None:
    batch = [
        Result("a", "ls", error=CommandFailedError("a", 1)),
        Result("b", "ls"),
        Result("c", "ls", error=LaunchError("c", "refused")),
    ]

    presenter.failures(batch)

    assert "Failed hosts: a, c" in errors(presenter)
    assert output(presenter) == ""


def test_no_failures_prints_nothing(presenter: Presenter) -> None:
    presenter.failures([Result("a", "ls")])

    assert errors(presenter) == ""
