"""Tests for status probe decoding and command templates."""

from pathlib import Path

import pytest

from hladmin import commands
from hladmin.errors import LaunchError
from hladmin.executor import Result
from hladmin.status import DELIMITER, HostStatus
from hladmin.transport import LOCALHOST, Transport


def test_decode_well_formed_output() -> None:
    status = HostStatus.decode("alpha", "classA|||rev1|||40%|||55%|||clean\n")

    assert status == HostStatus("alpha", "classA", "rev1", "40%", "55%", "clean")


def test_decode_strips_fields() -> None:
    status = HostStatus.decode("alpha", "  classA ||| rev1|||40% |||55%|||dirty  ")

    assert (status.hostclass, status.version, status.disk_usage) == ("classA", "rev1", "40%")
    assert status.git_status == "dirty"


@pytest.mark.parametrize(
    "output",
    [
        "classA|||rev1|||40%|||55%",
        "classA|||rev1|||40%|||55%|||clean|||extra",
        "",
        "no delimiters at all",
    ],
)
def test_decode_wrong_field_count_is_all_error(output: str) -> None:
    status = HostStatus.decode("alpha", output)

    assert status == HostStatus.failed("alpha")
    assert status.hostname == "alpha"
    assert {status.hostclass, status.version, status.disk_usage,
            status.mem_usage, status.git_status} == {"error"}


def test_from_result_with_error_ignores_stdout() -> None:
    result = Result(
        "beta",
        "probe",
        stdout="classA|||rev1|||40%|||55%|||clean",
        error=LaunchError("beta", "unreachable"),
    )

    assert HostStatus.from_result(result) == HostStatus.failed("beta")


def test_bad_host_does_not_affect_others() -> None:
    results = [
        Result("a", "probe", stdout="c|||r|||1%|||2%|||clean"),
        Result("b", "probe", stdout="garbage"),
        Result("c", "probe", stdout="c|||r|||3%|||4%|||dirty"),
    ]

    records = [HostStatus.from_result(r) for r in results]

    assert [r.hostname for r in records] == ["a", "b", "c"]
    assert records[0].disk_usage == "1%"
    assert records[1] == HostStatus.failed("b")
    assert records[2].git_status == "dirty"


def test_field_names() -> None:
    assert HostStatus.field_names() == [
        "hostclass",
        "version",
        "disk_usage",
        "mem_usage",
        "git_status",
    ]


def test_operation_templates() -> None:
    assert commands.pull_command("$HOME/nix-config") == "cd $HOME/nix-config && git pull"
    assert commands.rebuild_command("/srv/cfg") == "cd /srv/cfg && ./rebuild.sh"
    assert commands.porcelain_command("/srv/cfg") == "cd /srv/cfg && git status --porcelain"
    assert commands.apply_patch_command("/srv/cfg") == "cd /srv/cfg && git apply"
    assert commands.staged_diff_command("/srv/cfg") == "cd /srv/cfg && git diff --cached"


def test_status_probe_joins_five_fields() -> None:
    probe = commands.status_probe("$HOME/nix-config")

    assert probe.count(DELIMITER) == 4
    assert "$HOME/nix-config" in probe


@pytest.mark.asyncio
async def test_status_probe_always_emits_five_fields(tmp_path: Path, monkeypatch) -> None:
    """Even outside a repository every field is present."""
    monkeypatch.setenv("HOSTCLASS", "testbox")

    result = await Transport().run_captured(LOCALHOST, commands.status_probe(str(tmp_path)))
    status = HostStatus.from_result(result)

    assert result.ok
    assert status.hostclass == "testbox"
    assert status.git_status == "error"
    assert status != HostStatus.failed(LOCALHOST)
