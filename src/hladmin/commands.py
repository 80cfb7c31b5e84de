"""Shell command templates for the built-in operations.

``repo`` is inserted unquoted so that ``$HOME`` expands on the target host.
"""

from __future__ import annotations

from .status import DELIMITER

LINUX_MEMORY = "free | grep '^Mem:' | awk '{printf \"%.0f%%\", $3/$2*100}'"

MACOS_MEMORY = (
    "vm_stat | awk '"
    "/^Pages free/ {free=$3} "
    "/^Pages inactive/ {inactive=$3} "
    "/^Pages wired/ {wired=$4} "
    "/^Pages active/ {active=$3} "
    "END {total=free+inactive+wired+active; used=wired+active; "
    "printf \"%.0f%%\", used/total*100}'"
)


def pull_command(repo: str) -> str:
    return f"cd {repo} && git pull"


def rebuild_command(repo: str) -> str:
    return f"cd {repo} && ./rebuild.sh"


def porcelain_command(repo: str) -> str:
    return f"cd {repo} && git status --porcelain"


def apply_patch_command(repo: str) -> str:
    """Apply a patch read from stdin."""
    return f"cd {repo} && git apply"


def memory_command() -> str:
    return (
        f"if command -v free >/dev/null 2>&1; then {LINUX_MEMORY}; "
        f"else {MACOS_MEMORY}; fi"
    )


def status_probe(repo: str) -> str:
    """One command printing hostclass, version, disk, memory and git state.

    Every sub-measurement falls back to a literal token so the output
    always has exactly five fields.
    """
    version = (
        "nixos-version --configuration-revision 2>/dev/null"
        " || darwin-version --configuration-revision 2>/dev/null"
        " || echo unknown"
    )
    disk = "df -h / 2>/dev/null | tail -1 | awk '{print $5}'"
    git = (
        f"cd {repo} 2>/dev/null"
        " && git rev-parse --is-inside-work-tree >/dev/null 2>&1"
        " && if [ -z \"$(git status --porcelain 2>/dev/null)\" ];"
        " then echo clean; else echo dirty; fi"
        " || echo error"
    )
    fields = [
        "${HOSTCLASS:-unknown}",
        f"$({version})",
        f"$({disk} || echo unknown)",
        f"$({memory_command()} 2>/dev/null || echo unknown)",
        f"$({git})",
    ]
    return f"printf '%s\\n' \"{DELIMITER.join(fields)}\""


def staged_diff_command(repo: str) -> str:
    return f"cd {repo} && git diff --cached"
