"""Configuration loading for hladmin.

Two files live in the config directory (``$XDG_CONFIG_HOME/hladmin`` or
``~/.config/hladmin``):

* ``hosts``: line-oriented host groups::

      # comment
      group servers alpha beta
      group laptops gamma
      default servers

* ``config.yaml``: optional tool settings (repository path, SSH defaults).

Both are optional; a missing file yields an empty/default configuration.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, ResolutionError

logger = logging.getLogger(__name__)

GROUP_SIGIL = "@"


def config_dir() -> Path:
    """Return the XDG-compliant config directory."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "hladmin"
    return Path("~/.config/hladmin").expanduser()


def hosts_path() -> Path:
    return config_dir() / "hosts"


def settings_path() -> Path:
    return config_dir() / "config.yaml"


@dataclass
class HostConfig:
    """Named host groups plus an optional default group."""

    groups: dict[str, list[str]] = field(default_factory=dict)
    default_group: str | None = None
    path: Path | None = None  # Path to the file this was loaded from


def load_host_config(path: str | Path | None = None) -> HostConfig:
    """Load host groups from ``path`` (defaults to the hosts file)."""
    path = Path(path) if path is not None else hosts_path()

    if not path.exists():
        logger.debug("No hosts file at %s, using empty configuration", path)
        return HostConfig(path=path)

    try:
        with open(path) as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise ConfigError(f"failed to open config file {path}: {e}") from e

    config = _parse_hosts(lines, path)
    config.path = path
    return config


def _parse_hosts(lines: list[str], path: Path) -> HostConfig:
    """Parse the directive lines of a hosts file."""
    config = HostConfig()

    for line_num, raw in enumerate(lines, start=1):
        line = raw.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        fields = line.split()
        if len(fields) < 2:
            raise ConfigError(f"{path}: invalid syntax on line {line_num}: {line}")

        directive = fields[0]
        if directive == "group":
            if len(fields) < 3:
                raise ConfigError(
                    f"{path}: group directive requires at least one host "
                    f"on line {line_num}: {line}"
                )
            config.groups[fields[1]] = _dedupe(fields[2:])
        elif directive == "default":
            if len(fields) != 2:
                raise ConfigError(
                    f"{path}: default directive requires exactly one group name "
                    f"on line {line_num}: {line}"
                )
            config.default_group = fields[1]
        else:
            raise ConfigError(
                f"{path}: unknown directive '{directive}' on line {line_num}: {line}"
            )

    # The default may be declared before its group, so check once at the end
    if config.default_group is not None and config.default_group not in config.groups:
        raise ConfigError(
            f"{path}: default group '{config.default_group}' is not defined"
        )

    return config


def _dedupe(hosts: list[str]) -> list[str]:
    """Drop repeated hosts, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for host in hosts:
        if host not in seen:
            seen.add(host)
            unique.append(host)
    return unique


def resolve_hosts(args: list[str], config: HostConfig) -> list[str]:
    """Expand hostnames and ``@group`` references into an ordered host list.

    With no arguments the default group is used; if there is none the
    result is empty and the caller decides whether that is an error.
    """
    if not args:
        if config.default_group is not None:
            return list(config.groups[config.default_group])
        return []

    resolved: list[str] = []
    seen: set[str] = set()

    for arg in args:
        if arg.startswith(GROUP_SIGIL):
            group_name = arg[len(GROUP_SIGIL):]
            if not group_name:
                raise ResolutionError(f"empty group name: {arg}")
            if group_name not in config.groups:
                raise ResolutionError(f"unknown group: {group_name}")
            hosts = config.groups[group_name]
        else:
            hosts = [arg]

        for host in hosts:
            if host not in seen:
                seen.add(host)
                resolved.append(host)

    return resolved


@dataclass
class SSHDefaults:
    """Connection options applied to every remote host."""

    user: str | None = None
    port: int | None = None
    ssh_key: Path | None = None
    known_hosts: bool = True
    connect_timeout: int = 30


@dataclass
class Settings:
    """Tool settings loaded from ``config.yaml``."""

    repo_path: str = "$HOME/nix-config"
    shell: str = "bash"
    timeout: float | None = None
    log_dir: Path | None = None
    ssh: SSHDefaults = field(default_factory=SSHDefaults)
    source_path: Path | None = None  # Path to the original settings file


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file, falling back to defaults."""
    path = Path(path) if path is not None else settings_path()

    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read settings file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: settings must be a mapping")

    try:
        settings = _parse_settings(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{path}: {e}") from e
    settings.source_path = path
    return settings


def _parse_ssh(raw: dict[str, Any]) -> SSHDefaults:
    """Parse the ssh section."""
    ssh_raw = raw.get("ssh") or {}
    if not isinstance(ssh_raw, dict):
        raise ValueError("'ssh' must be a mapping")

    ssh_key = ssh_raw.get("ssh_key")
    port = ssh_raw.get("port")
    return SSHDefaults(
        user=ssh_raw.get("user"),
        port=int(port) if port is not None else None,
        ssh_key=Path(ssh_key).expanduser() if ssh_key else None,
        known_hosts=bool(ssh_raw.get("known_hosts", True)),
        connect_timeout=int(ssh_raw.get("connect_timeout", 30)),
    )


def _parse_settings(raw: dict[str, Any]) -> Settings:
    """Parse raw YAML data into a Settings object."""
    timeout = raw.get("timeout")
    if timeout is not None:
        timeout = float(timeout)
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout:g}")

    log_dir = raw.get("log_dir")

    return Settings(
        repo_path=str(raw.get("repo_path", "$HOME/nix-config")),
        shell=str(raw.get("shell", "bash")),
        timeout=timeout,
        log_dir=Path(log_dir).expanduser().resolve() if log_dir else None,
        ssh=_parse_ssh(raw),
    )
