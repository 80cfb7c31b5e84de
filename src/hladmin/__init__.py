"""hladmin: Run one operation across many hosts over SSH."""

from .config import HostConfig, Settings, load_host_config, load_settings, resolve_hosts
from .executor import ExecutionMode, Executor, Result, first_error
from .status import HostStatus
from .transport import Transport

__all__ = [
    "HostConfig",
    "Settings",
    "load_host_config",
    "load_settings",
    "resolve_hosts",
    "ExecutionMode",
    "Executor",
    "Result",
    "first_error",
    "HostStatus",
    "Transport",
]
