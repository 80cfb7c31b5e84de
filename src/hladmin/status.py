"""Decoding of the compound status probe output."""

from __future__ import annotations

from dataclasses import dataclass, fields

from .executor import Result

DELIMITER = "|||"
ERROR = "error"


@dataclass(frozen=True)
class HostStatus:
    """One row of the status table.

    Either every field was decoded from the probe or every field is
    ``"error"``; a record is never partially filled.
    """

    hostname: str
    hostclass: str
    version: str
    disk_usage: str
    mem_usage: str
    git_status: str

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "hostname"]

    @classmethod
    def failed(cls, hostname: str) -> HostStatus:
        return cls(hostname, *([ERROR] * len(cls.field_names())))

    @classmethod
    def decode(cls, hostname: str, output: str) -> HostStatus:
        """Parse ``a|||b|||c|||d|||e`` into a record."""
        parts = output.strip().split(DELIMITER)
        if len(parts) != len(cls.field_names()):
            return cls.failed(hostname)
        return cls(hostname, *(part.strip() for part in parts))

    @classmethod
    def from_result(cls, result: Result) -> HostStatus:
        if result.error is not None:
            return cls.failed(result.hostname)
        return cls.decode(result.hostname, result.stdout)
