"""
lwshell/models.py

Data models shared by the store, the session core and the auditor.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class HostRecord:
    """
    A saved remote host.

    Owned by the host store. The session core only ever receives a
    snapshot and never mutates it.
    """
    id: str
    name: str
    host: str
    port: int = DEFAULT_SSH_PORT
    user: str = ""
    password: str = ""
    key_path: str = ""
    group: str = ""

    @property
    def effective_port(self) -> int:
        """Port to dial; non-positive values mean the SSH default."""
        return self.port if self.port and self.port > 0 else DEFAULT_SSH_PORT

    @property
    def address(self) -> str:
        return f"{self.host}:{self.effective_port}"

    @property
    def display_target(self) -> str:
        return f"{self.user}@{self.host}:{self.effective_port}"

    def default_title(self) -> str:
        return f"SSH: {self.name} ({self.display_target})"

    def with_id(self, new_id: str) -> HostRecord:
        return replace(self, id=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HostRecord:
        """Build from a stored dict, ignoring unknown keys."""
        try:
            port = int(data.get("port") or 0)
        except (TypeError, ValueError):
            port = 0
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            host=str(data.get("host") or ""),
            port=port,
            user=str(data.get("user") or ""),
            password=str(data.get("password") or ""),
            key_path=str(data.get("key_path") or ""),
            group=str(data.get("group") or ""),
        )

    def __repr__(self) -> str:
        # Never show the password
        return f"HostRecord({self.id}, {self.name}, {self.display_target})"


@dataclass
class ConnectOptions:
    """Per-invocation overrides. Not persisted."""
    key_path_override: Optional[str] = None
    window_title: Optional[str] = None


class AuditPhase(str, Enum):
    STARTED = "started"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class AuditEvent:
    """One line of the connection audit log."""
    host_id: str
    name: str
    host: str
    port: int
    user: str
    phase: AuditPhase
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_record(
        cls,
        record: HostRecord,
        phase: AuditPhase,
        error: Optional[str] = None,
    ) -> AuditEvent:
        return cls(
            host_id=record.id,
            name=record.name,
            host=record.host,
            port=record.effective_port,
            user=record.user,
            phase=phase,
            error=error,
        )

    @property
    def timestamp_str(self) -> str:
        return self.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
