"""
lwshell - saved SSH hosts and interactive terminal sessions.

- Saved host list with import/export (JSON, YAML)
- Interactive sessions bound to the local terminal (raw mode, PTY, resize)
- Fixed window title while connected
- Append-only connection audit log
- Open a host in a new terminal window
"""

__version__ = "0.1.0"

from .models import HostRecord, ConnectOptions, AuditEvent, AuditPhase
from .config import AppSettings, SettingsManager, HostStore
from .audit import ConnectionAuditor
from .session.ssh import SSHSession
from .runner import run_interactive_session
from .launcher import open_terminal_window

__all__ = [
    # Models
    "HostRecord",
    "ConnectOptions",
    "AuditEvent",
    "AuditPhase",
    # Configuration
    "AppSettings",
    "SettingsManager",
    "HostStore",
    # Sessions
    "SSHSession",
    "ConnectionAuditor",
    "run_interactive_session",
    "open_terminal_window",
]
