"""
Interactive session core.

- credentials: pick key/password auth for a saved host
- ssh: SSHSession, the transport bound to the local terminal
- title: TitleKeeper, keeps the window title fixed during a session
- resize: ResizePropagator, forwards local size changes to the remote PTY
"""

from .credentials import (
    AuthMethod,
    AuthConfig,
    resolve_credentials,
    load_private_key,
)
from .ssh import SSHSession, AcceptAnyHostKeyPolicy
from .title import TitleKeeper, title_sequence
from .resize import ResizePropagator
from .terminal import is_terminal, get_terminal_size, raw_mode

__all__ = [
    # Credentials
    "AuthMethod",
    "AuthConfig",
    "resolve_credentials",
    "load_private_key",
    # Transport
    "SSHSession",
    "AcceptAnyHostKeyPolicy",
    # Background activities
    "TitleKeeper",
    "title_sequence",
    "ResizePropagator",
    # Local terminal
    "is_terminal",
    "get_terminal_size",
    "raw_mode",
]
