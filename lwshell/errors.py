"""
Exception hierarchy for connection attempts.

Every fatal error carries a short stage description and keeps the
underlying exception on ``cause`` (and ``__cause__`` when raised with
``from``) so callers can inspect it.
"""

from __future__ import annotations
from typing import Optional


class LwshellError(Exception):
    """Base class for all lwshell errors."""

    stage = "error"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message or self.stage
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


# Configuration

class ConfigError(LwshellError):
    stage = "config error"


class HostNotFoundError(LwshellError):
    stage = "server not found"

    def __init__(self, host_id: str):
        self.host_id = host_id
        super().__init__(f"server not found: {host_id}")


# Credentials

class CredentialError(LwshellError):
    stage = "credential error"


class NoCredentialsError(CredentialError):
    def __init__(self):
        super().__init__("no credentials configured: set a password or a private key path")


class KeyReadError(CredentialError):
    stage = "failed to read private key"

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        super().__init__(f"failed to read private key {path}", cause)


class EncryptedKeyError(KeyReadError):
    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        CredentialError.__init__(
            self,
            f"encrypted private key {path} is not supported; "
            "use an unencrypted key or configure a password",
            cause,
        )


# Transport

class SessionError(LwshellError):
    stage = "session error"

    def __init__(self, cause: Optional[BaseException] = None, message: str = ""):
        super().__init__(message or self.stage, cause)


class DialError(SessionError):
    stage = "connection failed"


class SessionOpenError(SessionError):
    stage = "failed to open session"


class PtyRequestError(SessionError):
    stage = "PTY request failed"


class ShellError(SessionError):
    stage = "failed to start shell"


# Local environment

class NotATerminalError(SessionError):
    stage = "standard input is not a terminal, cannot enter interactive mode"


class RawModeError(SessionError):
    stage = "failed to put terminal into raw mode"


# Launcher

class LaunchError(LwshellError):
    stage = "failed to open terminal"


class UnsupportedPlatformError(LaunchError):
    stage = "opening a new terminal window is not supported on this platform"
