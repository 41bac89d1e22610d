"""
Open a saved host in a new terminal window.

The new window runs this same program with the host id, so the session
gets its own terminal, its own title and its own audit lines.
"""

from __future__ import annotations
import sys
import shlex
import shutil
import subprocess
import logging
from pathlib import Path
from typing import Optional, List, Callable

from .errors import LaunchError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

# Linux terminal emulators, in order of preference, with the flag that
# introduces the command to run.
LINUX_TERMINALS = (
    ("x-terminal-emulator", ["-e"]),
    ("gnome-terminal", ["--"]),
    ("konsole", ["-e"]),
    ("xterm", ["-e"]),
)


def build_connect_command(host_id: str, config_dir: Optional[Path] = None) -> List[str]:
    """Command line that connects to host_id from a fresh process."""
    cmd = [sys.executable, "-m", "lwshell"]
    if config_dir:
        cmd.extend(["--config-dir", str(config_dir)])
    cmd.extend(["connect", host_id])
    return cmd


def escape_applescript(text: str) -> str:
    """Escape a string for use inside an AppleScript double-quoted literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def macos_script(command: List[str]) -> str:
    shell_line = shlex.join(command)
    return f'tell application "Terminal" to do script "{escape_applescript(shell_line)}"'


def find_linux_terminal(which: Callable[[str], Optional[str]] = shutil.which) -> Optional[List[str]]:
    """Return [path, *flags] for the first terminal emulator on PATH."""
    for name, flags in LINUX_TERMINALS:
        path = which(name)
        if path:
            logger.debug(f"Found terminal: {path}")
            return [path, *flags]
    return None


def open_terminal_window(
    host_id: str,
    config_dir: Optional[Path] = None,
    platform: str = sys.platform,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> List[str]:
    """
    Spawn a new terminal window connected to host_id.

    Returns:
        The argv that was launched

    Raises:
        UnsupportedPlatformError: no way to open a window here
        LaunchError: the terminal could not be started
    """
    command = build_connect_command(host_id, config_dir)

    if platform == "darwin":
        argv = ["osascript", "-e", macos_script(command)]
        try:
            subprocess.run(argv, check=True, capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise LaunchError(cause=e) from e
        logger.info(f"Opened Terminal.app for host {host_id}")
        return argv

    if platform.startswith("linux"):
        terminal = find_linux_terminal(which)
        if terminal is None:
            raise UnsupportedPlatformError(
                "no supported terminal emulator found "
                f"(tried {', '.join(name for name, _ in LINUX_TERMINALS)})"
            )
        argv = terminal + command
        try:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except OSError as e:
            raise LaunchError(cause=e) from e
        logger.info(f"Opened {terminal[0]} for host {host_id}")
        return argv

    raise UnsupportedPlatformError()
