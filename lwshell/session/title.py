"""
Keeps the terminal window title fixed while a session is running.

Remote programs (shells, editors, tmux) like to rewrite the title. We
re-assert ours on a short period by writing OSC sequences straight to the
controlling terminal, so the user always sees which host they are on.
"""

from __future__ import annotations
import os
import threading
import logging
from typing import Optional

logger = logging.getLogger(__name__)

CONTROLLING_TTY = "/dev/tty"
DEFAULT_INTERVAL = 2.0


def title_sequence(title: str) -> bytes:
    """OSC 0 (icon + window) followed by OSC 2 (window) for the title."""
    return f"\x1b]0;{title}\x07\x1b]2;{title}\x07".encode("utf-8", errors="replace")


class TitleKeeper:
    """
    Background writer for the window title.

    Best effort: if the terminal device cannot be opened the keeper does
    nothing. It only writes to the device and never changes its mode.

    Usage:
        stop = threading.Event()
        keeper = TitleKeeper("SSH: db1", stop)
        keeper.start()
        ...
        stop.set()
        keeper.join()
    """

    def __init__(
        self,
        title: str,
        stop_event: threading.Event,
        interval: float = DEFAULT_INTERVAL,
        tty_path: str = CONTROLLING_TTY,
    ):
        self.title = title
        self.interval = interval
        self.tty_path = tty_path
        self._stop_event = stop_event
        self._sequence = title_sequence(title)
        self._thread: Optional[threading.Thread] = None
        self.writes = 0

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name="lwshell-title", daemon=True
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            fd = os.open(self.tty_path, os.O_WRONLY | os.O_NOCTTY)
        except OSError as e:
            logger.debug(f"Title keeper disabled, cannot open {self.tty_path}: {e}")
            return

        try:
            while not self._stop_event.is_set():
                try:
                    os.write(fd, self._sequence)
                    self.writes += 1
                except OSError as e:
                    logger.debug(f"Title write failed: {e}")
                    return
                if self._stop_event.wait(self.interval):
                    break
        finally:
            try:
                os.close(fd)
            except OSError:
                pass
