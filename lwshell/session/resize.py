"""
Forwards local terminal geometry changes to the remote PTY.
"""

from __future__ import annotations
import signal
import threading
import logging
from typing import Callable, Optional, Tuple

from .terminal import get_terminal_size

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


class ResizePropagator:
    """
    Watches the local terminal size for the life of a session.

    The size is synced once at start, then again on every change.
    Changes are picked up from SIGWINCH when a handler can be installed
    (POSIX, main thread) and by polling otherwise. Forwarding is best
    effort; a closed channel never ends the session.
    """

    def __init__(
        self,
        channel,
        fd: int,
        stop_event: threading.Event,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        size_func: Optional[Callable[[int], Tuple[int, int]]] = None,
    ):
        self.channel = channel
        self.fd = fd
        self.poll_interval = poll_interval
        self._size_func = size_func or get_terminal_size
        self._stop_event = stop_event
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._previous_handler = None
        self._handler_installed = False
        self.last_size: Optional[Tuple[int, int]] = None

    def start(self) -> None:
        self._install_sigwinch()
        self.sync()
        self._thread = threading.Thread(
            target=self._run, name="lwshell-resize", daemon=True
        )
        self._thread.start()

    def close(self, timeout: Optional[float] = 1.0) -> None:
        """Wake the watcher, wait for it and restore any SIGWINCH handler."""
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._restore_sigwinch()

    def _install_sigwinch(self) -> None:
        if not hasattr(signal, "SIGWINCH"):
            return
        if threading.current_thread() is not threading.main_thread():
            return
        try:
            self._previous_handler = signal.signal(signal.SIGWINCH, self._on_sigwinch)
            self._handler_installed = True
        except (ValueError, OSError) as e:
            logger.debug(f"SIGWINCH unavailable, polling only: {e}")

    def _restore_sigwinch(self) -> None:
        if not self._handler_installed:
            return
        try:
            signal.signal(signal.SIGWINCH, self._previous_handler or signal.SIG_DFL)
        except (ValueError, OSError) as e:
            logger.debug(f"Could not restore SIGWINCH handler: {e}")
        self._handler_installed = False

    def _on_sigwinch(self, signum, frame) -> None:
        self._wake.set()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._wake.wait(self.poll_interval)
            self._wake.clear()
            if self._stop_event.is_set():
                break
            self.sync()

    def sync(self) -> bool:
        """Forward the current size if it changed. Returns True if sent."""
        size = self._size_func(self.fd)
        if size == self.last_size:
            return False
        self.last_size = size
        cols, rows = size
        try:
            self.channel.resize_pty(width=cols, height=rows)
        except Exception as e:
            logger.debug(f"Resize forward failed: {e}")
            return False
        logger.debug(f"Resized remote PTY to {cols}x{rows}")
        return True
