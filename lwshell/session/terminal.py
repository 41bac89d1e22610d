"""
Local terminal helpers: tty detection, raw mode and geometry.
"""

from __future__ import annotations
import os
import sys
import logging
from contextlib import contextmanager
from typing import Iterator, Tuple

from ..errors import RawModeError

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == 'win32'

if not IS_WINDOWS:
    import tty
    import termios

DEFAULT_COLS = 80
DEFAULT_ROWS = 24


def is_terminal(fd: int) -> bool:
    """Is this file descriptor an interactive terminal?"""
    try:
        return os.isatty(fd)
    except OSError:
        return False


def get_terminal_size(fd: int) -> Tuple[int, int]:
    """
    Return (cols, rows) for the terminal on fd.

    Falls back to 80x24 when the size cannot be read.
    """
    try:
        size = os.get_terminal_size(fd)
    except (OSError, ValueError):
        return DEFAULT_COLS, DEFAULT_ROWS
    if size.columns <= 0 or size.lines <= 0:
        return DEFAULT_COLS, DEFAULT_ROWS
    return size.columns, size.lines


@contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """
    Put the terminal on fd into raw mode for the duration of the block.

    The previous mode is restored on every exit path, including
    exceptions raised inside the block.
    """
    if IS_WINDOWS:
        raise RawModeError(OSError("raw mode requires a POSIX terminal"))

    try:
        saved = termios.tcgetattr(fd)
        tty.setraw(fd)
    except (termios.error, OSError) as e:
        raise RawModeError(e) from e

    try:
        yield
    finally:
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        except (termios.error, OSError) as e:
            logger.warning(f"Could not restore terminal mode: {e}")
