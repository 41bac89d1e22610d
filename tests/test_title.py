"""Window title keeper."""
from __future__ import annotations

import threading
import time

from lwshell.session.title import TitleKeeper, title_sequence

TITLE = "SSH: db1 (admin@10.0.0.5:22)"


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_sequence_sets_window_and_icon_title():
    seq = title_sequence(TITLE)
    assert seq == f"\x1b]0;{TITLE}\x07\x1b]2;{TITLE}\x07".encode()


def test_writes_immediately_and_periodically(tmp_path):
    device = tmp_path / "tty"
    device.write_bytes(b"")
    stop = threading.Event()
    keeper = TitleKeeper(TITLE, stop, interval=0.02, tty_path=str(device))

    keeper.start()
    assert _wait_for(lambda: keeper.writes >= 3)
    stop.set()
    keeper.join(2.0)

    content = device.read_bytes()
    assert f"\x1b]0;{TITLE}\x07".encode() in content
    assert f"\x1b]2;{TITLE}\x07".encode() in content
    assert content.count(title_sequence(TITLE)) == keeper.writes


def test_no_writes_after_stop(tmp_path):
    device = tmp_path / "tty"
    device.write_bytes(b"")
    stop = threading.Event()
    keeper = TitleKeeper(TITLE, stop, interval=0.01, tty_path=str(device))

    keeper.start()
    assert _wait_for(lambda: keeper.writes >= 1)
    stop.set()
    keeper.join(2.0)
    written = keeper.writes
    time.sleep(0.05)

    assert keeper.writes == written
    assert device.read_bytes().count(title_sequence(TITLE)) == written


def test_stopped_before_start_never_writes(tmp_path):
    device = tmp_path / "tty"
    device.write_bytes(b"")
    stop = threading.Event()
    stop.set()
    keeper = TitleKeeper(TITLE, stop, tty_path=str(device))

    keeper.start()
    keeper.join(2.0)

    assert keeper.writes == 0
    assert device.read_bytes() == b""


def test_missing_device_is_a_no_op(tmp_path):
    stop = threading.Event()
    keeper = TitleKeeper(TITLE, stop, interval=0.01, tty_path=str(tmp_path / "missing" / "tty"))

    keeper.start()
    keeper.join(2.0)

    assert keeper.writes == 0
