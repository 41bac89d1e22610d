"""
Blocking entry point: connect to a saved host by id.

Used by `lwshell connect ID` and by terminal windows opened through the
launcher.
"""

from __future__ import annotations
import sys
import logging
from typing import Optional, Callable, TextIO

from .audit import ConnectionAuditor
from .config import HostStore, AppSettings
from .errors import LwshellError
from .models import HostRecord, ConnectOptions
from .session.ssh import SSHSession
from .session.title import title_sequence

logger = logging.getLogger(__name__)


def format_banner(record: HostRecord) -> str:
    """Identify the host in the terminal before the remote shell takes over."""
    return (
        f"\n  === {record.name} ===\n"
        f"  Host: {record.host}  |  User: {record.user}  |  Port: {record.effective_port}\n"
        f"  {record.display_target}\n\n"
    )


def write_banner(out: TextIO, record: HostRecord, title: str) -> bool:
    """Best effort: a closed or broken stdout must not abort the attempt."""
    try:
        out.write(title_sequence(title).decode("utf-8"))
        out.write(format_banner(record))
        out.flush()
    except (OSError, ValueError) as e:
        logger.debug(f"Banner not written: {e}")
        return False
    return True


def run_interactive_session(
    host_id: str,
    key_path: Optional[str] = None,
    title: Optional[str] = None,
    store: Optional[HostStore] = None,
    auditor: Optional[ConnectionAuditor] = None,
    settings: Optional[AppSettings] = None,
    session_factory: Callable[..., SSHSession] = SSHSession,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> int:
    """
    Run one interactive session to the host with this id.

    Returns:
        0 if the session ran (whatever the remote exit status was),
        1 if it could not be established. The error is written to err.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err
    store = store or HostStore()
    auditor = auditor or ConnectionAuditor()
    settings = settings or AppSettings()

    try:
        record = store.get(host_id)
    except LwshellError as e:
        print(e, file=err)
        return 1

    options = ConnectOptions(
        key_path_override=key_path,
        window_title=title or record.default_title(),
    )

    # Written before anything else so a killed terminal still leaves a trace
    auditor.record_start(record)

    if settings.show_banner:
        write_banner(out, record, options.window_title)

    try:
        exit_status = session_factory(record, options, settings).run()
    except BaseException as e:
        auditor.record_result(record, e)
        if not isinstance(e, Exception):
            raise
        if isinstance(e, LwshellError):
            logger.debug(f"Session to {record.address} failed: {e!r}")
        else:
            logger.exception(f"Unexpected error in session to {record.address}")
        print(e, file=err)
        return 1

    auditor.record_result(record, None)
    logger.info(f"Session to {record.address} ended with remote status {exit_status}")
    return 0
