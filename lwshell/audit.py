"""
Append-only connection audit log.

One line per event:

    2026-10-19T08:30:00Z event=connect id=3 name=db1 host=10.0.0.5 port=22 user=admin phase=started
    2026-10-19T08:41:12Z event=connect id=3 name=db1 host=10.0.0.5 port=22 user=admin phase=failure err="connection failed: ..."

Every write opens the file, appends, fsyncs and closes it again, so a
process killed mid-session still leaves its "started" line on disk.
Logging is best effort: failures are swallowed and never reach the
connection attempt.
"""

from __future__ import annotations
import os
import json
import logging
from pathlib import Path
from typing import Optional

from .config import default_config_dir, AUDIT_LOG_NAME
from .models import HostRecord, AuditEvent, AuditPhase

logger = logging.getLogger(__name__)

_QUOTE_TRIGGERS = ('"', '\\')


def escape_value(value: str) -> str:
    """
    Render a field value as a single token.

    Spaces and tabs become underscores. Anything that still contains
    whitespace, a control character, a quote or a backslash is written
    as a JSON string. Control characters therefore appear as \\uXXXX
    escapes (BEL is \\u0007, not \\a), and a JSON parser can read the
    value back.
    """
    value = value.replace(" ", "_").replace("\t", "_")
    if not value:
        return '""'
    if any(c.isspace() or not c.isprintable() for c in value) or any(
        t in value for t in _QUOTE_TRIGGERS
    ):
        return json.dumps(value, ensure_ascii=False)
    return value


def format_event(event: AuditEvent) -> str:
    """Format an event as one log line, without the trailing newline."""
    fields = [
        ("event", "connect"),
        ("id", event.host_id),
        ("name", event.name),
        ("host", event.host),
        ("port", str(event.port)),
        ("user", event.user),
        ("phase", event.phase.value),
    ]
    if event.phase == AuditPhase.FAILURE and event.error is not None:
        fields.append(("err", event.error))

    tokens = [event.timestamp_str]
    tokens.extend(f"{key}={escape_value(value)}" for key, value in fields)
    return " ".join(tokens)


class ConnectionAuditor:
    """
    Records connection attempts.

    Usage:
        auditor = ConnectionAuditor()
        auditor.record_start(record)
        ...
        auditor.record_result(record, error)
    """

    def __init__(self, path: Path = None):
        self._path = Path(path) if path else default_config_dir() / AUDIT_LOG_NAME

    @property
    def path(self) -> Path:
        return self._path

    def record_start(self, record: HostRecord) -> None:
        self.write(AuditEvent.for_record(record, AuditPhase.STARTED))

    def record_result(self, record: HostRecord, error: Optional[BaseException] = None) -> None:
        if error is None:
            event = AuditEvent.for_record(record, AuditPhase.SUCCESS)
        else:
            event = AuditEvent.for_record(record, AuditPhase.FAILURE, str(error))
        self.write(event)

    def write(self, event: AuditEvent) -> bool:
        """Append one event and flush it to disk. Returns False on failure."""
        line = (format_event(event) + "\n").encode("utf-8", errors="replace")
        try:
            self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(
                str(self._path),
                os.O_WRONLY | os.O_CREAT | os.O_APPEND,
                0o600,
            )
        except OSError as e:
            logger.debug(f"Audit log unavailable at {self._path}: {e}")
            return False

        try:
            os.write(fd, line)
            os.fsync(fd)
            return True
        except OSError as e:
            logger.debug(f"Audit write failed: {e}")
            return False
        finally:
            os.close(fd)
