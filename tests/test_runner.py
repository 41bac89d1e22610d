"""Connect-by-id flow: lookup, audit, banner, session."""
from __future__ import annotations

import io
import socket

import pytest

from lwshell.audit import ConnectionAuditor
from lwshell.config import AppSettings, HostStore
from lwshell.errors import DialError
from lwshell.models import HostRecord
from lwshell.runner import run_interactive_session, format_banner
from lwshell.session.ssh import SSHSession
from lwshell.session.title import title_sequence


class RecordingSession:
    """Session factory stand-in; remembers what it was built with."""

    instances = []

    def __init__(self, record, options, settings, error=None, status=0):
        self.record = record
        self.options = options
        self.settings = settings
        self.error = error
        self.status = status
        RecordingSession.instances.append(self)

    def run(self):
        if self.error is not None:
            raise self.error
        return self.status


@pytest.fixture(autouse=True)
def _reset_instances():
    RecordingSession.instances = []


@pytest.fixture
def store(tmp_path, db1):
    store = HostStore(tmp_path)
    store.save([db1, HostRecord(id="8", name="nocreds", host="h.example", user="u")])
    return store


@pytest.fixture
def auditor(tmp_path):
    return ConnectionAuditor(tmp_path / "access.log")


def _lines(auditor):
    return auditor.path.read_text().splitlines()


def _run(host_id, store, auditor, factory=RecordingSession, **kwargs):
    out, err = io.StringIO(), io.StringIO()
    settings = kwargs.pop("settings", AppSettings())
    code = run_interactive_session(
        host_id, store=store, auditor=auditor, settings=settings,
        session_factory=factory, out=out, err=err, **kwargs
    )
    return code, out.getvalue(), err.getvalue()


def test_unknown_id_fails_without_audit(store, auditor):
    code, out, err = _run("42", store, auditor)

    assert code == 1
    assert "42" in err
    assert out == ""
    assert not auditor.path.exists()
    assert RecordingSession.instances == []


def test_success_is_audited_and_banner_shown(store, auditor):
    code, out, err = _run("3", store, auditor)

    assert code == 0
    assert err == ""
    lines = _lines(auditor)
    assert len(lines) == 2
    assert "id=3 name=db1 host=10.0.0.5 port=22 user=admin phase=started" in lines[0]
    assert lines[1].endswith("phase=success")

    title = "SSH: db1 (admin@10.0.0.5:22)"
    assert out.startswith(title_sequence(title).decode())
    assert "=== db1 ===" in out
    assert RecordingSession.instances[0].options.window_title == title


def test_remote_exit_status_does_not_change_result(store, auditor):
    factory = lambda r, o, s: RecordingSession(r, o, s, status=130)

    code, _, _ = _run("3", store, auditor, factory=factory)

    assert code == 0
    assert _lines(auditor)[-1].endswith("phase=success")


def test_overrides_reach_the_session(store, auditor):
    _run("3", store, auditor, key_path="/tmp/other_key", title="prod db")

    options = RecordingSession.instances[0].options
    assert options.key_path_override == "/tmp/other_key"
    assert options.window_title == "prod db"


def test_dial_failure_is_audited(store, auditor):
    error = DialError(socket.timeout("timed out"))
    factory = lambda r, o, s: RecordingSession(r, o, s, error=error)

    code, _, err = _run("3", store, auditor, factory=factory)

    assert code == 1
    assert "connection failed: timed out" in err
    started, failure = _lines(auditor)
    assert started.endswith("phase=started")
    assert "phase=failure" in failure
    assert "err=connection_failed:_timed_out" in failure


def test_missing_credentials_audited_with_real_session(store, auditor):
    code, _, err = _run("8", store, auditor, factory=SSHSession)

    assert code == 1
    assert "no credentials" in err
    lines = _lines(auditor)
    assert [l.split("phase=")[1].split()[0] for l in lines] == ["started", "failure"]


def test_unexpected_error_still_audited(store, auditor):
    factory = lambda r, o, s: RecordingSession(r, o, s, error=RuntimeError("boom"))

    code, _, err = _run("3", store, auditor, factory=factory)

    assert code == 1
    assert "boom" in err
    assert "err=boom" in _lines(auditor)[-1]


def test_interrupt_is_audited_and_reraised(store, auditor):
    factory = lambda r, o, s: RecordingSession(r, o, s, error=KeyboardInterrupt())

    with pytest.raises(KeyboardInterrupt):
        _run("3", store, auditor, factory=factory)

    assert "phase=failure" in _lines(auditor)[-1]


def test_banner_can_be_disabled(store, auditor):
    code, out, _ = _run("3", store, auditor, settings=AppSettings(show_banner=False))

    assert code == 0
    assert out == ""


def test_banner_text(db1):
    banner = format_banner(db1)
    assert "Host: 10.0.0.5" in banner
    assert "Port: 22" in banner
    assert "admin@10.0.0.5" in banner


class _BrokenPipeOut(io.StringIO):
    def write(self, text):
        raise BrokenPipeError(32, "Broken pipe")


def test_broken_stdout_still_gets_a_result_line(store, auditor):
    err = io.StringIO()

    code = run_interactive_session(
        "3", store=store, auditor=auditor, settings=AppSettings(),
        session_factory=RecordingSession, out=_BrokenPipeOut(), err=err,
    )

    assert code == 0
    lines = _lines(auditor)
    assert len(lines) == 2
    assert lines[0].endswith("phase=started")
    assert lines[1].endswith("phase=success")
    assert len(RecordingSession.instances) == 1


def test_closed_stdout_is_not_fatal(store, auditor):
    out = io.StringIO()
    out.close()

    code = run_interactive_session(
        "3", store=store, auditor=auditor, settings=AppSettings(),
        session_factory=RecordingSession, out=out, err=io.StringIO(),
    )

    assert code == 0
    assert len(_lines(auditor)) == 2
