"""Shared fixtures and paramiko fakes."""
from __future__ import annotations

import threading
from typing import List, Optional

import paramiko
import pytest

from lwshell.models import HostRecord


@pytest.fixture(scope="session")
def rsa_key():
    return paramiko.RSAKey.generate(bits=2048)


@pytest.fixture(scope="session")
def key_file(tmp_path_factory, rsa_key):
    path = tmp_path_factory.mktemp("keys") / "id_rsa"
    rsa_key.write_private_key_file(str(path))
    return path


@pytest.fixture(scope="session")
def encrypted_key_file(tmp_path_factory, rsa_key):
    path = tmp_path_factory.mktemp("keys") / "id_rsa_encrypted"
    rsa_key.write_private_key_file(str(path), password="hunter22")
    return path


@pytest.fixture
def db1() -> HostRecord:
    return HostRecord(
        id="3",
        name="db1",
        host="10.0.0.5",
        port=0,
        user="admin",
        password="secret",
    )


class FakeChannel:
    """Stands in for paramiko.Channel during a session."""

    def __init__(self, output: Optional[List[bytes]] = None, exit_status: int = 0):
        self._output = list(output or [])
        self._lock = threading.Lock()
        self.exit_status = exit_status
        self.shell_invoked = False
        self.closed = False
        self.sent = []
        self.resizes = []
        self.fail_resize = False
        self.fail_shell = False

    def recv(self, size):
        with self._lock:
            if self._output:
                return self._output.pop(0)
        return b""

    def recv_stderr(self, size):
        return b""

    def sendall(self, data):
        self.sent.append(data)

    def shutdown_write(self):
        pass

    def resize_pty(self, width=80, height=24, width_pixels=0, height_pixels=0):
        if self.fail_resize:
            raise paramiko.SSHException("channel closed")
        self.resizes.append((width, height))

    def invoke_shell(self):
        if self.fail_shell:
            raise paramiko.SSHException("shell request denied")
        self.shell_invoked = True

    def recv_exit_status(self):
        return self.exit_status

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, channel: FakeChannel, fail_open: bool = False):
        self.channel = channel
        self.fail_open = fail_open
        self.keepalive = None
        self.sessions_opened = 0

    def is_active(self):
        return True

    def open_session(self):
        if self.fail_open:
            raise paramiko.ChannelException(2, "Connect failed")
        self.sessions_opened += 1
        return self.channel

    def set_keepalive(self, interval):
        self.keepalive = interval


class FakeClient:
    """Stands in for paramiko.SSHClient; records how it was used."""

    def __init__(self, transport: FakeTransport, connect_error: Optional[Exception] = None):
        self.transport = transport
        self.connect_error = connect_error
        self.connect_args = None
        self.connect_kwargs = None
        self.policy = None
        self.loaded_system_keys = False
        self.closed = False

    def set_missing_host_key_policy(self, policy):
        self.policy = policy

    def load_system_host_keys(self):
        self.loaded_system_keys = True

    def connect(self, hostname, **kwargs):
        self.connect_args = (hostname,)
        self.connect_kwargs = kwargs
        if self.connect_error is not None:
            raise self.connect_error

    def get_transport(self):
        return self.transport

    def close(self):
        self.closed = True


@pytest.fixture
def fake_channel():
    return FakeChannel(output=[b"hello from remote\r\n"], exit_status=0)


@pytest.fixture
def fake_client(fake_channel):
    return FakeClient(FakeTransport(fake_channel))
