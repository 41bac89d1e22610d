"""
Interactive SSH session using Paramiko.

Binds a remote shell to the local terminal: the local tty goes into raw
mode, a PTY matching its size is requested on the remote side and bytes
flow unmodified in both directions until the remote shell exits.
"""

from __future__ import annotations
import os
import sys
import select
import socket
import struct
import threading
import logging
from typing import Optional, Callable, List, Dict

import paramiko
from paramiko.common import cMSG_CHANNEL_REQUEST
from paramiko.message import Message

from ..config import AppSettings
from ..models import HostRecord, ConnectOptions
from ..errors import (
    DialError, SessionOpenError, PtyRequestError, ShellError, NotATerminalError,
)
from .credentials import AuthConfig, AuthMethod, resolve_credentials
from .terminal import is_terminal, get_terminal_size, raw_mode
from .title import TitleKeeper
from .resize import ResizePropagator

logger = logging.getLogger(__name__)

# RFC 4254 section 8 terminal mode opcodes
TTY_OP_END = 0
ECHO = 53
TTY_OP_ISPEED = 128
TTY_OP_OSPEED = 129

DEFAULT_TERMINAL_MODES = {
    ECHO: 1,
    TTY_OP_ISPEED: 14400,
    TTY_OP_OSPEED: 14400,
}


def encode_terminal_modes(modes: Dict[int, int]) -> bytes:
    """Encode modes as opcode byte + uint32 pairs, terminated by TTY_OP_END."""
    out = b"".join(struct.pack(">BI", opcode, value) for opcode, value in modes.items())
    return out + struct.pack(">B", TTY_OP_END)


def request_pty(
    channel: paramiko.Channel,
    term: str,
    cols: int,
    rows: int,
    modes: Dict[int, int] = None,
) -> None:
    """
    Send a pty-req with explicit terminal modes.

    Channel.get_pty() always sends an empty mode list, so the request is
    built by hand the same way Paramiko builds it.

    Raises:
        paramiko.SSHException: the server refused the request
    """
    m = Message()
    m.add_byte(cMSG_CHANNEL_REQUEST)
    m.add_int(channel.remote_chanid)
    m.add_string("pty-req")
    m.add_boolean(True)
    m.add_string(term)
    m.add_int(cols)
    m.add_int(rows)
    m.add_int(0)
    m.add_int(0)
    m.add_string(encode_terminal_modes(modes or DEFAULT_TERMINAL_MODES))
    channel._event_pending()
    channel.transport._send_user_message(m)
    channel._wait_for_event()


class AcceptAnyHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """
    Accept every remote host key without recording it.

    Hosts are assumed to live on a trusted network. Set
    strict_host_keys in the settings to verify against known_hosts.
    """

    def missing_host_key(self, client, hostname, key):
        logger.debug(
            f"Accepting {key.get_name()} host key for {hostname} without verification"
        )


class SSHSession:
    """
    One interactive connection to a saved host.

    Blocks the calling thread in run() until the remote shell exits.
    The title keeper, resize watcher and I/O pumps run as daemon threads
    and share a single stop event that is set once when run() is leaving.

    Usage:
        session = SSHSession(record, ConnectOptions(window_title="SSH: db1"))
        exit_status = session.run()
    """

    READ_BUFFER_SIZE = 32768
    STDIN_POLL_INTERVAL = 0.1
    OUTPUT_DRAIN_TIMEOUT = 1.0

    def __init__(
        self,
        record: HostRecord,
        options: Optional[ConnectOptions] = None,
        settings: Optional[AppSettings] = None,
        stdin_fd: Optional[int] = None,
        stdout_fd: Optional[int] = None,
        stderr_fd: Optional[int] = None,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ):
        self.record = record
        self.options = options or ConnectOptions()
        self.settings = settings or AppSettings()

        self._stdin_fd = stdin_fd
        self._stdout_fd = stdout_fd
        self._stderr_fd = stderr_fd
        self._client_factory = client_factory

        self._client: Optional[paramiko.SSHClient] = None
        self._channel: Optional[paramiko.Channel] = None
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._output_threads: List[threading.Thread] = []
        self._title_keeper: Optional[TitleKeeper] = None
        self._resizer: Optional[ResizePropagator] = None

    @property
    def address(self) -> str:
        return self.record.address

    def run(self) -> int:
        """
        Connect, attach the local terminal and wait for the remote shell.

        Returns:
            The remote exit status (-1 if the server did not send one)

        Raises:
            CredentialError: no usable key or password
            DialError, SessionOpenError, PtyRequestError, ShellError
            NotATerminalError, RawModeError
        """
        auth_methods = resolve_credentials(self.record, self.options)
        self._bind_local_fds()

        try:
            self._client = self._dial(auth_methods)
            self._channel = self._open_channel()

            # Checked only once the channel is open: a run without a
            # terminal is still dialed and audited.
            if not is_terminal(self._stdin_fd):
                raise NotATerminalError()

            with raw_mode(self._stdin_fd):
                return self._interactive()
        finally:
            self._stop_event.set()
            self._cleanup()

    def _bind_local_fds(self) -> None:
        """Default to the process stdio for any fd not given explicitly."""
        if self._stdin_fd is None:
            self._stdin_fd = sys.stdin.fileno()
        if self._stdout_fd is None:
            self._stdout_fd = sys.stdout.fileno()
        if self._stderr_fd is None:
            self._stderr_fd = sys.stderr.fileno()

    def _create_client(self) -> paramiko.SSHClient:
        client = self._client_factory()
        if self.settings.strict_host_keys:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(AcceptAnyHostKeyPolicy())
        return client

    def _auth_kwargs(self, auth_methods: List[AuthConfig]) -> dict:
        """
        Convert the resolved methods to SSHClient.connect kwargs.

        SSHClient tries pkey before password, which matches the order
        the resolver produces. Agent and ~/.ssh discovery stay off so only
        the configured credentials are offered.
        """
        kwargs = {
            'username': self.record.user,
            'allow_agent': False,
            'look_for_keys': False,
        }
        for auth in auth_methods:
            if auth.method == AuthMethod.KEY and 'pkey' not in kwargs:
                kwargs['pkey'] = auth.pkey
            elif auth.method == AuthMethod.PASSWORD and 'password' not in kwargs:
                kwargs['password'] = auth.password
        return kwargs

    def _dial(self, auth_methods: List[AuthConfig]) -> paramiko.SSHClient:
        host, port = self.record.host, self.record.effective_port
        logger.info(
            f"Connecting to {self.address} as {self.record.user} "
            f"({', '.join(a.method.value for a in auth_methods)})"
        )

        client = self._create_client()
        try:
            client.connect(
                host,
                port=port,
                timeout=self.settings.connect_timeout,
                **self._auth_kwargs(auth_methods)
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise DialError(e) from e

        transport = client.get_transport()
        if transport and self.settings.keepalive_interval > 0:
            transport.set_keepalive(self.settings.keepalive_interval)
        return client

    def _open_channel(self) -> paramiko.Channel:
        transport = self._client.get_transport()
        try:
            if transport is None or not transport.is_active():
                raise paramiko.SSHException("transport is not active")
            return transport.open_session()
        except (paramiko.SSHException, OSError) as e:
            raise SessionOpenError(e) from e

    def _interactive(self) -> int:
        channel = self._channel
        cols, rows = get_terminal_size(self._stdin_fd)

        try:
            request_pty(channel, self.settings.term_type, cols, rows)
        except (paramiko.SSHException, OSError) as e:
            raise PtyRequestError(e) from e
        logger.debug(f"PTY {self.settings.term_type} {cols}x{rows}")

        self._start_pumps()
        self._start_background()

        try:
            try:
                channel.invoke_shell()
            except (paramiko.SSHException, OSError) as e:
                raise ShellError(e) from e

            exit_status = channel.recv_exit_status()
            logger.info(f"Remote shell on {self.address} exited with status {exit_status}")

            # Let trailing output reach the terminal before the mode is restored
            for thread in self._output_threads:
                thread.join(self.OUTPUT_DRAIN_TIMEOUT)
            return exit_status
        finally:
            # Stop reading stdin while the terminal is still raw
            self._stop_event.set()

    def _start_pumps(self) -> None:
        stdout_pump = threading.Thread(
            target=self._pump_output,
            args=(self._channel.recv, self._stdout_fd),
            name="lwshell-stdout",
            daemon=True,
        )
        stderr_pump = threading.Thread(
            target=self._pump_output,
            args=(self._channel.recv_stderr, self._stderr_fd),
            name="lwshell-stderr",
            daemon=True,
        )
        stdin_pump = threading.Thread(
            target=self._pump_input, name="lwshell-stdin", daemon=True
        )
        self._output_threads = [stdout_pump, stderr_pump]
        self._threads = [stdout_pump, stderr_pump, stdin_pump]
        for thread in self._threads:
            thread.start()

    def _start_background(self) -> None:
        self._resizer = ResizePropagator(
            self._channel,
            self._stdin_fd,
            self._stop_event,
            poll_interval=self.settings.resize_poll_interval,
        )
        self._resizer.start()

        if self.options.window_title:
            self._title_keeper = TitleKeeper(
                self.options.window_title,
                self._stop_event,
                interval=self.settings.title_refresh_interval,
            )
            self._title_keeper.start()

    def _pump_output(self, recv: Callable[[int], bytes], fd: int) -> None:
        """Copy one remote stream to a local fd until EOF."""
        while True:
            try:
                data = recv(self.READ_BUFFER_SIZE)
            except (socket.timeout, paramiko.SSHException, OSError) as e:
                logger.debug(f"Remote read ended: {e}")
                return
            if not data:
                return
            try:
                self._write_all(fd, data)
            except OSError as e:
                logger.debug(f"Local write failed: {e}")
                return

    def _pump_input(self) -> None:
        """Copy local stdin to the remote channel until stopped."""
        while not self._stop_event.is_set():
            try:
                ready, _, _ = select.select(
                    [self._stdin_fd], [], [], self.STDIN_POLL_INTERVAL
                )
            except (OSError, ValueError):
                return
            if not ready or self._stop_event.is_set():
                continue
            try:
                data = os.read(self._stdin_fd, self.READ_BUFFER_SIZE)
            except OSError:
                return
            try:
                if not data:
                    self._channel.shutdown_write()
                    return
                self._channel.sendall(data)
            except (socket.error, paramiko.SSHException, OSError) as e:
                logger.debug(f"Remote write ended: {e}")
                return

    @staticmethod
    def _write_all(fd: int, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]

    def _cleanup(self) -> None:
        """Stop background activity and close the connection."""
        if self._resizer is not None:
            self._resizer.close()
            self._resizer = None

        if self._title_keeper is not None:
            self._title_keeper.join(1.0)
            self._title_keeper = None

        if self._channel is not None:
            try:
                self._channel.close()
            except Exception:
                pass
            self._channel = None

        if self._client is not None:
            try:
                self._client.close()
            except Exception:
                pass
            self._client = None

        for thread in self._threads:
            thread.join(0.5)
        self._threads = []
