"""
Credential resolution - turns a saved host into an ordered list of
authentication methods for the SSH transport.
"""

from __future__ import annotations
import os
import logging
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import Optional, List

import paramiko

from ..models import HostRecord, ConnectOptions
from ..errors import NoCredentialsError, KeyReadError, EncryptedKeyError

logger = logging.getLogger(__name__)

# Tried in order when parsing a key file of unknown type
KEY_CLASSES = (
    paramiko.RSAKey,
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
)


class AuthMethod(Enum):
    KEY = "key"
    PASSWORD = "password"


@dataclass
class AuthConfig:
    """A single authentication method offered to the server."""
    method: AuthMethod
    username: str
    pkey: Optional[paramiko.PKey] = None
    password: Optional[str] = None
    key_path: Optional[str] = None

    def __repr__(self) -> str:
        source = f", key={self.key_path}" if self.key_path else ""
        return f"AuthConfig({self.method.value}, user={self.username}{source})"


def effective_key_path(record: HostRecord, options: Optional[ConnectOptions] = None) -> str:
    """The override path replaces the record's path, it is never merged."""
    if options and options.key_path_override:
        return options.key_path_override
    return record.key_path or ""


def load_private_key(path: str) -> paramiko.PKey:
    """
    Load an unencrypted private key from disk.

    Raises:
        EncryptedKeyError: key is passphrase protected
        KeyReadError: file missing, unreadable or not a supported key
    """
    full_path = os.path.expanduser(path)
    try:
        with open(full_path, "r") as f:
            key_data = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise KeyReadError(path, e) from e

    key_file = StringIO(key_data)
    last_error: Optional[Exception] = None

    for key_class in KEY_CLASSES:
        try:
            key_file.seek(0)
            return key_class.from_private_key(key_file, password=None)
        except paramiko.PasswordRequiredException as e:
            raise EncryptedKeyError(path, e) from e
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
            continue

    raise KeyReadError(
        path, last_error or paramiko.SSHException("Unable to parse private key")
    )


def resolve_credentials(
    record: HostRecord,
    options: Optional[ConnectOptions] = None,
) -> List[AuthConfig]:
    """
    Build the ordered authentication method list for a host.

    Key authentication always comes before password authentication;
    servers evaluate methods in the order they are offered.

    Raises:
        NoCredentialsError: neither a key path nor a password is set
        KeyReadError / EncryptedKeyError: key file could not be used
    """
    methods: List[AuthConfig] = []

    key_path = effective_key_path(record, options)
    if key_path:
        pkey = load_private_key(key_path)
        logger.debug(f"Loaded {pkey.get_name()} key from {key_path}")
        methods.append(AuthConfig(
            method=AuthMethod.KEY,
            username=record.user,
            pkey=pkey,
            key_path=key_path,
        ))

    if record.password:
        methods.append(AuthConfig(
            method=AuthMethod.PASSWORD,
            username=record.user,
            password=record.password,
        ))

    if not methods:
        raise NoCredentialsError()

    return methods
