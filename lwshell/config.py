"""
Persistent settings and the saved host list.

Everything lives under ~/.lwshell (override with LWSHELL_HOME):
    config.json   - application settings
    servers.json  - saved hosts
    access.log    - connection audit log
"""

from __future__ import annotations
import os
import json
import logging
import tempfile
from dataclasses import dataclass, asdict, replace
from pathlib import Path
from typing import Optional, List

from .models import HostRecord, DEFAULT_SSH_PORT
from .errors import ConfigError, HostNotFoundError

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "LWSHELL_HOME"
SETTINGS_FILE_NAME = "config.json"
SERVERS_FILE_NAME = "servers.json"
AUDIT_LOG_NAME = "access.log"


def default_config_dir() -> Path:
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".lwshell"


@dataclass
class AppSettings:
    """
    Application settings that persist across runs.
    """
    # Remote terminal
    term_type: str = "xterm-256color"
    connect_timeout: float = 10.0
    keepalive_interval: int = 30

    # Host key checking. Off by default: hosts are assumed to be on a
    # trusted network and any remote identity is accepted.
    strict_host_keys: bool = False

    # Local terminal
    title_refresh_interval: float = 2.0
    resize_poll_interval: float = 0.5
    show_banner: bool = True

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> AppSettings:
        """Deserialize from dict, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)


class SettingsManager:
    """
    Manages loading and saving application settings.

    Usage:
        manager = SettingsManager()
        settings = manager.settings
        settings.strict_host_keys = True
        manager.save()
    """

    def __init__(self, config_dir: Path = None):
        self._config_dir = Path(config_dir) if config_dir else default_config_dir()
        self._config_path = self._config_dir / SETTINGS_FILE_NAME
        self._settings: Optional[AppSettings] = None

    @property
    def settings(self) -> AppSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> AppSettings:
        """Load settings from disk, or return defaults."""
        if not self._config_path.exists():
            logger.debug("No settings file found, using defaults")
            return AppSettings()
        try:
            data = json.loads(self._config_path.read_text())
            logger.debug(f"Loaded settings from {self._config_path}")
            return AppSettings.from_dict(data)
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load settings: {e}, using defaults")
            return AppSettings()

    def save(self) -> None:
        """Save current settings to disk."""
        if self._settings is None:
            return
        self._config_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._config_path.write_text(
                json.dumps(self._settings.to_dict(), indent=2)
            )
            logger.debug(f"Saved settings to {self._config_path}")
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")


def _numeric_id(value: str) -> int:
    """Digits of an id read as a number; ids without digits count as 0."""
    digits = "".join(c for c in value if c.isdigit())
    return int(digits) if digits else 0


def next_id(records: List[HostRecord]) -> str:
    """One past the highest numeric id in use."""
    highest = max((_numeric_id(r.id) for r in records if r.id), default=0)
    return str(highest + 1)


def assign_missing_ids(records: List[HostRecord]) -> List[HostRecord]:
    """Give every record without an id a fresh one, keeping order."""
    highest = max((_numeric_id(r.id) for r in records if r.id), default=0)
    result = []
    for record in records:
        if not record.id:
            highest += 1
            record = record.with_id(str(highest))
        result.append(record)
    return result


def normalize_record(record: HostRecord) -> HostRecord:
    """Trim text fields and default a non-positive port to 22."""
    return HostRecord(
        id=record.id.strip(),
        name=record.name.strip(),
        host=record.host.strip(),
        port=record.port if record.port > 0 else DEFAULT_SSH_PORT,
        user=record.user.strip(),
        password=record.password,
        key_path=record.key_path.strip(),
        group=record.group.strip(),
    )


def validate_record(record: HostRecord) -> None:
    """
    Raises:
        ConfigError: name, host or user is empty
    """
    missing = [f for f in ("name", "host", "user") if not getattr(record, f)]
    if missing:
        raise ConfigError(f"{', '.join(missing)} required")


class HostStore:
    """
    The saved host list, stored as {"servers": [...]} in servers.json.

    Usage:
        store = HostStore()
        records = store.load()
        record = store.get("3")
        store.save(records)
    """

    def __init__(self, config_dir: Path = None):
        self._config_dir = Path(config_dir) if config_dir else default_config_dir()
        self._path = self._config_dir / SERVERS_FILE_NAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[HostRecord]:
        """
        Load all hosts. A missing file is an empty list.

        Raises:
            ConfigError: the file exists but cannot be read or parsed
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ConfigError(f"failed to read {self._path}", e) from e

        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise ConfigError(f"failed to parse {self._path}", e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"failed to parse {self._path}: expected an object")

        servers = data.get("servers") or []
        records = [HostRecord.from_dict(s) for s in servers if isinstance(s, dict)]
        return assign_missing_ids(records)

    def save(self, records: List[HostRecord]) -> None:
        """
        Atomically replace the saved host list.

        Writes to a temp file in the same directory then renames it over
        the old file, so readers never see a partial list.
        """
        self._config_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"servers": [r.to_dict() for r in records]}, indent=2
        )

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._config_dir), prefix=".servers-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise ConfigError(f"failed to write {self._path}", e) from e

        logger.debug(f"Saved {len(records)} host(s) to {self._path}")

    def get(self, host_id: str) -> HostRecord:
        """
        Find a host by id.

        Raises:
            HostNotFoundError: no host has this id
        """
        for record in self.load():
            if record.id == host_id:
                return record
        raise HostNotFoundError(host_id)

    def add(self, record: HostRecord) -> HostRecord:
        """
        Append a new host under a fresh id.

        Returns:
            The saved record, with its id

        Raises:
            ConfigError: name, host or user missing
        """
        record = normalize_record(record)
        validate_record(record)
        records = self.load()
        record = record.with_id(next_id(records))
        records.append(record)
        self.save(records)
        logger.info(f"Added host {record.id} ({record.name})")
        return record

    def update(self, host_id: str, **changes) -> HostRecord:
        """
        Change fields of an existing host. The id never changes.

        Raises:
            HostNotFoundError: no host has this id
            ConfigError: the result would lack name, host or user
        """
        changes.pop("id", None)
        records = self.load()
        for i, record in enumerate(records):
            if record.id == host_id:
                updated = normalize_record(replace(record, **changes))
                validate_record(updated)
                records[i] = updated
                self.save(records)
                logger.info(f"Updated host {host_id}")
                return updated
        raise HostNotFoundError(host_id)

    def remove(self, host_id: str) -> HostRecord:
        """
        Delete a host.

        Raises:
            HostNotFoundError: no host has this id
        """
        records = self.load()
        remaining = [r for r in records if r.id != host_id]
        if len(remaining) == len(records):
            raise HostNotFoundError(host_id)
        self.save(remaining)
        logger.info(f"Removed host {host_id}")
        return next(r for r in records if r.id == host_id)
