"""
Host list import/export.

JSON by default; .yaml/.yml paths use YAML. Exports contain passwords,
they are meant for backup and migration between machines.
"""

from __future__ import annotations
import json
import yaml
from pathlib import Path
from datetime import datetime
from typing import List, Tuple

from .config import HostStore, next_id, normalize_record
from .models import HostRecord
from .errors import ConfigError

# Export format version for future compatibility
EXPORT_VERSION = 1

YAML_SUFFIXES = {".yaml", ".yml"}


def _is_yaml(path: Path) -> bool:
    return Path(path).suffix.lower() in YAML_SUFFIXES


def export_hosts(store: HostStore, path: Path) -> int:
    """
    Export all hosts to a file.

    Returns:
        Number of hosts exported
    """
    records = store.load()
    export_data = {
        "version": EXPORT_VERSION,
        "exported_at": datetime.now().isoformat(),
        "servers": [r.to_dict() for r in records],
    }

    with open(path, "w", encoding="utf-8") as f:
        if _is_yaml(path):
            yaml.safe_dump(export_data, f, sort_keys=False, allow_unicode=True)
        else:
            json.dump(export_data, f, indent=2)

    return len(records)


def read_export(path: Path) -> List[HostRecord]:
    """Read hosts from an export file (or a raw servers.json)."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) if _is_yaml(path) else json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read {path}", e) from e

    if isinstance(data, list):
        servers = data
    elif isinstance(data, dict):
        servers = data.get("servers") or []
    else:
        raise ConfigError(f"failed to read {path}: unexpected content")

    return [HostRecord.from_dict(s) for s in servers if isinstance(s, dict)]


def merge_hosts(
    existing: List[HostRecord],
    incoming: List[HostRecord],
    replace: bool = False,
) -> List[HostRecord]:
    """
    Combine an imported list with the current one.

    replace=True drops the current list entirely. Otherwise a host whose
    id already exists is updated in place and every other host is
    appended under a fresh id.
    """
    if replace:
        return list(incoming)

    result = list(existing)
    index = {r.id: i for i, r in enumerate(result) if r.id}

    for record in incoming:
        record = normalize_record(record)
        if record.id and record.id in index:
            result[index[record.id]] = record
        else:
            record = record.with_id(next_id(result))
            index[record.id] = len(result)
            result.append(record)

    return result


def import_hosts(store: HostStore, path: Path, replace: bool = False) -> Tuple[int, int]:
    """
    Import hosts from a file into the store.

    Returns:
        Tuple of (hosts_imported, hosts_total)
    """
    incoming = read_export(path)
    merged = merge_hosts(store.load(), incoming, replace=replace)
    store.save(merged)
    return len(incoming), len(merged)
