"""Host list import/export."""
from __future__ import annotations

import json

import pytest
import yaml

from lwshell.config import HostStore
from lwshell.errors import ConfigError
from lwshell.io import export_hosts, import_hosts, merge_hosts, read_export
from lwshell.models import HostRecord


@pytest.fixture
def store(tmp_path, db1):
    store = HostStore(tmp_path / "cfg")
    store.save([
        db1,
        HostRecord(id="4", name="web", host="web.example", port=22, user="deploy", group="prod"),
    ])
    return store


def test_merge_updates_existing_and_appends_new(db1):
    existing = [db1]
    incoming = [
        HostRecord(id="3", name=" db1-renamed ", host=" 10.0.0.6 ", port=0, user="admin"),
        HostRecord(id="77", name="new", host="n.example", port=2222, user="x"),
        HostRecord(id="", name="anon", host="a.example", port=22, user="y"),
    ]

    merged = merge_hosts(existing, incoming)

    assert [r.id for r in merged] == ["3", "4", "5"]
    assert merged[0].name == "db1-renamed"
    assert merged[0].host == "10.0.0.6"
    assert merged[0].port == 22
    assert merged[1].name == "new"
    assert merged[2].name == "anon"


def test_merge_replace_drops_existing(db1):
    incoming = [HostRecord(id="9", name="only", host="o", user="u")]
    assert merge_hosts([db1], incoming, replace=True) == incoming


def test_json_export_import_round_trip(store, tmp_path):
    path = tmp_path / "backup.json"

    assert export_hosts(store, path) == 2
    data = json.loads(path.read_text())
    assert data["version"] == 1
    assert data["servers"][0]["password"] == "secret"

    target = HostStore(tmp_path / "other")
    assert import_hosts(target, path, replace=True) == (2, 2)
    assert target.load() == store.load()


def test_yaml_export(store, tmp_path):
    path = tmp_path / "backup.yaml"
    export_hosts(store, path)

    data = yaml.safe_load(path.read_text())
    assert [s["name"] for s in data["servers"]] == ["db1", "web"]


def test_yaml_import_merges(store, tmp_path):
    path = tmp_path / "incoming.yml"
    path.write_text(yaml.safe_dump({"servers": [
        {"id": "4", "name": "web2", "host": "web.example", "user": "deploy"},
        {"name": "cache", "host": "cache.example", "user": "redis", "port": 6380},
    ]}))

    imported, total = import_hosts(store, path)

    assert (imported, total) == (2, 3)
    records = {r.id: r for r in store.load()}
    assert records["4"].name == "web2"
    assert records["5"].name == "cache"
    assert records["5"].port == 6380


def test_raw_servers_file_is_accepted(tmp_path):
    path = tmp_path / "servers.json"
    path.write_text(json.dumps([{"id": "1", "name": "a", "host": "h", "user": "u"}]))

    assert read_export(path)[0].name == "a"


def test_unreadable_export(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{")

    with pytest.raises(ConfigError):
        read_export(path)
