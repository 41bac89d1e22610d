"""
lwshell/cli.py

Command-line interface.

Usage:
    lwshell list
    lwshell add db1 10.0.0.5 -u admin --ask-password
    lwshell edit 3 --port 2222
    lwshell remove 3 --yes
    lwshell connect 3
    lwshell connect 3 --key ~/.ssh/id_ed25519 --title "prod db"
    lwshell open 3
    lwshell export backup.yaml
    lwshell import backup.yaml --replace
"""

import sys
import json
import logging
from pathlib import Path
from types import SimpleNamespace

import click

from .audit import ConnectionAuditor
from .config import HostStore, SettingsManager, default_config_dir, AUDIT_LOG_NAME
from .errors import LwshellError
from .io import export_hosts, import_hosts
from .launcher import open_terminal_window
from .models import HostRecord, DEFAULT_SSH_PORT
from .runner import run_interactive_session

UNGROUPED = "(ungrouped)"
MAX_CELL_WIDTH = 40


def format_table(rows: list, columns: list[tuple[str, str]]) -> str:
    """
    Format rows as a left-aligned text table.

    Each column is as wide as its widest cell, capped at MAX_CELL_WIDTH.

    Args:
        rows: Objects with one attribute per column
        columns: List of (attr_name, header) tuples
    """
    if not rows:
        return "No hosts saved."

    headers = [header for _, header in columns]
    cells = [
        [str(getattr(row, attr, "") or "")[:MAX_CELL_WIDTH] for attr, _ in columns]
        for row in rows
    ]
    widths = [
        max([len(headers[i])] + [len(r[i]) for r in cells])
        for i in range(len(columns))
    ]

    def line(values):
        return "  ".join(v.ljust(w) for v, w in zip(values, widths)).rstrip()

    lines = [line(headers), line(["-" * w for w in widths])]
    lines.extend(line(r) for r in cells)
    return "\n".join(lines)


def _store(ctx) -> HostStore:
    return HostStore(ctx.obj["config_dir"])


def _auth_summary(record) -> str:
    methods = []
    if record.key_path:
        methods.append("key")
    if record.password:
        methods.append("password")
    return "+".join(methods) or "-"


def _fail(message) -> None:
    click.echo(str(message), err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Settings/hosts directory (default: ~/.lwshell or $LWSHELL_HOME)",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx, config_dir, output_json, verbose):
    """Saved SSH hosts and interactive sessions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir or default_config_dir()
    ctx.obj["json"] = output_json


@cli.command("list")
@click.option("-g", "--group", default=None, help="Only hosts in this group")
@click.pass_context
def list_hosts(ctx, group):
    """List saved hosts (passwords are never shown)."""
    try:
        records = _store(ctx).load()
    except LwshellError as e:
        _fail(e)

    if group is not None:
        records = [r for r in records if r.group == group]

    if ctx.obj["json"]:
        data = []
        for r in records:
            item = r.to_dict()
            item.pop("password", None)
            data.append(item)
        click.echo(json.dumps(data, indent=2))
        return

    # Named groups alphabetically, ungrouped hosts last
    records = sorted(records, key=lambda r: (r.group == "", r.group, r.name))
    rows = [
        SimpleNamespace(
            id=r.id,
            name=r.name,
            target=r.display_target,
            group=r.group or UNGROUPED,
            auth=_auth_summary(r),
        )
        for r in records
    ]
    columns = [
        ("id", "ID"),
        ("name", "NAME"),
        ("target", "TARGET"),
        ("group", "GROUP"),
        ("auth", "AUTH"),
    ]
    click.echo(format_table(rows, columns))
    click.echo(f"\n{len(records)} host(s)")


def _password_option(password, ask_password):
    if ask_password:
        password = click.prompt("Password", hide_input=True, default="", show_default=False)
    return password.strip() if password is not None else None


@cli.command("add")
@click.argument("name")
@click.argument("host")
@click.option("-u", "--user", required=True, help="Login user")
@click.option("-p", "--port", type=int, default=DEFAULT_SSH_PORT, show_default=True)
@click.option("--password", default=None, help="Login password (stored in plain text)")
@click.option("--ask-password", is_flag=True, help="Prompt for the password")
@click.option("-k", "--key", "key_path", default="", help="Private key path")
@click.option("-g", "--group", default="", help="Group name")
@click.pass_context
def add_host(ctx, name, host, user, port, password, ask_password, key_path, group):
    """Save a new host."""
    record = HostRecord(
        id="",
        name=name,
        host=host,
        port=port,
        user=user,
        password=_password_option(password, ask_password) or "",
        key_path=key_path,
        group=group,
    )
    try:
        record = _store(ctx).add(record)
    except LwshellError as e:
        _fail(e)

    if ctx.obj["json"]:
        click.echo(json.dumps({"id": record.id}))
    else:
        click.echo(f"Added host {record.id}: {record.name} ({record.display_target})")


@cli.command("edit")
@click.argument("host_id")
@click.option("--name", default=None)
@click.option("--host", default=None)
@click.option("-u", "--user", default=None)
@click.option("-p", "--port", type=int, default=None)
@click.option("--password", default=None, help="New password; empty string clears it")
@click.option("--ask-password", is_flag=True, help="Prompt for the new password")
@click.option("-k", "--key", "key_path", default=None, help="Private key path; empty string clears it")
@click.option("-g", "--group", default=None)
@click.pass_context
def edit_host(ctx, host_id, name, host, user, port, password, ask_password, key_path, group):
    """Change fields of a saved host. Unset options are left alone."""
    changes = {
        "name": name,
        "host": host,
        "user": user,
        "port": port,
        "password": _password_option(password, ask_password),
        "key_path": key_path,
        "group": group,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        _fail("nothing to change")

    try:
        record = _store(ctx).update(host_id, **changes)
    except LwshellError as e:
        _fail(e)
    click.echo(f"Updated host {record.id}: {record.name} ({record.display_target})")


@cli.command("remove")
@click.argument("host_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def remove_host(ctx, host_id, yes):
    """Delete a saved host."""
    store = _store(ctx)
    try:
        if not yes:
            record = store.get(host_id)
            click.confirm(f"Remove host {record.id} ({record.name})?", abort=True)
        record = store.remove(host_id)
    except LwshellError as e:
        _fail(e)
    click.echo(f"Removed host {record.id}: {record.name}")


@cli.command("connect")
@click.argument("host_id")
@click.option("-i", "--key", "key_path", default=None, help="Private key to use instead of the saved one")
@click.option("-t", "--title", default=None, help="Window title to keep during the session")
@click.pass_context
def connect(ctx, host_id, key_path, title):
    """Open an interactive session to a saved host in this terminal."""
    config_dir = ctx.obj["config_dir"]
    code = run_interactive_session(
        host_id,
        key_path=key_path,
        title=title,
        store=HostStore(config_dir),
        auditor=ConnectionAuditor(Path(config_dir) / AUDIT_LOG_NAME),
        settings=SettingsManager(config_dir).settings,
    )
    sys.exit(code)


@cli.command("open")
@click.argument("host_id")
@click.pass_context
def open_window(ctx, host_id):
    """Open a saved host in a new terminal window."""
    store = _store(ctx)
    try:
        store.get(host_id)
        open_terminal_window(host_id, config_dir=ctx.obj["config_dir"])
    except LwshellError as e:
        _fail(e)
    click.echo(f"Opened new terminal for host {host_id}")


@cli.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_cmd(ctx, path):
    """Export all hosts, passwords included, to JSON or YAML."""
    try:
        count = export_hosts(_store(ctx), path)
    except (LwshellError, OSError) as e:
        _fail(e)
    click.echo(f"Exported {count} host(s) to {path}")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--replace", is_flag=True, help="Replace all hosts instead of merging")
@click.pass_context
def import_cmd(ctx, path, replace):
    """Import hosts from a JSON or YAML export."""
    try:
        imported, total = import_hosts(_store(ctx), path, replace=replace)
    except LwshellError as e:
        _fail(e)
    click.echo(f"Imported {imported} host(s), {total} saved")


def main():
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
