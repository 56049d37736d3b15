"""
termlink/__main__.py

Command-line interface for termlink.

Usage:
    termlink hosts
    termlink --json settings
    termlink connect web-1 --token $JWT
"""

import sys
import json
import logging
from dataclasses import replace
from pathlib import Path

import click

from .config import SettingsManager, get_settings_manager
from .connection.profile import HostStore
from .terminal.console import run_console_session


def format_table(items: list, columns: list[tuple[str, str, int]]) -> str:
    """
    Format items as a simple table.

    Args:
        items: List of objects with attributes
        columns: List of (attr_name, header, width) tuples
    """
    if not items:
        return "No results."

    header = ""
    separator = ""
    for attr, name, width in columns:
        header += f"{name:<{width}} "
        separator += "-" * width + " "

    lines = [header.rstrip(), separator.rstrip()]

    for item in items:
        row = ""
        for attr, name, width in columns:
            val = getattr(item, attr, "")
            if val is None:
                val = ""
            val_str = str(val)[:width - 1]
            row += f"{val_str:<{width}} "
        lines.append(row.rstrip())

    return "\n".join(lines)


@click.group()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c", "--config", "config_path", default=None,
    type=click.Path(dir_okay=False), help="Settings file (default ~/.termlink/config.json)",
)
@click.pass_context
def cli(ctx, output_json, verbose, config_path):
    """termlink - terminal sessions over a websocket SSH gateway."""
    ctx.ensure_object(dict)
    ctx.obj["json"] = output_json
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config_path:
        ctx.obj["settings_manager"] = SettingsManager(Path(config_path))
    else:
        ctx.obj["settings_manager"] = get_settings_manager()


def _settings(ctx):
    return ctx.obj["settings_manager"].settings


def _store(ctx) -> HostStore:
    return HostStore(Path(_settings(ctx).hosts_file).expanduser())


@cli.command("hosts")
@click.pass_context
def list_hosts(ctx):
    """List hosts from the hosts file."""
    hosts = _store(ctx).hosts()

    if ctx.obj["json"]:
        click.echo(json.dumps([h.to_dict() for h in hosts], indent=2))
    else:
        columns = [
            ("name", "NAME", 25),
            ("ip", "ADDRESS", 20),
            ("port", "PORT", 6),
            ("username", "USER", 15),
            ("auth_type", "AUTH", 12),
        ]
        click.echo(format_table(hosts, columns))
        click.echo(f"\n{len(hosts)} host(s)")


@cli.command("settings")
@click.pass_context
def show_settings(ctx):
    """Show effective session settings."""
    data = _settings(ctx).to_dict()

    if ctx.obj["json"]:
        click.echo(json.dumps(data, indent=2))
    else:
        width = max(len(k) for k in data)
        for key, value in data.items():
            click.echo(f"{key:<{width}}  {value}")


@cli.command("connect")
@click.argument("name")
@click.option("--token", envvar="TERMLINK_TOKEN", default=None, help="Session token (or $TERMLINK_TOKEN)")
@click.option("--url", default=None, help="Override the websocket endpoint")
@click.pass_context
def connect_host(ctx, name, token, url):
    """Open an interactive line-mode session to a saved host."""
    settings = _settings(ctx)
    host = _store(ctx).get(name)
    if host is None:
        raise click.ClickException(f"Unknown host: {name}")
    if url:
        settings = replace(settings, server_url=url)

    sys.exit(run_console_session(host, settings, token))


def main():
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
