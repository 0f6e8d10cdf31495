"""Profile commands: list, create, show."""

from __future__ import annotations

import sys

import click

from ._common import console
from .. import CONFIG_DIR
from ..errors import ConfigError

from rich.markup import escape
from rich.table import Table


def register_profile_commands(main: click.Group) -> None:
    """Register the profiles command group."""

    @main.group()
    def profiles():
        """Manage sync profiles (one file per job in the config directory)."""

    @profiles.command("list")
    @click.option("--config-dir", default=CONFIG_DIR, envvar="SYNCTOOLS_CONFIG_DIR",
                  type=click.Path(file_okay=False))
    def profiles_list(config_dir: str):
        """List available sync profiles."""
        from ..config import list_profiles

        found = list_profiles(config_dir)
        if not found:
            console.print(
                "\n  [yellow]No profiles found.[/] Run [cyan]sync-tools profiles create[/] first.\n"
            )
            return

        table = Table(title="Sync Profiles")
        table.add_column("Profile", style="cyan", no_wrap=True)
        table.add_column("Tool", no_wrap=True)
        table.add_column("VPN", no_wrap=True)
        table.add_column("File", style="dim")
        for p in found:
            table.add_row(
                p["name"],
                p["backend"],
                "[green]yes[/]" if p["vpn_required"] else "no",
                str(p["path"]),
            )
        console.print(table)

    @profiles.command("create")
    @click.option("--config-dir", default=CONFIG_DIR, envvar="SYNCTOOLS_CONFIG_DIR",
                  type=click.Path(file_okay=False))
    def profiles_create(config_dir: str):
        """Create the default profile and example profiles.

        Existing files are never overwritten.
        """
        from ..config import config_dir as resolve_dir, create_config

        written = create_config(config_dir)
        if not written:
            console.print("\n  [dim]All profiles already exist.[/]\n")
            return
        for path in written:
            console.print(f"  [green]Created[/] {path}", soft_wrap=True)
        console.print(f"\n  [dim]Profiles are stored in {resolve_dir(config_dir)}[/]\n", soft_wrap=True)

    @profiles.command("show")
    @click.argument("name")
    @click.option("--config-dir", default=CONFIG_DIR, envvar="SYNCTOOLS_CONFIG_DIR",
                  type=click.Path(file_okay=False))
    def profiles_show(name: str, config_dir: str):
        """Show the resolved settings of a profile."""
        import yaml

        from ..config import load_profile

        try:
            profile = load_profile(name, directory=config_dir)
        except ConfigError as exc:
            console.print(f"[bold red]{escape(str(exc))}[/]", soft_wrap=True)
            sys.exit(exc.exit_code)

        click.echo(yaml.safe_dump(profile.model_dump(mode="json"), sort_keys=False))
