"""Run command: execute one sync profile under lock, VPN and retry."""

from __future__ import annotations

import sys
from typing import Optional

import click

from ._common import console, err_console, setup_logging
from .. import CONFIG_DIR, LOG_DIR
from ..errors import SyncFailed, SyncToolsError
from ..lock import LockManager
from ..models import BackendKind, HookStatus, RunReport

from rich.markup import escape
from rich.panel import Panel


def _print_report(report: RunReport) -> None:
    result = report.result
    attempts = result.attempt_count if result else 0
    lines = [
        "[bold green]Synchronization completed successfully[/]",
        f"Profile: [cyan]{report.profile}[/] ({report.backend.value})",
        f"Attempts: {attempts}",
    ]
    if report.dry_run:
        lines.append("[yellow]Dry run: no data was modified[/]")
    if report.vpn is not None and report.vpn.managed:
        lines.append(f"VPN: {report.vpn.name}")
    for hook in report.hooks:
        if hook.status == HookStatus.FAILED:
            lines.append(f"[yellow]{hook.phase.value} hook failed: {hook.path}[/]")
    console.print(Panel("\n".join(lines), title="sync-tools", border_style="green"))


def register_run_commands(main: click.Group) -> None:
    """Register the run command."""

    @main.command("run")
    @click.argument("profile", required=False)
    @click.option("--config-file", type=click.Path(dir_okay=False), help="Use a specific profile file.")
    @click.option("--config-dir", default=CONFIG_DIR, envvar="SYNCTOOLS_CONFIG_DIR",
                  type=click.Path(file_okay=False), help="Profile directory.")
    @click.option("--sync-tool", type=click.Choice([k.value for k in BackendKind]),
                  help="Override the profile's sync tool.")
    @click.option("--vpn", "vpn_connection", help="VPN connection name for nmcli (implies VPN required).")
    @click.option("--no-vpn", is_flag=True, help="Disable the VPN connection.")
    @click.option("--dry-run", is_flag=True, help="Preview without modifying data.")
    @click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
    @click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output.")
    @click.option("--retry-count", type=click.IntRange(min=1), help="Number of attempts.")
    @click.option("--retry-delay", type=click.FloatRange(min=0), help="Seconds between attempts.")
    @click.option("--startup-delay", type=click.FloatRange(min=0), help="Seconds to wait before starting.")
    @click.option("--lock-file", type=click.Path(dir_okay=False), help="Lock token location.")
    @click.option("--log-dir", default=LOG_DIR, envvar="SYNCTOOLS_LOG_DIR",
                  type=click.Path(file_okay=False), help="Log directory.")
    def run(
        profile: Optional[str],
        config_file: Optional[str],
        config_dir: str,
        sync_tool: Optional[str],
        vpn_connection: Optional[str],
        no_vpn: bool,
        dry_run: bool,
        verbose: bool,
        quiet: bool,
        retry_count: Optional[int],
        retry_delay: Optional[float],
        startup_delay: Optional[float],
        lock_file: Optional[str],
        log_dir: str,
    ):
        """Synchronize one profile.

        Takes the single-instance lock, checks connectivity, brings the
        VPN up if the profile needs it, runs the pre-sync hook, retries
        the sync tool, runs the post-sync hook on success, and releases
        everything on the way out.

        Examples:

            sync-tools run work --vpn Company-VPN

            sync-tools run home --dry-run --verbose

            sync-tools run --sync-tool rsync --no-vpn --config-file rsync.yaml
        """
        from ..config import load_profile
        from ..orchestrator import Orchestrator

        overrides = {
            "backend": sync_tool,
            "dry_run": dry_run or None,
            "verbose": verbose or None,
            "quiet": quiet or None,
            "retry_count": retry_count,
            "retry_delay": retry_delay,
            "startup_delay": startup_delay,
        }
        if vpn_connection:
            overrides["vpn_connection"] = vpn_connection
            overrides["vpn_required"] = True
        if no_vpn:
            overrides["vpn_required"] = False

        try:
            sync_profile = load_profile(
                profile, config_file=config_file, overrides=overrides, directory=config_dir,
            )
            setup_logging(verbose=sync_profile.verbose, quiet=sync_profile.quiet, log_dir=log_dir)
            report = Orchestrator(sync_profile, lock=LockManager(lock_file)).run()
        except SyncFailed as exc:
            err_console.print(f"[bold red]Synchronization failed[/] after {exc.attempts} attempt(s)", soft_wrap=True)
            if exc.reason:
                err_console.print(f"  [dim]{escape(exc.reason)}[/]", soft_wrap=True)
            sys.exit(exc.exit_code)
        except SyncToolsError as exc:
            err_console.print(f"[bold red]Error ({exc.category}):[/] {escape(str(exc))}", soft_wrap=True)
            sys.exit(exc.exit_code)

        if not sync_profile.quiet:
            _print_report(report)
