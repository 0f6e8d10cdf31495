"""
sync-tools CLI.

The main Click group is defined here and each command group
registers itself from its own module.

Entry point: synctools.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="sync-tools")
def main():
    """sync-tools — guarded unison/rsync/rclone runs.

    Single-instance lock, optional VPN, retries, hooks.
    """


from .run_cmd import register_run_commands
from .profiles import register_profile_commands

register_run_commands(main)
register_profile_commands(main)
