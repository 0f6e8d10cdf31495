"""
sync-tools — guarded one-shot synchronization runs.

Wraps unison, rsync and rclone behind a single orchestrator that holds
a single-instance lock, brings a VPN up when the profile needs one,
retries the transfer, and always tears down what it acquired.
"""

import os

__version__ = "2.1.0"

CONFIG_DIR = os.environ.get("SYNCTOOLS_CONFIG_DIR", "~/.config/sync-tools")
LOG_DIR = os.environ.get("SYNCTOOLS_LOG_DIR", "~/.local/share/sync-tools/logs")
