"""
Failure taxonomy for a sync run.

Every fatal condition maps to its own process exit code so that cron
jobs and wrapper scripts can tell them apart. Hook failures are not
here: they never abort a run and are reported as HookInvocation outcomes.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_LOCK_CONTENTION = 10
EXIT_CONFIG_ERROR = 11
EXIT_NO_CONNECTIVITY = 12
EXIT_VPN_FAILURE = 13
EXIT_SYNC_FAILED = 14
EXIT_INTERRUPTED = 130


class SyncToolsError(Exception):
    """Base class for fatal run errors."""

    exit_code = 1
    category = "error"


class LockContention(SyncToolsError):
    """Another run holds the lock token."""

    exit_code = EXIT_LOCK_CONTENTION
    category = "lock contention"

    def __init__(self, pid: int, path: str):
        super().__init__(f"Another sync process is already running (PID: {pid}, lock: {path})")
        self.pid = pid
        self.path = path


class ConfigError(SyncToolsError):
    """The profile or its environment cannot support a run."""

    exit_code = EXIT_CONFIG_ERROR
    category = "configuration error"


class MissingDependency(ConfigError):
    """A required external tool is not installed."""

    def __init__(self, tools: list[str]):
        super().__init__(f"Missing required dependencies: {' '.join(tools)}")
        self.tools = tools


class NoConnectivity(SyncToolsError):
    exit_code = EXIT_NO_CONNECTIVITY
    category = "no connectivity"


class VpnFailure(SyncToolsError):
    exit_code = EXIT_VPN_FAILURE
    category = "VPN failure"


class SyncFailed(SyncToolsError):
    """The backend failed on every attempt."""

    exit_code = EXIT_SYNC_FAILED
    category = "sync failed"

    def __init__(self, attempts: int, reason: str = "", report=None):
        message = f"Sync failed after {attempts} attempt(s)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.attempts = attempts
        self.reason = reason
        self.report = report


class SyncInterrupted(SyncToolsError):
    """The run was stopped by a signal."""

    exit_code = EXIT_INTERRUPTED
    category = "interrupted"

    def __init__(self, signame: str = "SIGINT"):
        super().__init__(f"Interrupted by {signame}")
        self.signame = signame
