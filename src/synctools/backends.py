"""
Sync backends -- the external tools that actually move the data.

Each backend knows how to validate its parameters and how to build one
argument list for its tool. The orchestrator never cares which one it
is talking to.

Unison: Bidirectional sync with conflict resolution. Dry-run probes the
    server connection (-testserver) rather than previewing changes.
Rsync: One-way incremental copy. Dry-run is --dry-run.
Rclone: Cloud storage sync. Dry-run is --dry-run.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field

from .errors import ConfigError
from .models import BackendKind, Outcome, SyncProfile

logger = logging.getLogger("synctools.backends")

OUTPUT_TAIL_LINES = 20


@dataclass
class CommandResult:
    """Exit status and trailing output of one tool invocation."""

    returncode: int
    tail: list[str] = field(default_factory=list)


def _run(cmd: list[str]) -> CommandResult:
    """Run a sync tool, streaming its output to the log.

    Args:
        cmd: Command and arguments.

    Returns:
        CommandResult with the exit code and the last lines of output.
    """
    tail: deque[str] = deque(maxlen=OUTPUT_TAIL_LINES)
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        return CommandResult(returncode=127, tail=[str(exc)])

    assert proc.stdout is not None
    try:
        for line in proc.stdout:
            line = line.rstrip()
            if line:
                tail.append(line)
                logger.info("%s: %s", cmd[0], line)
        proc.wait()
    except BaseException:
        # Interrupted: the tool must not outlive the run that started it.
        proc.terminate()
        proc.wait()
        raise
    finally:
        proc.stdout.close()
    return CommandResult(returncode=proc.returncode, tail=list(tail))


class SyncBackend(ABC):
    """Abstract synchronization tool."""

    kind: BackendKind
    default_options: str = ""

    def __init__(self, profile: SyncProfile):
        self.profile = profile

    @property
    def executable(self) -> str:
        return self.kind.value

    @property
    def name(self) -> str:
        """Human-readable backend name."""
        return self.kind.value

    @abstractmethod
    def validate(self) -> None:
        """Check that the profile carries what this backend needs.

        Raises:
            ConfigError: If a required parameter is missing.
        """

    @abstractmethod
    def build_command(self, dry_run: bool) -> list[str]:
        """Assemble the argument list for one invocation."""

    @abstractmethod
    def describe(self) -> str:
        """One-line summary of what will be synced."""

    def available(self) -> bool:
        """Check if the tool is installed."""
        return shutil.which(self.executable) is not None

    def param(self, key: str):
        """Read this backend's own profile field, e.g. ``rsync_source``."""
        return getattr(self.profile, f"{self.kind.value}_{key}")

    def options(self) -> list[str]:
        """Split this backend's options string into arguments."""
        raw = self.param("options")
        if raw is None:
            raw = self.default_options
        try:
            return shlex.split(raw)
        except ValueError as exc:
            raise ConfigError(f"Invalid {self.name} options {raw!r}: {exc}") from exc

    def run(self, profile: SyncProfile, dry_run: bool) -> Outcome:
        """Invoke the tool once and map its exit status to an Outcome.

        Args:
            profile: The profile being synced.
            dry_run: Whether to use the tool's non-destructive mode.

        Returns:
            Outcome.ok() on exit 0, otherwise a failure carrying the
            exit status and the tool's last output lines.
        """
        self.profile = profile
        cmd = self.build_command(dry_run)
        logger.info("Running: %s", shlex.join(cmd))

        result = _run(cmd)
        if result.returncode == 0:
            logger.info("%s sync completed successfully", self.name)
            return Outcome.ok()

        reason = f"{self.name} exited with status {result.returncode}"
        if result.tail:
            reason = f"{reason}: {result.tail[-1]}"
        logger.error("%s sync failed (exit %d)", self.name, result.returncode)
        return Outcome.failure(reason, returncode=result.returncode, output_tail=result.tail)


class UnisonBackend(SyncBackend):
    """Bidirectional sync driven by a named unison profile."""

    kind = BackendKind.UNISON
    default_options = "-sortbysize -batch -times"

    def validate(self) -> None:
        if not self.profile.unison_profile.strip():
            raise ConfigError("Unison profile not specified")

    def build_command(self, dry_run: bool) -> list[str]:
        cmd = [self.executable, *self.options()]
        if dry_run:
            cmd.append("-testserver")
        cmd.append(self.profile.unison_profile)
        return cmd

    def describe(self) -> str:
        return f"unison profile {self.profile.unison_profile}"


class _SourceDestBackend(SyncBackend):
    """Shared validation for tools that copy source -> destination."""

    @property
    def source(self) -> str:
        return self.param("source")

    @property
    def destination(self) -> str:
        return self.param("destination")

    def validate(self) -> None:
        if not self.source.strip() or not self.destination.strip():
            raise ConfigError(
                f"{self.name.capitalize()} source and destination must be specified"
            )

    def describe(self) -> str:
        return f"{self.name}: {self.source} -> {self.destination}"


class RsyncBackend(_SourceDestBackend):
    """One-way incremental copy."""

    kind = BackendKind.RSYNC
    default_options = "-avz --progress"

    def build_command(self, dry_run: bool) -> list[str]:
        cmd = [self.executable, *self.options()]
        if dry_run:
            cmd.append("--dry-run")
        cmd.extend([self.source, self.destination])
        return cmd


class RcloneBackend(_SourceDestBackend):
    """Cloud storage sync via rclone."""

    kind = BackendKind.RCLONE
    default_options = "--progress"

    def build_command(self, dry_run: bool) -> list[str]:
        cmd = [self.executable, "sync", *self.options()]
        if dry_run:
            cmd.append("--dry-run")
        cmd.extend([self.source, self.destination])
        return cmd


BACKENDS: dict[BackendKind, type[SyncBackend]] = {
    BackendKind.UNISON: UnisonBackend,
    BackendKind.RSYNC: RsyncBackend,
    BackendKind.RCLONE: RcloneBackend,
}


def create_backend(profile: SyncProfile) -> SyncBackend:
    """Factory function to create the backend a profile selects.

    Args:
        profile: Sync profile.

    Returns:
        Instantiated SyncBackend.

    Raises:
        ConfigError: If the backend kind is not supported.
    """
    factory = BACKENDS.get(profile.backend)
    if not factory:
        raise ConfigError(f"Unknown sync tool: {profile.backend}")
    return factory(profile)
