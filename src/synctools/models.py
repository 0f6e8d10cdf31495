"""
Sync data models -- the profile a run is built from and the records it produces.

SyncProfile is validated once and frozen; every component reads it,
none writes it. The dataclasses below are the runtime records of one
run: the lock and VPN handles it owns and the attempts and hooks it ran.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BackendKind(str, Enum):
    """Supported synchronization tools."""

    UNISON = "unison"
    RSYNC = "rsync"
    RCLONE = "rclone"


class SyncProfile(BaseModel):
    """Complete description of one sync job."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "default"
    backend: BackendKind = BackendKind.UNISON

    # Per-tool parameters. An options value of None selects the backend default.
    unison_profile: str = ""
    unison_options: Optional[str] = None

    rsync_source: str = ""
    rsync_destination: str = ""
    rsync_options: Optional[str] = None

    rclone_source: str = ""
    rclone_destination: str = ""
    rclone_options: Optional[str] = None

    vpn_required: bool = False
    vpn_connection: str = ""
    vpn_stabilize_delay: float = Field(default=3.0, ge=0)

    retry_count: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=5.0, ge=0)
    connectivity_timeout: float = Field(default=30.0, ge=0)
    connectivity_host: str = "8.8.8.8"
    connectivity_port: int = Field(default=53, gt=0, lt=65536)
    startup_delay: float = Field(default=0.0, ge=0)

    pre_hook: Optional[Path] = None
    post_hook: Optional[Path] = None

    dry_run: bool = False
    verbose: bool = False
    quiet: bool = False

    @model_validator(mode="after")
    def vpn_needs_connection(self) -> "SyncProfile":
        """A required VPN must name the connection to bring up."""
        if self.vpn_required and not self.vpn_connection.strip():
            raise ValueError("VPN required but no connection specified")
        return self


class VpnState(str, Enum):
    DOWN = "down"
    CONNECTING = "connecting"
    UP = "up"
    TEARING_DOWN = "tearing_down"


class HookPhase(str, Enum):
    PRE = "pre-sync"
    POST = "post-sync"


class HookStatus(str, Enum):
    RAN = "ran"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class LockHandle:
    """Ownership of the single-instance lock token.

    Attributes:
        path: Location of the lock token.
        pid: Process that owns it.
    """

    path: Path
    pid: int


@dataclass
class VpnSession:
    """An acquired network connection.

    Unmanaged sessions stand in for profiles that need no VPN;
    releasing them does nothing.
    """

    name: str
    state: VpnState = VpnState.DOWN
    acquired_at: Optional[datetime] = None
    managed: bool = True


@dataclass
class Outcome:
    """Result of one backend invocation or of a whole retry sequence."""

    success: bool
    returncode: int = 0
    reason: str = ""
    output_tail: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(success=True)

    @classmethod
    def failure(
        cls, reason: str, returncode: int = 1, output_tail: Optional[list[str]] = None
    ) -> "Outcome":
        return cls(
            success=False,
            returncode=returncode,
            reason=reason,
            output_tail=list(output_tail or []),
        )


@dataclass
class SyncAttempt:
    """One execution of the backend."""

    index: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: Optional[Outcome] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not None and self.outcome.success


@dataclass
class HookInvocation:
    """A pre- or post-sync hook and what became of it."""

    phase: HookPhase
    path: Optional[Path]
    status: HookStatus
    returncode: Optional[int] = None
    detail: str = ""


@dataclass
class RetryResult:
    """The attempts made by the retry scheduler and the final outcome."""

    outcome: Outcome
    attempts: list[SyncAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


@dataclass
class RunReport:
    """Everything a completed run did, for the CLI summary."""

    profile: str
    backend: BackendKind
    dry_run: bool
    result: Optional[RetryResult] = None
    hooks: list[HookInvocation] = field(default_factory=list)
    vpn: Optional[VpnSession] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.result.outcome.success
