"""Shared test fixtures for sync-tools."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from synctools.backends import SyncBackend
from synctools.errors import NoConnectivity, VpnFailure
from synctools.models import BackendKind, Outcome, SyncProfile, VpnSession, VpnState


class ScriptedBackend(SyncBackend):
    """Backend whose attempt outcomes are scripted by the test."""

    kind = BackendKind.RSYNC

    def __init__(self, profile: SyncProfile, results: list[bool], on_run=None):
        super().__init__(profile)
        self.results = list(results)
        self.calls: list[bool] = []
        self.on_run = on_run

    def validate(self) -> None:
        pass

    def build_command(self, dry_run: bool) -> list[str]:
        return ["true"]

    def describe(self) -> str:
        return "scripted"

    def available(self) -> bool:
        return True

    def run(self, profile: SyncProfile, dry_run: bool) -> Outcome:
        self.calls.append(dry_run)
        if self.on_run:
            self.on_run(len(self.calls))
        ok = self.results.pop(0) if self.results else False
        return Outcome.ok() if ok else Outcome.failure("scripted failure", returncode=23)


class FakeVpn:
    """Records acquire/release calls; can be told to fail acquisition."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.acquired: list[str] = []
        self.released: list[VpnSession] = []
        self.events: list[str] | None = None

    def available(self) -> bool:
        return True

    def connected(self, name: str):
        from contextlib import contextmanager

        @contextmanager
        def _cm():
            self.acquired.append(name)
            if self.fail:
                raise VpnFailure(f"Failed to connect to VPN: {name}")
            session = VpnSession(name=name, state=VpnState.UP)
            try:
                yield session
            finally:
                self.released.append(session)
                if self.events is not None:
                    self.events.append("vpn-release")

        return _cm()


class FakeProbe:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls: list[float] = []

    def check(self, timeout: float) -> None:
        self.calls.append(timeout)
        if not self.ok:
            raise NoConnectivity("No network connectivity detected")


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs so later tests never write to closed streams."""
    yield
    root = logging.getLogger("synctools")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def make_profile():
    """Build an rsync SyncProfile (rclone ends filled in too) and per-test overrides."""

    def _make(**kwargs) -> SyncProfile:
        data = {
            "name": "test",
            "backend": "rsync",
            "rsync_source": "/data/src/",
            "rsync_destination": "backup:/data/dst/",
            "rclone_source": "/data/src/",
            "rclone_destination": "backup:/data/dst/",
            "retry_delay": 0,
        }
        data.update(kwargs)
        return SyncProfile(**data)

    return _make


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / "sync-tools.lock"


@pytest.fixture
def config_home(tmp_path: Path) -> Path:
    """Provide an empty profile directory."""
    home = tmp_path / "sync-tools"
    home.mkdir()
    return home


@pytest.fixture
def hook_script(tmp_path: Path):
    """Create an executable hook that appends to a marker file."""

    def _make(name: str, exit_code: int = 0) -> Path:
        marker = tmp_path / f"{name}.marker"
        script = tmp_path / f"{name}.sh"
        script.write_text(f"#!/bin/sh\necho ran >> '{marker}'\nexit {exit_code}\n")
        script.chmod(0o755)
        return script

    return _make
