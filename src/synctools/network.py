"""
Network preconditions for a sync run: reachability and the VPN session.

ConnectivityProbe makes one bounded TCP connection to a well-known
address. VpnResource drives NetworkManager (nmcli) through
Down -> Connecting -> Up -> TearingDown -> Down, and is a no-op
pass-through when the profile does not need a VPN.
"""

from __future__ import annotations

import logging
import shutil
import socket
import subprocess
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from .errors import NoConnectivity, VpnFailure
from .models import SyncProfile, VpnSession, VpnState

logger = logging.getLogger("synctools.network")

NMCLI = "nmcli"


def _run(cmd: list[str]) -> subprocess.CompletedProcess:
    """Run a command and capture output.

    Args:
        cmd: Command and arguments.

    Returns:
        CompletedProcess with stdout/stderr.
    """
    return subprocess.run(cmd, capture_output=True, text=True, check=False)


class ConnectivityProbe:
    """Checks that the network is reachable before anything stateful starts."""

    def __init__(self, host: str = "8.8.8.8", port: int = 53):
        self.host = host
        self.port = port

    def check(self, timeout: float) -> None:
        """Open and close one TCP connection to the probe address.

        Args:
            timeout: Seconds to wait. 0 leaves the bound to the OS.

        Raises:
            NoConnectivity: If the address cannot be reached.
        """
        logger.info("Checking network connectivity (%s:%d)...", self.host, self.port)
        try:
            conn = socket.create_connection(
                (self.host, self.port), timeout=timeout or None
            )
        except OSError as exc:
            logger.error("No network connectivity detected: %s", exc)
            raise NoConnectivity(
                f"No network connectivity detected ({self.host}:{self.port}: {exc})"
            ) from exc
        conn.close()
        logger.info("Network connectivity confirmed")


class VpnResource:
    """Brings a named NetworkManager connection up and down.

    Attributes:
        required: Whether the profile needs the VPN at all.
        stabilize_delay: Seconds to wait after the connection comes up.
    """

    def __init__(
        self,
        required: bool = True,
        stabilize_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.required = required
        self.stabilize_delay = stabilize_delay
        self._sleep = sleep

    @classmethod
    def from_profile(
        cls, profile: SyncProfile, sleep: Callable[[float], None] = time.sleep
    ) -> "VpnResource":
        return cls(
            required=profile.vpn_required,
            stabilize_delay=profile.vpn_stabilize_delay,
            sleep=sleep,
        )

    def available(self) -> bool:
        """nmcli is only needed when a VPN is required."""
        return not self.required or shutil.which(NMCLI) is not None

    def acquire(self, name: str) -> VpnSession:
        """Connect to the named VPN.

        Args:
            name: NetworkManager connection id.

        Returns:
            VpnSession in the Up state.

        Raises:
            VpnFailure: If nmcli cannot bring the connection up.
        """
        if not self.required:
            return VpnSession(
                name=name,
                state=VpnState.UP,
                acquired_at=datetime.now(timezone.utc),
                managed=False,
            )

        session = VpnSession(name=name, state=VpnState.CONNECTING)
        logger.info("Connecting to VPN: %s", name)
        try:
            result = _run([NMCLI, "con", "up", "id", name])
        except OSError as exc:
            session.state = VpnState.DOWN
            logger.error("Failed to connect to VPN %s: %s", name, exc)
            raise VpnFailure(f"Failed to connect to VPN: {name} ({exc})") from exc

        if result.returncode != 0:
            session.state = VpnState.DOWN
            detail = (result.stderr or result.stdout or "").strip()
            logger.error("Failed to connect to VPN %s: %s", name, detail)
            raise VpnFailure(f"Failed to connect to VPN: {name}" + (f" ({detail})" if detail else ""))

        session.state = VpnState.UP
        session.acquired_at = datetime.now(timezone.utc)
        logger.info("VPN connected: %s", name)
        return session

    def stabilize(self, session: VpnSession) -> None:
        """Give a freshly connected VPN time to settle its routes."""
        if session.managed and self.stabilize_delay > 0:
            logger.info("Waiting %.1fs for VPN routes to settle", self.stabilize_delay)
            self._sleep(self.stabilize_delay)

    def release(self, session: VpnSession) -> None:
        """Disconnect the VPN. Teardown failures are logged, never raised."""
        if not session.managed or session.state == VpnState.DOWN:
            return

        session.state = VpnState.TEARING_DOWN
        logger.info("Disconnecting from VPN: %s", session.name)
        try:
            result = _run([NMCLI, "con", "down", "id", session.name])
        except OSError as exc:
            logger.warning("Failed to disconnect VPN %s: %s", session.name, exc)
        else:
            if result.returncode != 0:
                logger.warning(
                    "Failed to disconnect VPN %s (may already be down): %s",
                    session.name, (result.stderr or "").strip(),
                )
            else:
                logger.info("VPN disconnected: %s", session.name)
        session.state = VpnState.DOWN

    @contextmanager
    def connected(self, name: str) -> Iterator[VpnSession]:
        """Hold the VPN session for the duration of a with-block.

        The stabilization wait sits inside the release scope, so an
        interruption while routes settle still disconnects.
        """
        session = self.acquire(name)
        try:
            self.stabilize(session)
            yield session
        finally:
            self.release(session)
