"""
Sync Orchestrator -- one guarded run of one profile.

    lock -> startup delay -> connectivity -> VPN up -> pre-hook
         -> retry loop -> post-hook (success only) -> VPN down -> unlock

The lock and the VPN session are entered on a single ExitStack, so the
release order (VPN first, then lock) is structural and holds for normal
completion, fatal errors and termination signals alike. Anything that
can be checked without side effects is checked before the lock is taken.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from contextlib import ExitStack, contextmanager
from typing import Callable, Iterator, Optional

from .backends import SyncBackend, create_backend
from .errors import MissingDependency, SyncFailed, SyncInterrupted
from .hooks import HookRunner
from .lock import LockManager
from .models import HookPhase, RunReport, SyncProfile
from .network import NMCLI, ConnectivityProbe, VpnResource
from .retry import RetryScheduler

logger = logging.getLogger("synctools.orchestrator")

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


@contextmanager
def signals_raise_interrupt() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into SyncInterrupted while the block runs.

    Raising from the handler unwinds the caller's with-blocks, which is
    what releases the VPN and the lock. Once it has fired, further
    termination signals are ignored until the unwind finishes. Previous
    handlers are restored on exit. Outside the main thread this is a
    no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        for sig in TERMINATION_SIGNALS:
            signal.signal(sig, signal.SIG_IGN)
        name = signal.Signals(signum).name
        logger.warning("Received %s, cleaning up", name)
        raise SyncInterrupted(name)

    previous = {sig: signal.signal(sig, _handler) for sig in TERMINATION_SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class Orchestrator:
    """Composes lock, network, hooks and backend into a single run.

    Every collaborator can be injected; by default each is built
    from the profile.
    """

    def __init__(
        self,
        profile: SyncProfile,
        lock: Optional[LockManager] = None,
        probe: Optional[ConnectivityProbe] = None,
        vpn: Optional[VpnResource] = None,
        hooks: Optional[HookRunner] = None,
        backend: Optional[SyncBackend] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.profile = profile
        self.lock = lock or LockManager()
        self.probe = probe or ConnectivityProbe(
            profile.connectivity_host, profile.connectivity_port
        )
        self.vpn = vpn or VpnResource.from_profile(profile, sleep=sleep)
        self.hooks = hooks or HookRunner()
        self.backend = backend
        self._sleep = sleep

    def preflight(self) -> SyncBackend:
        """Validate the profile and required tools before any side effect.

        Returns:
            The backend the run will drive.

        Raises:
            ConfigError: If backend parameters are missing or invalid.
            MissingDependency: If the backend tool or nmcli is absent.
        """
        backend = self.backend or create_backend(self.profile)
        backend.validate()
        backend.options()

        missing = []
        if not backend.available():
            missing.append(backend.executable)
        if not self.vpn.available():
            missing.append(NMCLI)
        if missing:
            logger.error("Missing required dependencies: %s", " ".join(missing))
            raise MissingDependency(missing)
        return backend

    def run(self) -> RunReport:
        """Execute the profile once.

        Returns:
            RunReport for a successful run.

        Raises:
            LockContention, ConfigError, NoConnectivity, VpnFailure:
                Fatal before the backend runs.
            SyncFailed: Every attempt failed. Carries the report.
            SyncInterrupted: A termination signal arrived.
        """
        profile = self.profile
        backend = self.preflight()
        report = RunReport(profile=profile.name, backend=profile.backend, dry_run=profile.dry_run)

        logger.info("Starting sync for profile %s (%s)", profile.name, backend.describe())
        if profile.dry_run:
            logger.info("Dry-run mode: %s will not modify data", backend.name)

        try:
            with signals_raise_interrupt(), ExitStack() as stack:
                stack.enter_context(self.lock.hold())

                if profile.startup_delay > 0:
                    logger.info("Waiting %s seconds before starting...", profile.startup_delay)
                    self._sleep(profile.startup_delay)

                self.probe.check(profile.connectivity_timeout)
                report.vpn = stack.enter_context(self.vpn.connected(profile.vpn_connection))

                report.hooks.append(self.hooks.run(HookPhase.PRE, profile.pre_hook))
                report.result = RetryScheduler(backend, sleep=self._sleep).execute(profile)
                if report.result.outcome.success:
                    report.hooks.append(self.hooks.run(HookPhase.POST, profile.post_hook))
        except KeyboardInterrupt:
            logger.warning("Interrupted, cleanup complete")
            raise SyncInterrupted("SIGINT") from None

        if not report.succeeded:
            result = report.result
            raise SyncFailed(result.attempt_count, result.outcome.reason, report=report)

        logger.info("Synchronization completed successfully")
        return report
