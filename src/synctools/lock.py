"""
Single-instance guard backed by a PID lock file.

The lock token is a plain text file holding the owner's PID. A token
whose PID no longer exists is stale and is reclaimed with a warning.
A token that names no PID is only stale once it is older than the
write grace period; a younger one belongs to a run that has created
it and not yet written its PID. Acquisition never waits: a live owner
means LockContention right away.

Usage:
    manager = LockManager()
    with manager.hold() as handle:
        ...  # token removed on every exit path
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .errors import LockContention
from .models import LockHandle

logger = logging.getLogger("synctools.lock")

DEFAULT_LOCK_FILE = Path(
    os.environ.get(
        "SYNCTOOLS_LOCK_FILE",
        str(Path(tempfile.gettempdir()) / "sync-tools.lock"),
    )
)

LOCK_WRITE_GRACE = 5.0


def token_owner(path: Path) -> Optional[int]:
    """Return the PID a lock token names.

    Only the first whitespace-separated word counts. A token that is
    gone, empty, or starts with anything but digits names no owner.
    """
    try:
        words = path.read_text(encoding="utf-8").split()
    except OSError:
        return None
    if not words or not words[0].isdigit():
        return None
    return int(words[0])


def owner_running(pid: int) -> bool:
    """True while the run that wrote a token is still a live process.

    Signal 0 checks existence without delivering anything. A process of
    another user answers with EPERM and is still running.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class LockManager:
    """Acquires and releases the lock token for one run."""

    def __init__(
        self,
        path: Union[Path, str, None] = None,
        pid: Optional[int] = None,
        write_grace: float = LOCK_WRITE_GRACE,
    ):
        self.path = Path(path).expanduser() if path else DEFAULT_LOCK_FILE
        self.pid = pid if pid is not None else os.getpid()
        self.write_grace = write_grace

    def _token_age(self) -> Optional[float]:
        """Seconds since the token was last written, None if it is gone."""
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def acquire(self) -> LockHandle:
        """Take the lock token.

        Returns:
            LockHandle owned by this process.

        Raises:
            LockContention: If a live process already holds the token, or
                another run has just created it.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Two passes: the second follows removal of a stale token.
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                owner = token_owner(self.path)
                if owner is None:
                    age = self._token_age()
                    if age is None:
                        continue
                    if age < self.write_grace:
                        logger.error("Lock file %s is being claimed by another process", self.path)
                        raise LockContention(0, str(self.path))
                elif owner_running(owner):
                    logger.error(
                        "Another sync process is already running (PID: %d)", owner
                    )
                    raise LockContention(owner, str(self.path))
                logger.warning(
                    "Removing stale lock file %s (recorded PID: %s)", self.path, owner
                )
                self.path.unlink(missing_ok=True)
                continue

            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(f"{self.pid}\n")
            logger.info("Lock acquired: %s (PID %d)", self.path, self.pid)
            return LockHandle(path=self.path, pid=self.pid)

        # The token reappeared between removal and re-creation.
        owner = token_owner(self.path) or 0
        raise LockContention(owner, str(self.path))

    def release(self, handle: LockHandle) -> None:
        """Remove the lock token. Removing an absent token is not an error."""
        try:
            handle.path.unlink(missing_ok=True)
            logger.info("Lock released: %s", handle.path)
        except OSError as exc:
            logger.warning("Could not remove lock file %s: %s", handle.path, exc)

    @contextmanager
    def hold(self) -> Iterator[LockHandle]:
        """Hold the lock for the duration of a with-block."""
        handle = self.acquire()
        try:
            yield handle
        finally:
            self.release(handle)
