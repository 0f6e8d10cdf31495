"""Pre/post sync hooks -- optional user scripts that never abort a run."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Union

from .models import HookInvocation, HookPhase, HookStatus

logger = logging.getLogger("synctools.hooks")


class HookRunner:
    """Runs hook executables with no arguments and records the outcome."""

    def run(self, phase: HookPhase, path: Union[Path, str, None]) -> HookInvocation:
        """Execute one hook.

        Args:
            phase: Whether this is the pre- or post-sync hook.
            path: Hook executable. Empty or non-executable means skip.

        Returns:
            HookInvocation with status RAN, SKIPPED or FAILED.
        """
        target: Optional[Path] = Path(path).expanduser() if path else None
        if target is None or not target.is_file() or not os.access(target, os.X_OK):
            if target is not None:
                logger.info("Skipping %s hook (not executable): %s", phase.value, target)
            return HookInvocation(phase=phase, path=target, status=HookStatus.SKIPPED)

        logger.info("Running %s hook: %s", phase.value, target)
        try:
            result = subprocess.run(
                [str(target)], capture_output=True, text=True, check=False,
            )
        except OSError as exc:
            logger.warning("%s hook failed: %s (%s)", phase.value, target, exc)
            return HookInvocation(
                phase=phase, path=target, status=HookStatus.FAILED, detail=str(exc),
            )

        if result.returncode != 0:
            logger.warning(
                "%s hook failed: %s (exit %d)", phase.value, target, result.returncode
            )
            return HookInvocation(
                phase=phase,
                path=target,
                status=HookStatus.FAILED,
                returncode=result.returncode,
                detail=(result.stderr or "").strip(),
            )

        return HookInvocation(
            phase=phase, path=target, status=HookStatus.RAN, returncode=0,
        )
