"""Single-flight guard for scheduled scans."""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class RunGuard:
    """Process-lifetime flag allowing at most one scheduled run at a time.

    No queue, no fairness and no timeout-based release: a caller that
    fails to acquire simply skips its run. The check-and-set in
    ``try_acquire`` has no await point, so it is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def busy(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the guard. Returns False without blocking when already held."""
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        if not self._held:
            logger.warning("run_guard.release_without_acquire")
        self._held = False
