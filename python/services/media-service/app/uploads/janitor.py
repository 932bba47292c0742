"""
Temp-area janitor.

Reclaims scratch space left behind by abandoned uploads: evicts idle sessions
from the registry (freeing their ceiling slots) and deletes upload artifacts
older than the configured age. Runs as a background loop and can be nudged
from the request path; in both cases its failures stay contained here.
"""

import asyncio
import logging
import time
from typing import Optional

from app.uploads.scratch import SESSION_DIR_PREFIX, ScratchStorage
from app.uploads.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class TempJanitor:
    """Periodic sweeper for the scratch area."""

    def __init__(
        self,
        scratch: ScratchStorage,
        registry: SessionRegistry,
        max_age_seconds: float,
        interval_seconds: float,
    ):
        self.scratch = scratch
        self.registry = registry
        self.max_age_seconds = max_age_seconds
        self.interval_seconds = interval_seconds
        self._last_sweep: Optional[float] = None
        self._sweep_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """
        Run one sweep.

        Returns:
            Number of scratch artifacts removed (evicted session directories
            are counted too)
        """
        async with self._sweep_lock:
            self._last_sweep = time.monotonic()
            removed = len(await self.registry.expire_idle(self.max_age_seconds))

            open_dirs = {f"{SESSION_DIR_PREFIX}{upload_id}" for upload_id in self.registry.open_ids()}
            cutoff = time.time() - self.max_age_seconds

            for artifact in await self.scratch.list_artifacts():
                if artifact.name in open_dirs or artifact.mtime >= cutoff:
                    continue
                try:
                    await self.scratch.remove_artifact(artifact)
                    removed += 1
                    logger.info(f"[JANITOR] Removed stale artifact: {artifact.name}")
                except OSError as e:
                    logger.warning(f"[JANITOR] Could not remove {artifact.name}: {e}")

            if removed:
                logger.info(f"[JANITOR] Sweep reclaimed {removed} artifacts")
            return removed

    async def sweep_if_due(self) -> None:
        """Request-path trigger. Never raises."""
        if self._last_sweep is not None and time.monotonic() - self._last_sweep < self.interval_seconds:
            return
        if self._sweep_lock.locked():
            return
        try:
            await self.sweep()
        except Exception as e:
            logger.warning(f"[JANITOR] Sweep failed: {e}")

    def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self) -> None:
        logger.info(f"[JANITOR] Starting sweep loop (interval={self.interval_seconds}s, max_age={self.max_age_seconds}s)")

        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep()
            except asyncio.CancelledError:
                logger.info("[JANITOR] Sweep loop cancelled")
                break
            except Exception as e:
                logger.error(f"[JANITOR] Error in sweep loop: {e}", exc_info=True)
