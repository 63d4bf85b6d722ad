"""Background sweep that evicts idle sessions.

The sweep runs on an APScheduler ``BackgroundScheduler`` thread,
independent of request handling.  Start it once at process start and stop
it on shutdown; :meth:`CleanupScheduler.stop` waits for an in-flight sweep
so no work is left running afterwards.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from session_rag.sessions.resources import release_paths
from session_rag.sessions.store import SessionStore

logger = logging.getLogger(__name__)

_JOB_ID = "session-cleanup"


class CleanupScheduler:
    """Periodically clears sessions whose TTL has elapsed.

    Parameters
    ----------
    store:
        The registry to sweep.
    interval_seconds:
        Time between two sweeps.
    """

    def __init__(self, store: SessionStore, interval_seconds: float = 300) -> None:
        self._store = store
        self.interval_seconds = interval_seconds
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return

        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.sweep,
            IntervalTrigger(seconds=self.interval_seconds),
            id=_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Started session cleanup (TTL: %ss, every %ss)",
            self._store.ttl.total_seconds(),
            self.interval_seconds,
        )

    def stop(self) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=True)
        self._scheduler = None
        logger.info("Stopped session cleanup")

    def sweep(self) -> int:
        """Clear every expired session and delete its files.

        Returns the number of sessions cleared.  A session touched or cleared
        by a request during the sweep is skipped without error.
        """
        cleaned = 0
        for session_id in self._store.expired_ids():
            try:
                result = self._store.clear(session_id, expired_only=True)
            except Exception:
                logger.exception("Failed to clear expired session %s", session_id)
                continue
            if result.cleared:
                release_paths(result.owned_paths)
                cleaned += 1

        if cleaned:
            logger.info("Cleaned up %d inactive sessions", cleaned)
        return cleaned
