"""Helpers to soft-clean idle sessions from the session store."""

import asyncio
import logging
import time
from typing import List

from services.session_store import SessionStore


class SessionSweeper:
    """Clear conversation and report of sessions idle past the retention window."""

    def __init__(self, store: SessionStore, idle_seconds: float = 86_400) -> None:
        """
        Args:
            store: Session backend to sweep.
            idle_seconds: Inactivity threshold in seconds; older sessions are cleared.
        """
        self._store = store
        self.idle_seconds = idle_seconds

    async def prune_idle_sessions(self) -> List[str]:
        """Clear idle sessions and return the ids that were cleaned."""
        cutoff = time.time() - self.idle_seconds
        cleared = await self._store.clear_idle(cutoff)
        if cleared:
            logging.info("Session cleanup cleared %d sessions: %s", len(cleared), ", ".join(cleared))
        else:
            logging.info("Session cleanup found no inactive sessions.")
        return cleared

    async def run_periodic_cleanup(self, interval_seconds: float = 3_600) -> None:
        """
        Repeatedly prune idle sessions at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        while True:
            try:
                await self.prune_idle_sessions()
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logging.error("Session cleanup run failed: %s", exc)
                await asyncio.sleep(interval_seconds)
