import asyncio
import logging
from typing import Optional

from mispark.models.leaderboard import LeaderboardEntry, UserRanking

logger = logging.getLogger(__name__)


class LeaderboardView:
    """Coalesced refreshes: one running, at most one queued."""

    def __init__(self, backend):
        self.backend = backend
        self.entries: list[LeaderboardEntry] = []
        self.loaded = False

        self._running: Optional[asyncio.Task] = None
        self._again = False

    def top_three(self) -> list[LeaderboardEntry]:
        return self.entries[:3]

    async def _load(self):
        try:
            entries = await self.backend.get_leaderboard()
        except Exception as e:
            logger.error("Error loading leaderboard: %s", e)
            return

        self.entries = list(entries or [])
        self.loaded = True

    async def _drain(self):
        while True:
            self._again = False
            await self._load()
            if not self._again:
                return

    def request_refresh(self) -> asyncio.Task:
        if self._running and not self._running.done():
            self._again = True
            return self._running

        self._running = asyncio.get_running_loop().create_task(self._drain())
        return self._running

    async def refresh(self):
        await self.request_refresh()

    def on_report_change(self, event=None):
        self.request_refresh()

    async def ranking_for(self, user_id: str) -> Optional[UserRanking]:
        try:
            return await self.backend.get_user_ranking(user_id)
        except Exception as e:
            logger.error("Error loading user rank: %s", e)
            return None

    async def close(self):
        if self._running and not self._running.done():
            self._running.cancel()
            try:
                await self._running
            except asyncio.CancelledError:
                pass
