import asyncio
import logging
from typing import Callable, Optional

from mispark.core.feed_store import ReportFeedStore
from mispark.db.realtime import CHANNEL_ERROR, CLOSED, SUBSCRIBED, ChangeEvent

logger = logging.getLogger(__name__)

INSERT = "INSERT"
DELETE = "DELETE"


class RealtimeReconciler:
    """Feeds one change channel into a ReportFeedStore."""

    def __init__(
        self,
        store: ReportFeedStore,
        backend,
        channel,
        resync_on_reconnect: bool = True,
        is_active: Callable[[], bool] = lambda: True,
    ):
        self.store = store
        self.backend = backend
        self.channel = channel
        self.resync_on_reconnect = resync_on_reconnect
        self.is_active = is_active

        self.connected = False
        self._ever_subscribed = False
        self._resync_lock = asyncio.Lock()
        self._in_flight: Optional[list] = None
        self.on_change: list[Callable[[ChangeEvent], None]] = []

    async def start(self):
        await asyncio.gather(
            self.resync(),
            self.channel.subscribe(self.handle_event, self.handle_status),
        )

    async def stop(self):
        await self.channel.unsubscribe()
        self.connected = False

    def _record(self, op, arg):
        if self._in_flight is not None:
            self._in_flight.append((op, arg))

    async def resync(self) -> bool:
        """Reload the full snapshot. Returns False when the fetch failed."""
        async with self._resync_lock:
            self._in_flight = []
            try:
                snapshot = await self.backend.fetch_reports()
            except Exception as e:
                logger.error("Loading reports failed: %s", e)
                return False
            finally:
                replay, self._in_flight = self._in_flight, None

            if not self.is_active():
                return False

            self.store.load(snapshot)
            for op, arg in replay:
                op(arg)

            logger.info("Feed synchronized with %d reports", len(self.store))
            return True

    async def handle_status(self, status: str):
        if status == SUBSCRIBED:
            reconnected = self._ever_subscribed
            self._ever_subscribed = True
            self.connected = True

            if reconnected and self.resync_on_reconnect and self.is_active():
                logger.info("Channel reconnected, reloading feed")
                await self.resync()

        elif status in (CHANNEL_ERROR, CLOSED):
            self.connected = False

    async def handle_event(self, event: ChangeEvent):
        if event.event == INSERT:
            changed = await self._handle_insert(event)
        elif event.event == DELETE:
            changed = self._handle_delete(event)
        else:
            logger.debug("Ignoring %s event", event.event)
            return

        if not changed or not self.is_active():
            return

        for callback in list(self.on_change):
            callback(event)

    async def _handle_insert(self, event: ChangeEvent):
        report_id = event.row.get("id")
        if report_id is None:
            logger.warning("Insert event without id dropped")
            return False

        # the change payload has no joined profile, so fetch the full row
        try:
            report = await self.backend.fetch_report(report_id)
        except Exception as e:
            logger.warning("Fetching inserted report %s failed, event dropped: %s", report_id, e)
            return False

        if report is None:
            logger.warning("Inserted report %s not found, event dropped", report_id)
            return False

        if not self.is_active():
            return False

        applied = self.store.apply_insert(report)
        self._record(self.store.apply_insert, report)
        return applied or self._in_flight is not None

    def _handle_delete(self, event: ChangeEvent):
        report_id = event.row.get("id")
        if report_id is None:
            logger.warning("Delete event without id dropped")
            return False

        if not self.is_active():
            return False

        # a row is gone remotely even when the feed had already dropped it
        self.store.apply_delete(report_id)
        self._record(self.store.apply_delete, report_id)
        return True
