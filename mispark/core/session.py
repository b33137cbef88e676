import logging
from typing import Optional

from mispark.core.feed_store import ReportFeedStore
from mispark.core.reconciler import RealtimeReconciler
from mispark.utils.location import describe_location, reverse_geocode_nominatim

logger = logging.getLogger(__name__)


class DeleteFailed(Exception):
    user_message = "Failed to delete the report"


class FeedSession:
    def __init__(self, backend, channel, uploader, resync_on_reconnect: bool = True, geocoder=reverse_geocode_nominatim):
        self.backend = backend
        self.uploader = uploader
        self.geocoder = geocoder
        self.store = ReportFeedStore()
        self.reconciler = RealtimeReconciler(
            self.store,
            backend,
            channel,
            resync_on_reconnect=resync_on_reconnect,
            is_active=lambda: self.active,
        )

        self.opened = False
        self.closed = False
        self._addresses: dict[int, str] = {}

    @property
    def active(self) -> bool:
        return self.opened and not self.closed

    async def open(self):
        if self.opened:
            raise RuntimeError("feed session already opened")

        self.opened = True
        await self.reconciler.start()

    async def close(self):
        if not self.opened or self.closed:
            logger.debug("Feed session close ignored, nothing to release")
            return

        self.closed = True
        await self.reconciler.stop()
        logger.info("Feed session closed")

    async def __aenter__(self):
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def refresh(self) -> bool:
        return await self.reconciler.resync()

    async def delete_report(self, report_id: int):
        """Optimistic delete, confirmed or rolled back by the remote call."""
        token = self.store.optimistic_delete(report_id)

        try:
            deleted = await self.backend.delete_report(report_id)
        except Exception as e:
            logger.error("Delete of report %s failed: %s", report_id, e)
            self.store.rollback_delete(token)
            raise DeleteFailed(str(e)) from e

        if not deleted:
            # nothing removed remotely: not permitted or already gone
            logger.warning("Delete of report %s removed no rows", report_id)
            self.store.rollback_delete(token)
            raise DeleteFailed(f"report {report_id} was not deleted")

        self.store.confirm_delete(token)
        await self._remove_photos(deleted)

    async def _remove_photos(self, deleted):
        keys = [self.uploader.key_from_public_url(row.photo_url) for row in deleted]
        keys = [key for key in keys if key]
        if not keys:
            return

        try:
            await self.uploader.remove(keys)
        except Exception as e:
            logger.warning("Failed to remove storage objects %s: %s", keys, e)

    async def map_markers(self) -> list[dict]:
        reports = self.store.reports
        live = {report.id for report in reports}
        for report_id in [key for key in self._addresses if key not in live]:
            del self._addresses[report_id]

        markers = []
        for report in reports:
            address: Optional[str] = self._addresses.get(report.id)
            if address is None:
                address = await describe_location(report.latitude, report.longitude, self.geocoder)
                self._addresses[report.id] = address

            data = report.model_dump()
            data["display_address"] = address
            markers.append(data)

        return markers
