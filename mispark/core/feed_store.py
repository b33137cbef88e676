import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Hashable, Iterable, Optional

from mispark.models.report import FeedReport

logger = logging.getLogger(__name__)

# Tombstone for an id whose row was never seen; no re-insert can beat it
UNKNOWN_AGE = None


@dataclass(frozen=True)
class UndoToken:
    serial: int
    report: FeedReport


def _order_key(report: FeedReport):
    return report.created_at, report.id


class ReportFeedStore:
    def __init__(self):
        self._reports: list[FeedReport] = []
        self._by_id: dict[Hashable, FeedReport] = {}
        self._tombstones: dict[Hashable, Optional[datetime]] = {}
        self._pending: dict[int, UndoToken] = {}
        self._pending_ids: dict[Hashable, int] = {}
        self._serials = itertools.count(1)
        self._listeners: list[Callable[[tuple[FeedReport, ...]], None]] = []

    @property
    def reports(self) -> tuple[FeedReport, ...]:
        return tuple(self._reports)

    def __len__(self):
        return len(self._reports)

    def __contains__(self, report_id):
        return report_id in self._by_id

    def get(self, report_id) -> Optional[FeedReport]:
        return self._by_id.get(report_id)

    def add_listener(self, listener: Callable[[tuple[FeedReport, ...]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self):
        snapshot = self.reports
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Feed listener failed")

    def _is_buried(self, report: FeedReport) -> bool:
        if report.id not in self._tombstones:
            return False

        deleted_at = self._tombstones[report.id]
        return deleted_at is UNKNOWN_AGE or report.created_at <= deleted_at

    def _insertion_point(self, report: FeedReport) -> int:
        key = _order_key(report)
        lo, hi = 0, len(self._reports)
        while lo < hi:
            mid = (lo + hi) // 2
            if _order_key(self._reports[mid]) > key:
                lo = mid + 1
            else:
                hi = mid
        return lo

    def _insert(self, report: FeedReport):
        self._reports.insert(self._insertion_point(report), report)
        self._by_id[report.id] = report

    def _remove(self, report_id) -> Optional[FeedReport]:
        report = self._by_id.pop(report_id, None)
        if report is not None:
            self._reports.remove(report)
        return report

    def _bury(self, report_id, created_at: Optional[datetime]):
        current = self._tombstones.get(report_id, created_at)
        if current is UNKNOWN_AGE or created_at is UNKNOWN_AGE:
            self._tombstones[report_id] = UNKNOWN_AGE
        else:
            self._tombstones[report_id] = max(current, created_at)

    def load(self, initial: Iterable[FeedReport]):
        """Replace the whole collection with a snapshot."""
        rows: dict[Hashable, FeedReport] = {}
        for report in initial:
            if self._is_buried(report) or report.id in self._pending_ids:
                continue

            seen = rows.get(report.id)
            if seen is None or report.created_at > seen.created_at:
                rows[report.id] = report

        self._reports = sorted(rows.values(), key=_order_key, reverse=True)
        self._by_id = {report.id: report for report in self._reports}
        logger.debug("Loaded %d reports", len(self._reports))
        self._notify()

    def apply_insert(self, report: FeedReport) -> bool:
        if report.id in self._by_id or report.id in self._pending_ids:
            logger.debug("Insert of report %s ignored, already known", report.id)
            return False

        if self._is_buried(report):
            logger.debug("Insert of report %s ignored, deleted earlier", report.id)
            return False

        self._tombstones.pop(report.id, None)
        self._insert(report)
        self._notify()
        return True

    def apply_delete(self, report_id) -> bool:
        report = self._remove(report_id)

        if report is not None:
            self._bury(report_id, report.created_at)
        elif report_id in self._pending_ids:
            token = self._pending[self._pending_ids[report_id]]
            self._bury(report_id, token.report.created_at)
        elif report_id not in self._tombstones:
            self._bury(report_id, UNKNOWN_AGE)

        if report is None:
            logger.debug("Delete of report %s absorbed, not in feed", report_id)
            return False

        self._notify()
        return True

    def optimistic_delete(self, report_id) -> Optional[UndoToken]:
        report = self._remove(report_id)
        if report is None:
            return None

        token = UndoToken(serial=next(self._serials), report=report)
        self._pending[token.serial] = token
        self._pending_ids[report_id] = token.serial
        self._notify()
        return token

    def _settle(self, token: Optional[UndoToken]) -> bool:
        if token is None or self._pending.pop(token.serial, None) is None:
            return False

        self._pending_ids.pop(token.report.id, None)
        return True

    def confirm_delete(self, token: Optional[UndoToken]):
        if self._settle(token):
            self._bury(token.report.id, token.report.created_at)

    def rollback_delete(self, token: Optional[UndoToken]) -> bool:
        if not self._settle(token):
            return False

        report = token.report
        if report.id in self._by_id or self._is_buried(report):
            # deleted remotely in the meantime, or already back via a newer row
            return False

        self._insert(report)
        self._notify()
        return True
