# scheduler.py - Runs the daily reset at every local midnight
#
# One single-shot timer aimed at the next midnight, re-armed after each
# fire, plus a coarse poll as a safety net against suspend and clock
# changes. Both call the same idempotent scan.

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Callable

from PyQt5 import QtCore

from config import DEFAULT_POLL_SECONDS
from crash_log import log_current_exception
from database import InstrumentRepository
from services.daily_reset_service import run_daily_reset

logger = logging.getLogger(__name__)


def next_midnight(now: datetime) -> datetime:
    """Start of the next local calendar day."""
    return datetime.combine(now.date() + timedelta(days=1), datetime.min.time())


def ms_until_next_midnight(now: datetime) -> int:
    """Milliseconds until the next local midnight; never negative."""
    delta = next_midnight(now) - now
    return max(0, int(delta.total_seconds() * 1000))


class DayBoundaryScheduler(QtCore.QObject):
    """
    Hides stale operational records once per day boundary.

    start() scans immediately and arms the timers. The scheduler never
    raises to its caller; failed passes are logged and reported through
    reset_failed.
    """

    records_changed = QtCore.pyqtSignal(int)
    reset_failed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        repo: InstrumentRepository,
        poll_seconds: int = DEFAULT_POLL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        parent=None,
    ):
        super().__init__(parent)
        self.repo = repo
        self.clock = clock
        self.next_boundary: datetime | None = None
        self.last_run: datetime | None = None

        self._midnight_timer = QtCore.QTimer(self)
        self._midnight_timer.setSingleShot(True)
        self._midnight_timer.timeout.connect(self._on_boundary)

        self._poll_timer = QtCore.QTimer(self)
        self._poll_timer.setInterval(max(1, int(poll_seconds)) * 1000)
        self._poll_timer.timeout.connect(self._on_poll)

    def start(self) -> None:
        self.run_now()
        self._poll_timer.start()

    def stop(self) -> None:
        self._midnight_timer.stop()
        self._poll_timer.stop()

    def is_armed(self) -> bool:
        return self._midnight_timer.isActive()

    def run_now(self) -> int:
        """Scan now (startup, boundary or forced re-run) and re-arm for the next midnight."""
        changed = self._scan()
        self._arm()
        return changed

    def _arm(self) -> None:
        now = self.clock()
        self.next_boundary = next_midnight(now)
        self._midnight_timer.start(ms_until_next_midnight(now))
        logger.debug("Daily reset armed for %s", self.next_boundary)

    def _scan(self) -> int:
        now = self.clock()
        self.last_run = now
        try:
            changed = run_daily_reset(self.repo, now)
        except sqlite3.Error as e:
            logger.error("Daily reset failed: %s", e, exc_info=True)
            self.reset_failed.emit(str(e))
            return 0
        except Exception as e:
            log_current_exception("daily reset")
            self.reset_failed.emit(str(e))
            return 0
        if changed:
            self.records_changed.emit(changed)
        return changed

    def _on_boundary(self) -> None:
        logger.info("Day boundary reached, running daily reset")
        self.run_now()

    def _on_poll(self) -> None:
        if self.next_boundary is not None and self.clock() >= self.next_boundary:
            # Suspended or clock moved past the armed midnight
            logger.info("Missed day boundary %s, running daily reset now", self.next_boundary)
            self.run_now()
            return
        self._scan()
