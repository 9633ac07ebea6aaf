# ui/controller.py - Connects in/out operations to the Qt views
#
# Each slot runs one operation for the current operator, then reports the
# outcome as a Message and signals that records changed. Operation errors
# are turned into error messages here and never reach Qt.

import logging
import sqlite3
from datetime import datetime
from typing import Callable

from PyQt5 import QtCore

from database import InstrumentRepository
from domain.errors import TrackerError
from domain.models import InstrumentRecord, Message
from services import identity, transition_service

logger = logging.getLogger(__name__)


def _label(record: InstrumentRecord) -> str:
    if record.name:
        return f"{record.name} ({record.management_number})"
    return record.management_number


class InOutController(QtCore.QObject):
    records_changed = QtCore.pyqtSignal()
    message = QtCore.pyqtSignal(object)

    def __init__(self, repo: InstrumentRepository, clock: Callable[[], datetime] = datetime.now,
                 parent=None):
        super().__init__(parent)
        self.repo = repo
        self.clock = clock
        self.last_message: Message | None = None

    def current_operator(self) -> str:
        return identity.get_current_user_id(self.repo)

    def _notify(self, msg: Message) -> None:
        self.last_message = msg
        self.message.emit(msg)

    def _run(self, op: Callable[[], InstrumentRecord], success: Callable[[InstrumentRecord], str]):
        try:
            record = op()
        except TrackerError as e:
            logger.info("Operation rejected: %s", e)
            self._notify(Message(str(e), Message.ERROR))
            return None
        except sqlite3.Error as e:
            logger.error("Operation failed to save: %s", e, exc_info=True)
            self._notify(Message(f"Could not save the change, please try again ({e})", Message.ERROR))
            return None
        self.records_changed.emit()
        self._notify(Message(success(record), Message.SUCCESS))
        return record

    def check_out(self, management_number: str):
        return self._run(
            lambda: transition_service.check_out_instrument(
                self.repo, management_number, self.current_operator(), self.clock()),
            lambda r: f"Instrument {_label(r)} checked out",
        )

    def check_in(self, management_number: str):
        return self._run(
            lambda: transition_service.check_in_instrument(
                self.repo, management_number, self.current_operator(), self.clock()),
            lambda r: f"Instrument {_label(r)} checked in",
        )

    def mark_used(self, management_number: str):
        return self._run(
            lambda: transition_service.mark_instrument_used(
                self.repo, management_number, self.current_operator(), self.clock()),
            lambda r: f"Instrument {_label(r)} marked as used",
        )

    def borrow(self, management_number: str, borrower_name: str):
        return self._run(
            lambda: transition_service.borrow_instrument(
                self.repo, management_number, borrower_name, self.clock()),
            lambda r: f"Instrument {_label(r)} borrowed by {r.borrowed_by}",
        )

    def delay(self, management_number: str, days: int):
        return self._run(
            lambda: transition_service.delay_instrument(
                self.repo, management_number, days, self.current_operator(), self.clock()),
            lambda r: (
                f"Instrument {_label(r)} delayed; shown until end of "
                f"{r.display_until.isoformat()}"
            ),
        )

    def clear_today_record(self, management_number: str):
        return self._run(
            lambda: transition_service.clear_instrument_today_record(
                self.repo, management_number, self.current_operator(), self.clock()),
            lambda r: f"Today's record for {_label(r)} cleared",
        )
