# ui/table_models.py - Table model shared by the in/out and management views

from datetime import date, datetime

from PyQt5 import QtCore, QtGui

from domain.models import IN_OUT_LABELS, OUT, USING_OUT, InstrumentRecord


def _fmt_time(value: datetime | None) -> str:
    # ISO in storage, local "YYYY-MM-DD HH:MM:SS" on screen
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _fmt_date(value: date | None) -> str:
    return value.isoformat() if value else ""


class InstrumentTableModel(QtCore.QAbstractTableModel):
    """Table model for a list of InstrumentRecord."""

    HEADERS = [
        "Management No.",
        "Name",
        "Model",
        "Factory No.",
        "Range",
        "Status",
        "Operator",
        "In/Out",
        "Out time",
        "In time",
        "Used time",
        "Shown until",
        "Notes",
    ]

    def __init__(self, records=None, parent=None):
        super().__init__(parent)
        self.records: list[InstrumentRecord] = records or []
        self._sort_column: int | None = None
        self._sort_order = QtCore.Qt.AscendingOrder

    def _cell(self, rec: InstrumentRecord, col: int):
        if col == 0:
            return rec.management_number
        elif col == 1:
            return rec.name or ""
        elif col == 2:
            return rec.model or ""
        elif col == 3:
            return rec.factory_number or ""
        elif col == 4:
            return rec.measurement_range or ""
        elif col == 5:
            return rec.instrument_status
        elif col == 6:
            return rec.display_operator
        elif col == 7:
            return IN_OUT_LABELS.get(rec.in_out_status, rec.in_out_status)
        elif col == 8:
            return _fmt_time(rec.outbound_time)
        elif col == 9:
            return _fmt_time(rec.inbound_time)
        elif col == 10:
            return _fmt_time(rec.used_time)
        elif col == 11:
            return _fmt_date(rec.display_until)
        elif col == 12:
            return rec.notes or ""
        return None

    def rowCount(self, parent=None):
        return len(self.records)

    def columnCount(self, parent=None):
        return len(self.HEADERS)

    def data(self, index, role=QtCore.Qt.DisplayRole):
        if not index.isValid():
            return None
        rec = self.records[index.row()]

        if role == QtCore.Qt.DisplayRole:
            return self._cell(rec, index.column())

        if role == QtCore.Qt.ForegroundRole:
            if rec.deleted_today_record:
                return QtGui.QColor("#888888")
            if index.column() == 7 and rec.in_out_status in (OUT, USING_OUT):
                return QtGui.QColor("#E07A1F")
            return None

        if role == QtCore.Qt.ToolTipRole and rec.deleted_today_record:
            return "Hidden from the in/out view (today's record cleared)"
        return None

    def headerData(self, section, orientation, role=QtCore.Qt.DisplayRole):
        if role != QtCore.Qt.DisplayRole:
            return None
        if orientation == QtCore.Qt.Horizontal:
            return self.HEADERS[section]
        return section + 1

    def _sort_records(self):
        if self._sort_column is None or not 0 <= self._sort_column < len(self.HEADERS):
            return
        column = self._sort_column
        reverse = self._sort_order == QtCore.Qt.DescendingOrder
        self.records.sort(key=lambda r: str(self._cell(r, column) or ""), reverse=reverse)

    def sort(self, column, order=QtCore.Qt.AscendingOrder):
        self._sort_column = column
        self._sort_order = order
        self.layoutAboutToBeChanged.emit()
        self._sort_records()
        self.layoutChanged.emit()

    def set_records(self, records):
        # Reloads keep the sort the user picked in the header
        self.beginResetModel()
        self.records = list(records)
        self._sort_records()
        self.endResetModel()

    def get_record_at_row(self, row) -> InstrumentRecord | None:
        if 0 <= row < len(self.records):
            return self.records[row]
        return None
