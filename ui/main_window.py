# ui/main_window.py - Main application window

from datetime import datetime

from PyQt5 import QtWidgets, QtCore, QtGui

from database import InstrumentRepository
from domain.models import Message
from scheduler import DayBoundaryScheduler
from services import identity
from services.daily_reset_service import load_records_tolerant
from services.visibility import hidden_status_hint, management_view, operational_view
from ui.controller import InOutController
from ui.table_models import InstrumentTableModel

_SEVERITY_COLORS = {
    Message.SUCCESS: "#2E7D32",
    Message.ERROR: "#C62828",
    Message.WARNING: "#E07A1F",
    Message.INFO: "",
}


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, repo: InstrumentRepository, scheduler: DayBoundaryScheduler | None = None):
        super().__init__()
        self.repo = repo
        self.controller = InOutController(repo, parent=self)
        self.scheduler = scheduler
        self.setWindowTitle("Instrument Tracker")
        self.resize(1200, 650)

        self._init_ui()
        self.controller.records_changed.connect(self.load_instruments)
        self.controller.message.connect(self.show_message)
        if self.scheduler is not None:
            self.scheduler.records_changed.connect(lambda _n: self.load_instruments())
            self.scheduler.reset_failed.connect(
                lambda err: self.show_message(Message(f"Daily reset failed: {err}", Message.ERROR))
            )
        self.load_instruments()

    # ---------- Layout ----------

    def _init_ui(self):
        self.tabs = QtWidgets.QTabWidget()
        self.setCentralWidget(self.tabs)

        # In/out (operational) view
        inout = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(inout)

        search_row = QtWidgets.QHBoxLayout()
        self.search_edit = QtWidgets.QLineEdit()
        self.search_edit.setPlaceholderText("Search name, model, management or factory number...")
        self.search_edit.setClearButtonEnabled(True)
        self.search_edit.textChanged.connect(self.load_instruments)
        search_row.addWidget(QtWidgets.QLabel("Search:"))
        search_row.addWidget(self.search_edit, 1)
        v.addLayout(search_row)

        self.inout_model = InstrumentTableModel()
        self.inout_table = self._make_table(self.inout_model)
        v.addWidget(self.inout_table, 1)

        self.empty_label = QtWidgets.QLabel()
        self.empty_label.setAlignment(QtCore.Qt.AlignCenter)
        self.empty_label.setStyleSheet("color: #999; padding: 8px;")
        v.addWidget(self.empty_label)

        btn_row = QtWidgets.QHBoxLayout()
        for text, slot in (
            ("Check out", self.on_check_out),
            ("Check in", self.on_check_in),
            ("Use", self.on_mark_used),
            ("Borrow...", self.on_borrow),
            ("Delay...", self.on_delay),
            ("Clear today's record", self.on_clear_today_record),
        ):
            btn = QtWidgets.QPushButton(text)
            btn.clicked.connect(slot)
            btn_row.addWidget(btn)
        btn_row.addStretch(1)
        v.addLayout(btn_row)

        self.tabs.addTab(inout, "Instruments in/out")

        # Management view (all records)
        mgmt = QtWidgets.QWidget()
        mv = QtWidgets.QVBoxLayout(mgmt)
        self.mgmt_model = InstrumentTableModel()
        self.mgmt_table = self._make_table(self.mgmt_model)
        mv.addWidget(self.mgmt_table, 1)
        self.tabs.addTab(mgmt, "Instrument management")

        # Menu
        tools = self.menuBar().addMenu("&Tools")
        act_reset = tools.addAction("Run daily reset now")
        act_reset.triggered.connect(self.on_run_reset)
        act_operator = tools.addAction("Set operator name...")
        act_operator.triggered.connect(self.on_set_operator)
        act_refresh = tools.addAction("Refresh")
        act_refresh.setShortcut(QtGui.QKeySequence.Refresh)
        act_refresh.triggered.connect(self.load_instruments)

        self.operator_label = QtWidgets.QLabel()
        self.statusBar().addPermanentWidget(self.operator_label)
        self._update_operator_label()

    def _make_table(self, model):
        table = QtWidgets.QTableView()
        table.setModel(model)
        table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        table.setSelectionMode(QtWidgets.QAbstractItemView.SingleSelection)
        table.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        table.setSortingEnabled(True)
        table.horizontalHeader().setStretchLastSection(True)
        table.verticalHeader().setVisible(False)
        return table

    # ---------- Data ----------

    def load_instruments(self):
        records = load_records_tolerant(self.repo)
        today = datetime.now().date()
        term = self.search_edit.text()

        visible = operational_view(records, today, term)
        self.inout_model.set_records(visible)
        self.mgmt_model.set_records(management_view(records))

        if visible:
            self.empty_label.setText("")
        elif term.strip():
            self.empty_label.setText(
                hidden_status_hint(records, today, term) or "No matching instruments"
            )
        else:
            self.empty_label.setText("No in/out activity today")

    def _selected_management_number(self) -> str | None:
        idx = self.inout_table.currentIndex()
        rec = self.inout_model.get_record_at_row(idx.row()) if idx.isValid() else None
        if rec is None:
            self.show_message(Message("Select an instrument first", Message.WARNING))
            return None
        return rec.management_number

    def show_message(self, msg: Message):
        color = _SEVERITY_COLORS.get(msg.severity, "")
        self.statusBar().setStyleSheet(f"color: {color};" if color else "")
        self.statusBar().showMessage(msg.text, 8000)

    def _update_operator_label(self):
        self.operator_label.setText(f"Operator: {identity.get_current_user_id(self.repo)}")

    # ---------- Actions ----------

    def on_check_out(self):
        mn = self._selected_management_number()
        if mn:
            self.controller.check_out(mn)

    def on_check_in(self):
        mn = self._selected_management_number()
        if mn:
            self.controller.check_in(mn)

    def on_mark_used(self):
        mn = self._selected_management_number()
        if mn:
            self.controller.mark_used(mn)

    def on_borrow(self):
        mn = self._selected_management_number()
        if not mn:
            return
        name, ok = QtWidgets.QInputDialog.getText(
            self, "Borrow instrument", f"Borrower name for {mn}:"
        )
        if ok:
            self.controller.borrow(mn, name)

    def on_delay(self):
        mn = self._selected_management_number()
        if not mn:
            return
        days, ok = QtWidgets.QInputDialog.getInt(
            self, "Delay instrument", f"Keep {mn} in the in/out view for how many days?",
            1, 1, 365,
        )
        if ok:
            self.controller.delay(mn, days)

    def on_clear_today_record(self):
        mn = self._selected_management_number()
        if not mn:
            return
        reply = QtWidgets.QMessageBox.question(
            self,
            "Clear today's record",
            f"Hide {mn} from the in/out view? The instrument itself is not deleted.",
        )
        if reply == QtWidgets.QMessageBox.Yes:
            self.controller.clear_today_record(mn)

    def on_run_reset(self):
        if self.scheduler is None:
            return
        changed = self.scheduler.run_now()
        self.load_instruments()
        self.show_message(Message(f"Daily reset: {changed} record(s) hidden", Message.INFO))

    def on_set_operator(self):
        name, ok = QtWidgets.QInputDialog.getText(
            self, "Operator", "Operator name:", text=identity.get_current_user_id(self.repo)
        )
        if not ok:
            return
        try:
            identity.set_current_user(self.repo, name)
        except ValueError as e:
            self.show_message(Message(str(e), Message.ERROR))
            return
        self._update_operator_label()
