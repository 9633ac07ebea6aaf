# test_controller.py
"""
Tests for InOutController: outcome messages and the records-changed signal.
Run with: python -m pytest test_controller.py -v
"""

import unittest
from datetime import date, datetime

from PyQt5 import QtCore

from database import InstrumentRepository, get_connection, initialize_db
from domain.models import Message
from ui.controller import InOutController


class TestInOutController(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])

    def setUp(self):
        conn = initialize_db(get_connection(":memory:"))
        self.repo = InstrumentRepository(conn)
        self.repo.set_setting("operator_name", "alice")
        self.rid = self.repo.add_instrument({"management_number": "X", "name": "Oven"})
        self.now = datetime(2026, 10, 19, 10, 0, 0)
        self.controller = InOutController(self.repo, clock=lambda: self.now)
        self.changes = []
        self.messages = []
        self.controller.records_changed.connect(lambda: self.changes.append(1))
        self.controller.message.connect(self.messages.append)

    def tearDown(self):
        self.repo.conn.close()

    def test_check_out_uses_current_operator(self):
        rec = self.controller.check_out("X")
        self.assertEqual(rec.operator, "alice")
        self.assertEqual(self.changes, [1])
        self.assertEqual(self.messages[-1].severity, Message.SUCCESS)
        self.assertIn("Oven (X)", self.messages[-1].text)

    def test_rejected_borrow_reports_error_without_change_signal(self):
        self.assertIsNone(self.controller.borrow("X", "bob"))
        self.assertEqual(self.changes, [])
        self.assertEqual(self.messages[-1].severity, Message.ERROR)
        self.assertIsNone(self.repo.get(self.rid).borrowed_by)

    def test_unknown_instrument_reports_error(self):
        self.assertIsNone(self.controller.check_in("NOPE"))
        self.assertEqual(self.controller.last_message.severity, Message.ERROR)

    def test_delay_message_names_window_end(self):
        self.controller.check_out("X")
        rec = self.controller.delay("X", 2)
        self.assertEqual(rec.display_until, date(2026, 10, 21))
        self.assertIn("2026-10-21", self.messages[-1].text)

    def test_invalid_delay_reports_error(self):
        self.assertIsNone(self.controller.delay("X", 0))
        self.assertEqual(self.messages[-1].severity, Message.ERROR)

    def test_full_flow(self):
        self.controller.check_out("X")
        self.controller.borrow("X", "bob")
        self.controller.mark_used("X")
        self.controller.clear_today_record("X")
        rec = self.repo.get(self.rid)
        self.assertTrue(rec.deleted_today_record)
        self.assertEqual(rec.display_operator, "alice（借用：bob）")
        self.assertEqual(len(self.changes), 4)


if __name__ == "__main__":
    unittest.main()
