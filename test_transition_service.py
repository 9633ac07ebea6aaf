# test_transition_service.py
"""
Unit tests for transition_service: check-out/in, use, borrow, delay, clear.
Run with: python -m pytest test_transition_service.py -v
Or: python test_transition_service.py
"""

import unittest
from dataclasses import replace
from datetime import date, datetime, timedelta

from database import InstrumentRepository, get_connection, initialize_db
from domain.errors import InvalidStateError, NotFoundError, ValidationError
from domain.models import (
    AVAILABLE, IN, IN_OUT_STATUSES, OUT, USED, USING_OUT, InstrumentRecord,
)
from services import transition_service as ts
from services.daily_reset_service import run_daily_reset

T1 = datetime(2026, 10, 19, 9, 15, 30, 123456)
T2 = datetime(2026, 10, 19, 11, 0, 0)
T3 = datetime(2026, 10, 19, 16, 45, 10)
YESTERDAY = date(2026, 10, 18)


def make_record(**kw) -> InstrumentRecord:
    base = dict(
        id="r1",
        management_number="X",
        name="Digital Thermometer",
        model="DT-100",
        manufacturer="Acme",
        factory_number="F-001",
    )
    base.update(kw)
    return InstrumentRecord(**base)


class TestCheckOut(unittest.TestCase):
    def test_sets_status_operator_and_times(self):
        rec = make_record(inbound_time=datetime(2026, 10, 18, 8, 0), deleted_today_record=True)
        out = ts.check_out(rec, "alice", T1)
        self.assertEqual(out.in_out_status, OUT)
        self.assertEqual(out.operator, "alice")
        self.assertEqual(out.outbound_time, datetime(2026, 10, 19, 9, 15, 30))
        self.assertIsNone(out.inbound_time)
        self.assertEqual(out.operation_date, T1.date())
        self.assertFalse(out.deleted_today_record)

    def test_original_record_untouched(self):
        rec = make_record()
        ts.check_out(rec, "alice", T1)
        self.assertEqual(rec.in_out_status, IN)
        self.assertIsNone(rec.operator)

    def test_recheckout_is_permitted_and_restamps(self):
        first = ts.check_out(make_record(), "alice", T1)
        second = ts.check_out(first, "alice", T2)
        self.assertEqual(second.in_out_status, OUT)
        self.assertEqual(second.outbound_time, T2)

    def test_recheckout_drops_previous_borrow(self):
        rec = ts.borrow(ts.check_out(make_record(), "alice", T1), "bob", T2)
        again = ts.check_out(rec, "dave", T3)
        self.assertIsNone(again.borrowed_by)
        self.assertIsNone(again.borrowed_time)
        self.assertEqual(again.display_operator, "dave")

    def test_blank_actor_rejected(self):
        with self.assertRaises(ValidationError):
            ts.check_out(make_record(), "  ", T1)

    def test_descriptive_fields_unchanged(self):
        rec = make_record()
        out = ts.check_out(rec, "alice", T1)
        for f in ("management_number", "name", "model", "manufacturer", "factory_number"):
            self.assertEqual(getattr(out, f), getattr(rec, f))


class TestCheckIn(unittest.TestCase):
    def test_sets_in_and_operator(self):
        rec = ts.check_out(make_record(), "alice", T1)
        back = ts.check_in(rec, "carol", T3)
        self.assertEqual(back.in_out_status, IN)
        self.assertEqual(back.inbound_time, T3)
        self.assertEqual(back.operator, "carol")
        self.assertEqual(back.operation_date, T3.date())
        self.assertFalse(back.deleted_today_record)

    def test_borrow_attribution_survives_check_in(self):
        # checkOut(alice) -> borrow(bob) -> checkIn(carol)
        rec = ts.check_out(make_record(), "alice", T1)
        rec = ts.borrow(rec, "bob", T2)
        rec = ts.check_in(rec, "carol", T3)
        self.assertEqual(rec.display_operator, "alice（借用：bob）")
        self.assertEqual(rec.operator, "alice")
        self.assertEqual(rec.borrowed_by, "bob")

    def test_cleared_borrow_no_longer_protects_operator(self):
        rec = ts.borrow(ts.check_out(make_record(), "alice", T1), "bob", T2)
        rec = replace(rec, deleted_today_record=True)
        back = ts.check_in(rec, "carol", T3)
        self.assertEqual(back.operator, "carol")
        self.assertIsNone(back.borrowed_by)
        self.assertIsNone(back.borrowed_time)
        self.assertEqual(back.display_operator, "carol")


class TestMarkUsed(unittest.TestCase):
    def test_sets_used_and_using_out(self):
        rec = ts.check_out(make_record(), "alice", T1)
        used = ts.mark_used(rec, "erin", T2)
        self.assertEqual(used.instrument_status, USED)
        self.assertEqual(used.in_out_status, USING_OUT)
        self.assertEqual(used.used_time, T2)
        self.assertEqual(used.operator, "erin")
        self.assertEqual(used.operation_date, T2.date())

    def test_keeps_operator_while_borrowed(self):
        rec = ts.borrow(ts.check_out(make_record(), "alice", T1), "bob", T2)
        used = ts.mark_used(rec, "erin", T3)
        self.assertEqual(used.operator, "alice")

    def test_use_after_cleared_borrow_drops_borrower(self):
        rec = ts.borrow(ts.check_out(make_record(), "alice", T1), "bob", T2)
        rec = ts.clear_today_record(rec, T2)
        used = ts.mark_used(rec, "erin", T3)
        self.assertEqual(used.display_operator, "erin")
        self.assertIsNone(used.borrowed_by)


class TestBorrow(unittest.TestCase):
    def test_borrow_out_instrument(self):
        rec = ts.check_out(make_record(), "alice", T1)
        b = ts.borrow(rec, " bob ", T2)
        self.assertEqual(b.borrowed_by, "bob")
        self.assertEqual(b.borrowed_time, T2)
        self.assertEqual(b.in_out_status, OUT)
        self.assertEqual(b.display_operator, "alice（借用：bob）")
        self.assertEqual(b.operation_date, T2.date())

    def test_borrow_requires_out(self):
        for status in (IN, USING_OUT):
            rec = make_record(in_out_status=status)
            with self.assertRaises(InvalidStateError):
                ts.borrow(rec, "bob", T2)
            self.assertIsNone(rec.borrowed_by)
            self.assertEqual(rec.in_out_status, status)

    def test_blank_borrower_rejected(self):
        rec = ts.check_out(make_record(), "alice", T1)
        with self.assertRaises(ValidationError):
            ts.borrow(rec, "", T2)


class TestDelay(unittest.TestCase):
    def test_sets_window(self):
        rec = ts.check_out(make_record(), "alice", T1)
        d = ts.delay(rec, 3, "alice", T2)
        self.assertEqual(d.delay_days, 3)
        self.assertEqual(d.display_until, date(2026, 10, 22))
        self.assertEqual(d.expected_return_date, date(2026, 10, 22))
        self.assertEqual(d.delay_operator, "alice")
        self.assertEqual(d.delay_time, T2)
        self.assertEqual(d.operation_date, T2.date())
        self.assertFalse(d.deleted_today_record)

    def test_shorter_delay_never_shrinks_window(self):
        rec = ts.check_out(make_record(), "alice", T1)
        five = ts.delay(rec, 5, "alice", T1)
        two = ts.delay(five, 2, "alice", T2)
        self.assertEqual(two.display_until, five.display_until)
        self.assertEqual(two.display_until, T1.date() + timedelta(days=5))
        self.assertEqual(two.delay_days, 5)

    def test_longer_delay_extends(self):
        rec = ts.delay(make_record(), 2, "alice", T1)
        longer = ts.delay(rec, 7, "alice", T2)
        self.assertEqual(longer.display_until, T2.date() + timedelta(days=7))

    def test_invalid_days_rejected(self):
        rec = make_record()
        for bad in (0, -1, 1.5, "3", None, True):
            with self.assertRaises(ValidationError, msg=repr(bad)):
                ts.delay(rec, bad, "alice", T1)
        self.assertIsNone(rec.display_until)

    def test_check_in_keeps_delay_window(self):
        rec = ts.delay(ts.check_out(make_record(), "alice", T1), 4, "alice", T1)
        back = ts.check_in(rec, "alice", T3)
        self.assertEqual(back.display_until, rec.display_until)
        again = ts.check_out(back, "alice", T3)
        self.assertEqual(again.display_until, rec.display_until)


class TestClearTodayRecord(unittest.TestCase):
    def test_only_visibility_changes(self):
        rec = ts.delay(ts.borrow(ts.check_out(make_record(), "alice", T1), "bob", T2), 3, "alice", T2)
        cleared = ts.clear_today_record(rec, T3)
        self.assertTrue(cleared.deleted_today_record)
        self.assertEqual(cleared.deleted_time, T3)
        self.assertEqual(replace(cleared, deleted_today_record=False, deleted_time=None),
                         replace(rec, deleted_time=None))

    def test_next_action_reactivates(self):
        cleared = ts.clear_today_record(ts.check_out(make_record(), "alice", T1), T2)
        back = ts.check_in(cleared, "alice", T3)
        self.assertFalse(back.deleted_today_record)


class TestStatusInvariants(unittest.TestCase):
    def test_every_operation_keeps_valid_status_and_stamps_day(self):
        rec = make_record(operation_date=YESTERDAY, deleted_today_record=True)
        steps = [
            lambda r: ts.check_out(r, "alice", T1),
            lambda r: ts.borrow(r, "bob", T1),
            lambda r: ts.delay(r, 2, "alice", T2),
            lambda r: ts.mark_used(r, "alice", T2),
            lambda r: ts.check_in(r, "alice", T3),
        ]
        for step in steps:
            rec = step(rec)
            self.assertIn(rec.in_out_status, IN_OUT_STATUSES)
            self.assertEqual(rec.operation_date, T1.date())
            self.assertFalse(rec.deleted_today_record)


class TestRepositoryOperations(unittest.TestCase):
    def setUp(self):
        conn = initialize_db(get_connection(":memory:"))
        self.repo = InstrumentRepository(conn)
        self.rid = self.repo.add_instrument({
            "management_number": "X",
            "name": "Digital Thermometer",
            "factory_number": "F-001",
        })

    def tearDown(self):
        self.repo.conn.close()

    def test_scenario_borrow_then_check_in(self):
        ts.check_out_instrument(self.repo, "X", "alice", T1)
        ts.borrow_instrument(self.repo, "X", "bob", T2)
        ts.check_in_instrument(self.repo, "X", "carol", T3)
        rec = self.repo.get(self.rid)
        self.assertEqual(rec.display_operator, "alice（借用：bob）")
        self.assertEqual(rec.in_out_status, IN)

    def test_check_in_after_next_day_reset_drops_borrower(self):
        ts.check_out_instrument(self.repo, "X", "alice", datetime(2026, 10, 18, 9, 0, 0))
        ts.borrow_instrument(self.repo, "X", "bob", datetime(2026, 10, 18, 10, 0, 0))
        self.assertEqual(run_daily_reset(self.repo, datetime(2026, 10, 19, 0, 0, 5)), 1)
        self.assertFalse(self.repo.get(self.rid).has_active_borrow)

        ts.check_in_instrument(self.repo, "X", "carol", T3)
        rec = self.repo.get(self.rid)
        self.assertEqual(rec.display_operator, "carol")
        self.assertIsNone(rec.borrowed_by)
        self.assertFalse(rec.deleted_today_record)

    def test_unknown_management_number(self):
        with self.assertRaises(NotFoundError):
            ts.check_out_instrument(self.repo, "NOPE", "alice", T1)

    def test_rejected_borrow_leaves_store_untouched(self):
        before = self.repo.get(self.rid)
        with self.assertRaises(InvalidStateError):
            ts.borrow_instrument(self.repo, "X", "bob", T2)
        self.assertEqual(self.repo.get(self.rid), before)

    def test_operations_write_audit_rows(self):
        ts.check_out_instrument(self.repo, "X", "alice", T1)
        ts.delay_instrument(self.repo, "X", 2, "alice", T2)
        ts.clear_instrument_today_record(self.repo, "X", "alice", T3)
        actions = [a["action"] for a in self.repo.get_audit_for_instrument(self.rid)]
        for expected in ("create", "check_out", "delay", "clear_today_record"):
            self.assertIn(expected, actions)

    def test_mark_used_persists(self):
        ts.check_out_instrument(self.repo, "X", "alice", T1)
        ts.mark_instrument_used(self.repo, "X", "alice", T2)
        rec = self.repo.get(self.rid)
        self.assertEqual(rec.instrument_status, USED)
        self.assertEqual(rec.in_out_status, USING_OUT)
        self.assertNotEqual(rec.instrument_status, AVAILABLE)


if __name__ == "__main__":
    unittest.main()
