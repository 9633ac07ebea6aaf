# services/daily_reset_service.py - Day-boundary reset of the in/out view
#
# Records whose last operation was on an earlier day are hidden from the
# operational view (deleted_today_record), unless a delay window still
# covers today. Instruments left in external use are returned to stock
# first. Nothing is ever deleted. Safe to run any number of times a day.

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable

from domain.models import AVAILABLE, IN, USING_OUT, InstrumentRecord

if TYPE_CHECKING:
    from database import InstrumentRepository

logger = logging.getLogger(__name__)


def reset_record(record: InstrumentRecord, today: date) -> InstrumentRecord | None:
    """Return the reset copy of a stale record, or None if it stays as it is."""
    if record.deleted_today_record:
        return None
    if record.display_until is not None and record.display_until >= today:
        return None
    if record.operation_date is None or record.operation_date == today:
        return None

    if (
        record.in_out_status == USING_OUT
        and record.outbound_time is not None
        and record.used_time is not None
    ):
        return replace(
            record,
            in_out_status=IN,
            instrument_status=AVAILABLE,
            borrowed_by=None,
            borrowed_time=None,
            operation_date=today,
            deleted_today_record=True,
        )
    return replace(record, deleted_today_record=True)


def scan_records(records: Iterable[InstrumentRecord], today: date) -> list[InstrumentRecord]:
    """Apply the reset rule to every record; returns only the changed copies."""
    changed = []
    for record in records:
        updated = reset_record(record, today)
        if updated is not None:
            changed.append(updated)
    return changed


def load_records_tolerant(repo: "InstrumentRepository") -> list[InstrumentRecord]:
    """All records that can be read; malformed rows are logged and skipped."""
    records = []
    for row in repo.list_instrument_rows():
        try:
            records.append(InstrumentRecord.from_row(row))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping malformed instrument row %s: %s", row.get("id"), e)
    return records


def run_daily_reset(repo: "InstrumentRepository", now: datetime | None = None) -> int:
    """
    Scan all instruments against today's date and persist the changes in one
    batch. Returns the number of records changed.
    """
    today = (now or datetime.now()).date()
    records = load_records_tolerant(repo)
    changed = scan_records(records, today)
    if not changed:
        logger.debug("Daily reset for %s: nothing to do (%s records)", today, len(records))
        return 0

    repo.save_all(changed)
    for record in changed:
        repo.log_audit(
            record.id,
            "daily_reset",
            field="in_out_status",
            new_value=record.in_out_status,
            reason=f"Operation date before {today.isoformat()}",
            _commit=False,
        )
    repo.conn.commit()
    logger.info("Daily reset for %s: %s of %s records hidden", today, len(changed), len(records))
    return len(changed)
