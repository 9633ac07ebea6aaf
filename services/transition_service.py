# services/transition_service.py - Instrument in/out operations
#
# Record-level functions take a record and return an updated copy; the
# stored record is only replaced once an operation has fully succeeded.
# The *_instrument functions resolve by management number, persist and
# write the audit trail. The acting user is always supplied by the caller.

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from domain.errors import InvalidStateError, NotFoundError, ValidationError
from domain.models import IN, OUT, USED, USING_OUT, InstrumentRecord

if TYPE_CHECKING:
    from database import InstrumentRepository

logger = logging.getLogger(__name__)


def _stamp(now: datetime) -> datetime:
    # Stored timestamps have second precision
    return now.replace(microsecond=0)


def _require_name(value: str | None, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def _attribution_after(record: InstrumentRecord, actor: str) -> dict:
    # Borrower attribution survives check-in/use until the borrow is cleared;
    # after that the actor takes over and the stale borrower is dropped
    if record.has_active_borrow:
        return {"operator": record.operator}
    return {"operator": actor, "borrowed_by": None, "borrowed_time": None}


# ---------- Record-level operations ----------

def check_out(record: InstrumentRecord, actor: str, now: datetime) -> InstrumentRecord:
    """
    Take the instrument out. Re-checking out an instrument that is already
    out is allowed and simply re-stamps the time. Starts a new outing, so a
    previous borrow is dropped.
    """
    actor = _require_name(actor, "Operator")
    now = _stamp(now)
    return replace(
        record,
        in_out_status=OUT,
        operator=actor,
        outbound_time=now,
        inbound_time=None,
        borrowed_by=None,
        borrowed_time=None,
        operation_date=now.date(),
        deleted_today_record=False,
    )


def check_in(record: InstrumentRecord, actor: str, now: datetime) -> InstrumentRecord:
    """Return the instrument to stock."""
    actor = _require_name(actor, "Operator")
    now = _stamp(now)
    return replace(
        record,
        in_out_status=IN,
        **_attribution_after(record, actor),
        inbound_time=now,
        operation_date=now.date(),
        deleted_today_record=False,
    )


def mark_used(record: InstrumentRecord, actor: str, now: datetime) -> InstrumentRecord:
    """Mark the instrument as used and in external use."""
    actor = _require_name(actor, "Operator")
    now = _stamp(now)
    return replace(
        record,
        instrument_status=USED,
        in_out_status=USING_OUT,
        **_attribution_after(record, actor),
        used_time=now,
        operation_date=now.date(),
        deleted_today_record=False,
    )


def borrow(record: InstrumentRecord, borrower_name: str, now: datetime) -> InstrumentRecord:
    """Attribute a checked-out instrument to a borrower. Only allowed while the instrument is out."""
    borrower = _require_name(borrower_name, "Borrower name")
    if record.in_out_status != OUT:
        raise InvalidStateError(
            f"Instrument {record.management_number} must be checked out before it can be borrowed "
            f"(current status: {record.in_out_status})"
        )
    now = _stamp(now)
    return replace(
        record,
        borrowed_by=borrower,
        borrowed_time=now,
        operation_date=now.date(),
        deleted_today_record=False,
    )


def delay(record: InstrumentRecord, days: int, actor: str, now: datetime) -> InstrumentRecord:
    """
    Keep the record in the operational view through today + days.
    Never shortens an existing later window: the result is the later of the
    current display_until and today + days.
    """
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise ValidationError("Delay days must be a positive whole number")
    actor = _require_name(actor, "Operator")
    now = _stamp(now)
    today = now.date()
    until = today + timedelta(days=days)
    if record.display_until is not None and record.display_until > until:
        until = record.display_until
    return replace(
        record,
        delay_days=(until - today).days,
        expected_return_date=until,
        display_until=until,
        delay_operator=actor,
        delay_time=now,
        operation_date=today,
        deleted_today_record=False,
    )


def clear_today_record(record: InstrumentRecord, now: datetime) -> InstrumentRecord:
    """Hide the record from the operational view. The instrument itself is kept."""
    return replace(record, deleted_today_record=True, deleted_time=_stamp(now))


# ---------- Repository-level operations ----------

def _resolve(repo: "InstrumentRepository", management_number: str) -> InstrumentRecord:
    mn = _require_name(management_number, "Management number")
    record = repo.find_by_management_number(mn)
    if record is None:
        raise NotFoundError(f"No instrument with management number {mn}")
    return record


def _apply(
    repo: "InstrumentRepository",
    management_number: str,
    action: str,
    op: Callable[[InstrumentRecord], InstrumentRecord],
    actor: str | None,
) -> InstrumentRecord:
    record = _resolve(repo, management_number)
    updated = op(record)
    if not repo.upsert(record.id, updated):
        # Removed between read and write
        raise NotFoundError(f"No instrument with management number {record.management_number}")
    repo.log_audit(
        record.id,
        action,
        field="in_out_status",
        old_value=record.in_out_status,
        new_value=updated.in_out_status,
        actor=actor,
    )
    logger.info("%s: %s by %s", action, record.management_number, actor)
    return updated


def check_out_instrument(repo: "InstrumentRepository", management_number: str, actor: str,
                         now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(repo, management_number, "check_out", lambda r: check_out(r, actor, now), actor)


def check_in_instrument(repo: "InstrumentRepository", management_number: str, actor: str,
                        now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(repo, management_number, "check_in", lambda r: check_in(r, actor, now), actor)


def mark_instrument_used(repo: "InstrumentRepository", management_number: str, actor: str,
                         now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(repo, management_number, "use", lambda r: mark_used(r, actor, now), actor)


def borrow_instrument(repo: "InstrumentRepository", management_number: str, borrower_name: str,
                      now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(
        repo, management_number, "borrow", lambda r: borrow(r, borrower_name, now), borrower_name,
    )


def delay_instrument(repo: "InstrumentRepository", management_number: str, days: int, actor: str,
                     now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(repo, management_number, "delay", lambda r: delay(r, days, actor, now), actor)


def clear_instrument_today_record(repo: "InstrumentRepository", management_number: str,
                                  actor: str | None = None,
                                  now: datetime | None = None) -> InstrumentRecord:
    now = now or datetime.now()
    return _apply(repo, management_number, "clear_today_record",
                  lambda r: clear_today_record(r, now), actor)
