# services/visibility.py - Which records belong in the "instruments in/out" view
#
# The management view lists every record; the operational view only shows
# what is relevant to today's activity. Pure functions, no storage access.

from datetime import date
from typing import Iterable

from domain.models import IN, OUT, STOPPED, USED, USING_OUT, InstrumentRecord

SEARCH_FIELDS = ("name", "model", "management_number", "factory_number", "manufacturer")

# Excluded from the actionable view even when otherwise visible
HIDDEN_INSTRUMENT_STATUSES = (USED, STOPPED)
_STATUS_LABELS = {USED: "used", STOPPED: "stopped"}


def _norm(term: str | None) -> str:
    return (term or "").strip()


def is_exact_match(record: InstrumentRecord, term: str | None) -> bool:
    """Exact management-number or factory-number lookup."""
    term = _norm(term)
    if not term:
        return False
    return term == (record.management_number or "") or term == (record.factory_number or "")


def matches_search(record: InstrumentRecord, term: str | None) -> bool:
    """Case-insensitive substring match over the searchable fields."""
    needle = _norm(term).lower()
    if not needle:
        return True
    for field in SEARCH_FIELDS:
        value = getattr(record, field, None)
        if value is not None and needle in str(value).lower():
            return True
    return False


def _is_today_activity(record: InstrumentRecord, today: date) -> bool:
    if record.in_out_status in (OUT, USING_OUT):
        return True
    if record.in_out_status == IN and record.operation_date == today:
        return True
    return record.display_until is not None and record.display_until >= today


def _passes_search(record: InstrumentRecord, term: str) -> bool:
    # An explicit lookup surfaces records the daily reset has hidden
    if not matches_search(record, term):
        return False
    return not record.deleted_today_record or is_exact_match(record, term)


def is_operationally_visible(record: InstrumentRecord, today: date, search_term: str | None = None) -> bool:
    """
    True if record belongs in the operational view as of today.

    Without a search term: not hidden, and checked out, in external use,
    checked in today, or inside a delay window.
    With a search term: any matching record that is not hidden; an exact
    management/factory number match is shown even when hidden.
    Used and stopped instruments are never shown.
    """
    if record.instrument_status in HIDDEN_INSTRUMENT_STATUSES:
        return False
    term = _norm(search_term)
    if term:
        return _passes_search(record, term)
    if record.deleted_today_record:
        return False
    return _is_today_activity(record, today)


def operational_view(records: Iterable[InstrumentRecord], today: date,
                     search_term: str | None = None) -> list[InstrumentRecord]:
    return [r for r in records if is_operationally_visible(r, today, search_term)]


def management_view(records: Iterable[InstrumentRecord]) -> list[InstrumentRecord]:
    """Every record regardless of visibility flags, by management number."""
    return sorted(records, key=lambda r: (r.management_number or "", r.id))


def hidden_status_hint(records: Iterable[InstrumentRecord], today: date,
                       search_term: str | None) -> str | None:
    """
    When a search shows nothing only because the matches are used/stopped,
    explain that instead of reporting no match. Returns None otherwise.
    """
    term = _norm(search_term)
    if not term:
        return None
    records = list(records)
    if operational_view(records, today, term):
        return None
    statuses = {
        r.instrument_status
        for r in records
        if r.instrument_status in HIDDEN_INSTRUMENT_STATUSES and _passes_search(r, term)
    }
    if not statuses:
        return None
    labels = "/".join(_STATUS_LABELS[s] for s in HIDDEN_INSTRUMENT_STATUSES if s in statuses)
    return f"Matching instruments are {labels} and cannot be shown"
