# domain/models.py - Domain entities (dataclasses)
#
# Typed models for cross-layer data. Conversion from sqlite3.Row/dict
# happens at the repository boundary only.

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Optional

# in_out_status values (physical location)
IN = "in"
OUT = "out"
USING_OUT = "using_out"
IN_OUT_STATUSES = (IN, OUT, USING_OUT)

# instrument_status values (usability); not strictly coupled to in_out_status
AVAILABLE = "available"
IN_USE = "in-use"
USED = "used"
OVERDUE = "overdue"
STOPPED = "stopped"
MAINTENANCE = "maintenance"

IN_OUT_LABELS = {
    IN: "In stock",
    OUT: "Checked out",
    USING_OUT: "In external use",
}

# Descriptive fields owned by the CRUD layer. Status operations never change them.
DESCRIPTIVE_FIELDS = (
    "management_number",
    "name",
    "model",
    "manufacturer",
    "factory_number",
    "measurement_range",
    "notes",
)

_DATE_FIELDS = ("operation_date", "expected_return_date", "display_until")
_TIMESTAMP_FIELDS = (
    "outbound_time",
    "inbound_time",
    "used_time",
    "borrowed_time",
    "delay_time",
    "deleted_time",
)


def parse_date(value: Any) -> Optional[date]:
    """Date-only field from storage ('YYYY-MM-DD'). Empty and '-' mean no value."""
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    text = str(value).strip()
    if not text or text == "-":
        return None
    return date.fromisoformat(text[:10])


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Timestamp field from storage (ISO-8601). Empty and '-' mean no value."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text or text == "-":
        return None
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def compose_operator(operator: Optional[str], borrower: Optional[str]) -> str:
    """Display form of the operator, e.g. 'alice（借用：bob）' while bob borrows the instrument."""
    base = operator or ""
    if borrower:
        return f"{base}（借用：{borrower}）"
    return base


@dataclass
class InstrumentRecord:
    """
    One tracked instrument with its in/out status, operation timestamps
    and operational-view visibility flags.

    The operator of a borrowed instrument is kept structured: ``operator``
    is who performed the last status change, ``borrowed_by`` the borrower.
    Use ``display_operator`` for the combined text shown to users.
    """

    id: str
    management_number: str
    name: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    factory_number: Optional[str] = None
    measurement_range: Optional[str] = None
    notes: Optional[str] = None
    in_out_status: str = IN
    instrument_status: str = AVAILABLE
    operator: Optional[str] = None
    outbound_time: Optional[datetime] = None
    inbound_time: Optional[datetime] = None
    used_time: Optional[datetime] = None
    borrowed_by: Optional[str] = None
    borrowed_time: Optional[datetime] = None
    delay_days: Optional[int] = None
    expected_return_date: Optional[date] = None
    display_until: Optional[date] = None
    delay_operator: Optional[str] = None
    delay_time: Optional[datetime] = None
    operation_date: Optional[date] = None
    deleted_today_record: bool = False
    deleted_time: Optional[datetime] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "InstrumentRecord":
        """
        Build InstrumentRecord from sqlite3.Row or dict.
        Raises ValueError if a status or date column cannot be interpreted.
        """
        d = dict(row)
        if not d.get("id"):
            raise ValueError("Instrument row has no id")
        in_out = d.get("in_out_status") or IN
        if in_out not in IN_OUT_STATUSES:
            raise ValueError(f"Unknown in/out status {in_out!r} for instrument {d['id']}")
        delay_days = d.get("delay_days")
        return cls(
            id=str(d["id"]),
            management_number=d.get("management_number") or "",
            name=d.get("name"),
            model=d.get("model"),
            manufacturer=d.get("manufacturer"),
            factory_number=d.get("factory_number"),
            measurement_range=d.get("measurement_range"),
            notes=d.get("notes"),
            in_out_status=in_out,
            instrument_status=d.get("instrument_status") or AVAILABLE,
            operator=d.get("operator"),
            outbound_time=parse_timestamp(d.get("outbound_time")),
            inbound_time=parse_timestamp(d.get("inbound_time")),
            used_time=parse_timestamp(d.get("used_time")),
            borrowed_by=d.get("borrowed_by") or None,
            borrowed_time=parse_timestamp(d.get("borrowed_time")),
            delay_days=int(delay_days) if delay_days not in (None, "") else None,
            expected_return_date=parse_date(d.get("expected_return_date")),
            display_until=parse_date(d.get("display_until")),
            delay_operator=d.get("delay_operator"),
            delay_time=parse_timestamp(d.get("delay_time")),
            operation_date=parse_date(d.get("operation_date")),
            deleted_today_record=bool(d.get("deleted_today_record")),
            deleted_time=parse_timestamp(d.get("deleted_time")),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )

    @property
    def has_active_borrow(self) -> bool:
        """A borrow counts until the record is cleared from the operational view."""
        return bool(self.borrowed_by) and not self.deleted_today_record

    @property
    def display_operator(self) -> str:
        return compose_operator(self.operator, self.borrowed_by)

    def get(self, key: str, default: Any = None) -> Any:
        """Dict-like access, mirrors Instrument.get in the table models."""
        return getattr(self, key, default)

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    def __str__(self) -> str:
        """String representation for audit logs."""
        return f"id={self.id}, mn={self.management_number}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dict of storage values (ISO strings for dates and times)."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _TIMESTAMP_FIELDS:
                value = format_timestamp(value)
            elif f.name in _DATE_FIELDS:
                value = format_date(value)
            elif f.name == "deleted_today_record":
                value = 1 if value else 0
            out[f.name] = value
        return out


@dataclass(frozen=True)
class Message:
    """User-facing outcome of an operation: text plus a severity tag."""

    text: str
    severity: str = "info"  # success | error | info | warning

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"
