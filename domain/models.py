# domain/models.py - Domain entities (dataclasses and enumerations)
#
# Typed models for cross-layer data. Conversion from sqlite3.Row/dict
# happens at the repository boundary only. Dates are datetime.date;
# the database stores them as ISO strings.

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class InstrumentStatus(str, Enum):
    OPERATIONAL = "Operational"
    NEEDS_MAINTENANCE = "Needs Maintenance"
    OUT_OF_SERVICE = "Out of Service"
    ARCHIVED = "Archived"


class EventType(str, Enum):
    SCHEDULED = "Scheduled"
    UNSCHEDULED = "Unscheduled"
    EMERGENCY = "Emergency"


class MaintenanceType(str, Enum):
    """Reporting category for an instrument. OTHER is the fallback bucket."""

    PM = "PM"
    AMC = "AMC"
    CALIBRATION = "Calibration"
    VALIDATION = "Validation"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "3 Months"
    SEMI_ANNUAL = "6 Months"
    ANNUAL = "1 Year"
    OTHER = "Other"


_MAINTENANCE_TYPE_ALIASES = {
    "preventative maintenance": MaintenanceType.PM,
    "preventive maintenance": MaintenanceType.PM,
}

# Recurrence implied by the frequency-style maintenance types
MAINTENANCE_TYPE_INTERVAL_MONTHS = {
    MaintenanceType.MONTHLY: 1,
    MaintenanceType.QUARTERLY: 3,
    MaintenanceType.SEMI_ANNUAL: 6,
    MaintenanceType.ANNUAL: 12,
}


def parse_maintenance_type(raw: Any) -> MaintenanceType:
    """Map a stored label to MaintenanceType. Empty or unknown labels become OTHER."""
    if isinstance(raw, MaintenanceType):
        return raw
    text = str(raw or "").strip().lower()
    if not text:
        return MaintenanceType.OTHER
    if text in _MAINTENANCE_TYPE_ALIASES:
        return _MAINTENANCE_TYPE_ALIASES[text]
    for mt in MaintenanceType:
        if mt.value.lower() == text:
            return mt
    return MaintenanceType.OTHER


def parse_status(raw: Any) -> InstrumentStatus:
    """Map a stored status string to InstrumentStatus (defaults to Operational)."""
    if isinstance(raw, InstrumentStatus):
        return raw
    text = str(raw or "").strip()
    for st in InstrumentStatus:
        if st.value.lower() == text.lower():
            return st
    return InstrumentStatus.OPERATIONAL


def parse_event_type(raw: Any) -> EventType:
    """Map a stored event type to EventType. Raises ValueError on unknown values."""
    if isinstance(raw, EventType):
        return raw
    text = str(raw or "").strip()
    for et in EventType:
        if et.value.lower() == text.lower():
            return et
    raise ValueError(f"Unknown maintenance event type: {raw!r}")


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a stored value to a date. Accepts date, datetime and ISO strings
    ("2024-06-01" or "2024-06-01 12:00:00"). Returns None for blank or
    unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Instrument:
    """
    Domain model for a maintained laboratory instrument.
    status is user-controlled; overdue-ness is computed separately.
    """

    id: Optional[int]
    name: str
    model: str
    serial_number: str
    location: str
    status: InstrumentStatus
    installation_date: Optional[date]
    last_maintenance_date: Optional[date]
    next_maintenance_date: Optional[date]
    maintenance_type: MaintenanceType = MaintenanceType.OTHER
    interval_months: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "Instrument":
        """Build Instrument from sqlite3.Row or dict."""
        d = dict(row)
        return cls(
            id=d.get("id"),
            name=d.get("name") or "",
            model=d.get("model") or "",
            serial_number=d.get("serial_number") or "",
            location=d.get("location") or "",
            status=parse_status(d.get("status")),
            installation_date=parse_date(d.get("installation_date")),
            last_maintenance_date=parse_date(d.get("last_maintenance_date")),
            next_maintenance_date=parse_date(d.get("next_maintenance_date")),
            maintenance_type=parse_maintenance_type(d.get("maintenance_type")),
            interval_months=d.get("interval_months"),
            notes=d.get("notes"),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Dict-like access for table models and report code."""
        return getattr(self, key, default)

    def __str__(self) -> str:
        """String representation for audit logs."""
        return f"id={self.id}, name={self.name}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for repository write operations (add/update)."""
        return {
            "id": self.id,
            "name": self.name,
            "model": self.model,
            "serial_number": self.serial_number,
            "location": self.location,
            "status": self.status.value,
            "installation_date": _iso(self.installation_date),
            "last_maintenance_date": _iso(self.last_maintenance_date),
            "next_maintenance_date": _iso(self.next_maintenance_date),
            "maintenance_type": self.maintenance_type.value,
            "interval_months": self.interval_months,
            "notes": self.notes,
            "updated_at": self.updated_at,
        }


@dataclass
class MaintenanceEvent:
    """A scheduled or completed maintenance event. instrument_id is a lookup key."""

    id: Optional[int]
    instrument_id: int
    date: Optional[date]
    type: EventType
    description: str
    notes: Optional[str] = None
    completed: bool = False
    files: list[str] = field(default_factory=list)
    scheduled_date: Optional[date] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any, files: Optional[list[str]] = None) -> "MaintenanceEvent":
        """Build MaintenanceEvent from sqlite3.Row or dict. files come from event_files."""
        d = dict(row)
        return cls(
            id=d.get("id"),
            instrument_id=d["instrument_id"],
            date=parse_date(d.get("date")),
            type=parse_event_type(d.get("type") or EventType.SCHEDULED.value),
            description=d.get("description") or "",
            notes=d.get("notes"),
            completed=bool(d.get("completed")),
            files=list(files or []),
            scheduled_date=parse_date(d.get("scheduled_date")),
            created_at=d.get("created_at"),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for repository writes. files are stored separately."""
        return {
            "id": self.id,
            "instrument_id": self.instrument_id,
            "date": _iso(self.date),
            "type": self.type.value,
            "description": self.description,
            "notes": self.notes,
            "completed": 1 if self.completed else 0,
            "scheduled_date": _iso(self.scheduled_date),
        }
