# maintenance_scheduler.py
"""
Central maintenance scheduling rules.
Single source of truth for: due/overdue/upcoming classification, the
recompute-on-completion rule, fleet summary counts and event recency.

Every function is pure. The current date is always passed in as `now`;
nothing here reads the clock, the database or the network.
"""

from __future__ import annotations

import calendar
import dataclasses
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable

from domain.models import (
    MAINTENANCE_TYPE_INTERVAL_MONTHS,
    Instrument,
    InstrumentStatus,
    MaintenanceEvent,
    MaintenanceType,
    parse_date,
    parse_maintenance_type,
    parse_status,
)

DEFAULT_INTERVAL_MONTHS = 6
DUE_SOON_DAYS = 7
DEFAULT_WINDOW_DAYS = 30

# Statuses excluded from overdue accounting
_NOT_TRACKED = frozenset({InstrumentStatus.ARCHIVED, InstrumentStatus.OUT_OF_SERVICE})


class InvalidIntervalError(ValueError):
    """Raised when a non-positive recurrence interval is supplied."""


class DueKind(str, Enum):
    OVERDUE = "Overdue"
    DUE_SOON = "Due Soon"
    SCHEDULED = "Scheduled"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DueStatus:
    kind: DueKind
    days_left: int | None = None

    @property
    def is_overdue(self) -> bool:
        return self.kind is DueKind.OVERDUE

    def __str__(self) -> str:
        if self.days_left is None:
            return self.kind.value
        return f"{self.kind.value} ({self.days_left} days)"


OVERDUE = DueStatus(DueKind.OVERDUE)
UNKNOWN = DueStatus(DueKind.UNKNOWN)


class EventTiming(str, Enum):
    COMPLETED = "Completed"
    PENDING = "Pending"
    MISSED = "Missed"


@dataclass(frozen=True)
class FleetSummary:
    total: int
    operational: int
    needs_maintenance: int
    overdue: int


@dataclass(frozen=True)
class CompletionResult:
    """Updated copies of the serviced instrument and the completed event."""

    instrument: Instrument
    event: MaintenanceEvent


# -----------------------------------------------------------------------------
# Date arithmetic
# -----------------------------------------------------------------------------

def add_months(when: date, months: int) -> date:
    """
    Add calendar months to a date. The day is clamped to the last day of the
    target month (2024-08-31 + 6 months = 2025-02-28).
    """
    month_index = when.month - 1 + months
    year = when.year + month_index // 12
    month = month_index % 12 + 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is earlier)."""
    return (end - start).days


def initial_schedule(installation_date: date, interval_months: int = DEFAULT_INTERVAL_MONTHS) -> tuple[date, date]:
    """(last_maintenance_date, next_maintenance_date) for a newly created instrument."""
    _check_interval(interval_months)
    return installation_date, add_months(installation_date, interval_months)


def _check_interval(interval_months: Any) -> None:
    if isinstance(interval_months, bool) or not isinstance(interval_months, int):
        raise InvalidIntervalError(f"Interval must be a whole number of months, got {interval_months!r}")
    if interval_months <= 0:
        raise InvalidIntervalError(f"Interval must be at least 1 month, got {interval_months}")


def resolve_interval_months(
    instrument: Instrument,
    explicit: int | None = None,
    default: int = DEFAULT_INTERVAL_MONTHS,
) -> int:
    """
    Recurrence interval for an instrument: the explicit value if given, else the
    instrument's own interval, else the interval implied by its maintenance type,
    else `default`.
    """
    if explicit is not None:
        return explicit
    if instrument.interval_months:
        return int(instrument.interval_months)
    implied = MAINTENANCE_TYPE_INTERVAL_MONTHS.get(parse_maintenance_type(instrument.maintenance_type))
    return implied if implied is not None else default


# -----------------------------------------------------------------------------
# Status derivation
# -----------------------------------------------------------------------------

def classify_due_status(next_maintenance_date: Any, status: Any, now: date) -> DueStatus:
    """
    Classify an instrument's next maintenance date relative to `now`.

    Absent or unparseable dates are UNKNOWN. Archived and Out of Service
    instruments are never OVERDUE: a past date for them is UNKNOWN.
    Within DUE_SOON_DAYS is DUE_SOON, anything later is SCHEDULED.
    """
    due = parse_date(next_maintenance_date)
    if due is None:
        return UNKNOWN
    days_left = days_between(now, due)
    if days_left < 0:
        if parse_status(status) in _NOT_TRACKED:
            return UNKNOWN
        return OVERDUE
    if days_left <= DUE_SOON_DAYS:
        return DueStatus(DueKind.DUE_SOON, days_left)
    return DueStatus(DueKind.SCHEDULED, days_left)


def instrument_due_status(instrument: Instrument, now: date) -> DueStatus:
    return classify_due_status(instrument.next_maintenance_date, instrument.status, now)


def summarize_fleet(instruments: Iterable[Instrument], now: date) -> FleetSummary:
    total = operational = needs_maintenance = overdue = 0
    for inst in instruments:
        total += 1
        status = parse_status(inst.status)
        if status is InstrumentStatus.OPERATIONAL:
            operational += 1
        elif status is InstrumentStatus.NEEDS_MAINTENANCE:
            needs_maintenance += 1
        if instrument_due_status(inst, now).is_overdue:
            overdue += 1
    return FleetSummary(
        total=total,
        operational=operational,
        needs_maintenance=needs_maintenance,
        overdue=overdue,
    )


def upcoming_within_window(
    instruments: Iterable[Instrument],
    now: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> list[Instrument]:
    """
    Instruments with next_maintenance_date in [now, now + window_days],
    ascending by date, ties ordered by id.
    """
    upper = now + timedelta(days=window_days)
    due = []
    for inst in instruments:
        nd = parse_date(inst.next_maintenance_date)
        if nd is not None and now <= nd <= upper:
            due.append((nd, inst))
    due.sort(key=lambda pair: (pair[0], pair[1].id is None, pair[1].id or 0))
    return [inst for _, inst in due]


# -----------------------------------------------------------------------------
# Completion
# -----------------------------------------------------------------------------

def complete_maintenance_event(
    instrument: Instrument,
    event: MaintenanceEvent,
    completion_date: date,
    interval_months: int = DEFAULT_INTERVAL_MONTHS,
) -> CompletionResult:
    """
    Mark `event` completed on `completion_date` and move the instrument's
    schedule forward by `interval_months`. Returns new records; the inputs are
    left untouched. Instrument status is not changed.

    Raises InvalidIntervalError for a non-positive interval and ValueError when
    the event belongs to another instrument.
    """
    _check_interval(interval_months)
    if instrument.id is not None and event.instrument_id != instrument.id:
        raise ValueError(
            f"Event {event.id} belongs to instrument {event.instrument_id}, not {instrument.id}"
        )

    scheduled_date = event.scheduled_date
    if event.date != completion_date:
        # Completed out of schedule: keep the planned date for the history view
        scheduled_date = scheduled_date or event.date

    done = dataclasses.replace(
        event,
        completed=True,
        date=completion_date,
        scheduled_date=scheduled_date,
        files=list(event.files),
    )
    serviced = dataclasses.replace(
        instrument,
        last_maintenance_date=completion_date,
        next_maintenance_date=add_months(completion_date, interval_months),
    )
    return CompletionResult(instrument=serviced, event=done)


# -----------------------------------------------------------------------------
# Events and distributions
# -----------------------------------------------------------------------------

def classify_event(event: MaintenanceEvent, now: date) -> EventTiming:
    if event.completed:
        return EventTiming.COMPLETED
    when = parse_date(event.date)
    if when is not None and when < now:
        return EventTiming.MISSED
    return EventTiming.PENDING


def partition_events(
    events: Iterable[MaintenanceEvent], now: date
) -> tuple[list[MaintenanceEvent], list[MaintenanceEvent]]:
    """
    Split events into (history, open). History holds completed events, newest
    first; open holds pending and missed events, oldest first. Undated events
    sort last in both lists.
    """
    history, open_events = [], []
    for ev in events:
        if classify_event(ev, now) is EventTiming.COMPLETED:
            history.append(ev)
        else:
            open_events.append(ev)

    # date.min puts undated events at the end of the reversed history
    history.sort(key=lambda ev: (parse_date(ev.date) or date.min, ev.id or 0), reverse=True)
    open_events.sort(
        key=lambda ev: (parse_date(ev.date) is None, parse_date(ev.date) or date.min, ev.id or 0)
    )
    return history, open_events


def maintenance_type_distribution(instruments: Iterable[Instrument]) -> dict[MaintenanceType, int]:
    """Count instruments per maintenance type, in enumeration order, omitting zero counts."""
    counts = {mt: 0 for mt in MaintenanceType}
    for inst in instruments:
        counts[parse_maintenance_type(inst.maintenance_type)] += 1
    return {mt: n for mt, n in counts.items() if n}


def status_distribution(instruments: Iterable[Instrument]) -> dict[InstrumentStatus, int]:
    """Count instruments per status; every status is present."""
    counts = {st: 0 for st in InstrumentStatus}
    for inst in instruments:
        counts[parse_status(inst.status)] += 1
    return counts
