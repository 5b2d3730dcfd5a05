# services/maintenance_service.py - Maintenance event orchestration
#
# Thin layer: validates input, reads the clock when the caller does not pass a
# date, runs the scheduler's completion rule and persists the returned records.

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from domain.models import MaintenanceEvent, parse_date, parse_event_type
from maintenance_scheduler import (
    complete_maintenance_event,
    partition_events,
    resolve_interval_months,
)
from services.instrument_service import default_interval_months

if TYPE_CHECKING:
    from database import MaintenanceRepository
    from maintenance_scheduler import CompletionResult

logger = logging.getLogger(__name__)


@dataclass
class InstrumentHistory:
    completed: list[MaintenanceEvent]
    open: list[MaintenanceEvent]


def schedule_event(repo: "MaintenanceRepository", instrument_id: int, data: dict) -> int:
    """Validate and create a maintenance event. Returns new event ID. Raises ValueError on invalid input."""
    if repo.get_instrument(instrument_id) is None:
        raise LookupError(f"Instrument {instrument_id} not found")
    when = parse_date(data.get("date"))
    if when is None:
        raise ValueError("Date is required")
    event_type = parse_event_type(data.get("type") or "Scheduled")
    description = (data.get("description") or "").strip()
    if not description:
        raise ValueError("Description is required")

    event = MaintenanceEvent(
        id=None,
        instrument_id=instrument_id,
        date=when,
        type=event_type,
        description=description,
        notes=(data.get("notes") or "").strip() or None,
        completed=False,
    )
    event_id = repo.add_event(event.to_dict())
    logger.info("Scheduled %s maintenance %s for instrument %s on %s", event_type.value, event_id, instrument_id, when)
    return event_id


def complete_event(
    repo: "MaintenanceRepository",
    event_id: int,
    completion_date: date | None = None,
    interval_months: int | None = None,
    notes: str | None = None,
) -> "CompletionResult":
    """
    Mark an event done and move its instrument's schedule forward.
    completion_date defaults to today. interval_months defaults to the
    instrument's interval (explicit, then type-implied, then the settings default).
    Raises LookupError for unknown records, InvalidIntervalError for a bad interval.
    """
    event = repo.get_event(event_id)
    if event is None:
        raise LookupError(f"Maintenance event {event_id} not found")
    instrument = repo.get_instrument(event.instrument_id)
    if instrument is None:
        raise LookupError(f"Instrument {event.instrument_id} not found")

    if completion_date is None:
        completion_date = date.today()
    if notes is not None and notes.strip():
        event.notes = notes.strip()
    months = resolve_interval_months(instrument, interval_months, default=default_interval_months(repo))

    result = complete_maintenance_event(instrument, event, completion_date, months)
    repo.save_completion(result.instrument, result.event)
    logger.info(
        "Completed maintenance %s on %s; instrument %s next due %s",
        event_id, completion_date, instrument.id, result.instrument.next_maintenance_date,
    )
    return result


def get_history(repo: "MaintenanceRepository", instrument_id: int, now: date | None = None) -> InstrumentHistory:
    """Completed events (newest first) and open events (oldest first) for one instrument."""
    events = repo.list_events_for_instrument(instrument_id)
    history, open_events = partition_events(events, now or date.today())
    return InstrumentHistory(completed=history, open=open_events)


def attach_file(repo: "MaintenanceRepository", event_id: int, src_path: str) -> str:
    if repo.get_event(event_id) is None:
        raise LookupError(f"Maintenance event {event_id} not found")
    return repo.add_event_file(event_id, src_path)
