# services/dashboard_service.py - Dashboard assembly (overview, upcoming, distributions)

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from domain.models import Instrument, InstrumentStatus, MaintenanceType
from maintenance_scheduler import (
    DEFAULT_WINDOW_DAYS,
    DueStatus,
    FleetSummary,
    instrument_due_status,
    maintenance_type_distribution,
    status_distribution,
    summarize_fleet,
    upcoming_within_window,
)

if TYPE_CHECKING:
    from database import MaintenanceRepository

logger = logging.getLogger(__name__)


@dataclass
class UpcomingRow:
    instrument: Instrument
    due: DueStatus


@dataclass
class Dashboard:
    generated_on: date
    window_days: int
    summary: FleetSummary
    upcoming: list[UpcomingRow] = field(default_factory=list)
    overdue: list[Instrument] = field(default_factory=list)
    type_distribution: dict[MaintenanceType, int] = field(default_factory=dict)
    status_distribution: dict[InstrumentStatus, int] = field(default_factory=dict)


def upcoming_window_days(repo: "MaintenanceRepository") -> int:
    try:
        days = int(repo.get_setting("upcoming_window_days", DEFAULT_WINDOW_DAYS))
    except (TypeError, ValueError):
        logger.warning("Invalid upcoming_window_days setting; using %s", DEFAULT_WINDOW_DAYS)
        return DEFAULT_WINDOW_DAYS
    return max(0, days)


def build_dashboard(repo: "MaintenanceRepository", now: date | None = None) -> Dashboard:
    """Load every instrument once and derive all dashboard widgets from it."""
    now = now or date.today()
    window = upcoming_window_days(repo)
    instruments = repo.list_instruments(include_archived=True)

    upcoming = [
        UpcomingRow(instrument=inst, due=instrument_due_status(inst, now))
        for inst in upcoming_within_window(instruments, now, window)
    ]
    overdue = [inst for inst in instruments if instrument_due_status(inst, now).is_overdue]
    overdue.sort(key=lambda inst: (inst.next_maintenance_date, inst.id))

    return Dashboard(
        generated_on=now,
        window_days=window,
        summary=summarize_fleet(instruments, now),
        upcoming=upcoming,
        overdue=overdue,
        type_distribution=maintenance_type_distribution(instruments),
        status_distribution=status_distribution(instruments),
    )
