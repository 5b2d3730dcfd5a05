# services/instrument_service.py - Instrument persistence orchestration
#
# Thin layer: validates input, applies the initial maintenance schedule,
# delegates to repository. Status changes are always explicit user actions.

import logging
from typing import TYPE_CHECKING

from domain.models import (
    Instrument,
    InstrumentStatus,
    parse_date,
    parse_maintenance_type,
)
from maintenance_scheduler import (
    DEFAULT_INTERVAL_MONTHS,
    initial_schedule,
    resolve_interval_months,
)

if TYPE_CHECKING:
    from database import MaintenanceRepository

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ("name", "Name is required"),
    ("model", "Model is required"),
    ("serial_number", "Serial number is required"),
    ("location", "Location is required"),
)


def _clean_descriptive_fields(data: dict) -> dict:
    cleaned = {}
    for key, message in REQUIRED_FIELDS:
        value = str(data.get(key) or "").strip()
        if not value:
            raise ValueError(message)
        cleaned[key] = value
    return cleaned


def _validate_status(raw) -> InstrumentStatus:
    for st in InstrumentStatus:
        if raw is st or str(raw) == st.value:
            return st
    raise ValueError(f"Unknown status: {raw!r}")


def _validate_interval(raw) -> int | None:
    if raw in (None, ""):
        return None
    try:
        months = int(raw)
    except (TypeError, ValueError):
        raise ValueError("Interval must be a whole number of months") from None
    if months <= 0:
        raise ValueError("Interval must be at least 1 month")
    return months


def default_interval_months(repo: "MaintenanceRepository") -> int:
    """Fallback recurrence interval from settings (6 months unless changed)."""
    try:
        months = int(repo.get_setting("default_interval_months", DEFAULT_INTERVAL_MONTHS))
    except (TypeError, ValueError):
        logger.warning("Invalid default_interval_months setting; using %s", DEFAULT_INTERVAL_MONTHS)
        return DEFAULT_INTERVAL_MONTHS
    return months if months > 0 else DEFAULT_INTERVAL_MONTHS


def add_instrument(repo: "MaintenanceRepository", data: dict) -> int:
    """
    Validate and add instrument. Returns new instrument ID. Raises ValueError on invalid input.
    last_maintenance_date starts at installation_date; next_maintenance_date is one
    recurrence interval later.
    """
    installed = parse_date(data.get("installation_date"))
    if installed is None:
        raise ValueError("Installation date is required")

    inst = Instrument(
        id=None,
        status=_validate_status(data.get("status") or InstrumentStatus.OPERATIONAL),
        installation_date=installed,
        last_maintenance_date=None,
        next_maintenance_date=None,
        maintenance_type=parse_maintenance_type(data.get("maintenance_type")),
        interval_months=_validate_interval(data.get("interval_months")),
        notes=(data.get("notes") or "").strip() or None,
        **_clean_descriptive_fields(data),
    )
    months = resolve_interval_months(inst, default=default_interval_months(repo))
    inst.last_maintenance_date, inst.next_maintenance_date = initial_schedule(installed, months)

    new_id = repo.add_instrument(inst.to_dict())
    logger.info(
        "Added instrument %s (%s), next maintenance %s",
        new_id, inst.name, inst.next_maintenance_date,
    )
    return new_id


def update_instrument(repo: "MaintenanceRepository", instrument_id: int, data: dict) -> None:
    """
    Validate and update editable instrument fields. installation_date cannot change.
    Raises ValueError on invalid input, StaleDataError if record was modified elsewhere.
    """
    row = _clean_descriptive_fields(data)
    if "status" in data:
        row["status"] = _validate_status(data["status"]).value
    if "maintenance_type" in data:
        row["maintenance_type"] = parse_maintenance_type(data["maintenance_type"]).value
    if "interval_months" in data:
        row["interval_months"] = _validate_interval(data["interval_months"])
    for key in ("last_maintenance_date", "next_maintenance_date"):
        if key in data:
            when = parse_date(data[key])
            if data[key] and when is None:
                raise ValueError(f"Invalid date for {key.replace('_', ' ')}: {data[key]!r}")
            row[key] = when.isoformat() if when else None
    if "notes" in data:
        row["notes"] = (data.get("notes") or "").strip() or None
    if data.get("updated_at"):
        row["updated_at"] = data["updated_at"]
    repo.update_instrument(instrument_id, row)


def set_status(
    repo: "MaintenanceRepository",
    instrument_id: int,
    status,
    reason: str | None = None,
) -> None:
    """Explicitly change an instrument's status. Overdue-ness never changes it."""
    st = _validate_status(status)
    repo.set_instrument_status(instrument_id, st.value, reason=reason)
    logger.info("Instrument %s status set to %s", instrument_id, st.value)


def archive_instrument(repo: "MaintenanceRepository", instrument_id: int, reason: str | None = None) -> None:
    """Archive instead of delete; archived instruments are excluded from overdue counts."""
    set_status(repo, instrument_id, InstrumentStatus.ARCHIVED, reason=reason)
