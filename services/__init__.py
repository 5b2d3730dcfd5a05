# services - Orchestration layer between UI and repository/scheduler
from services import (
    instrument_service,
    maintenance_service,
    dashboard_service,
    advisor_service,
)

__all__ = [
    "instrument_service",
    "maintenance_service",
    "dashboard_service",
    "advisor_service",
]
