# ui/dialogs - Dialog windows used by the main window
from ui.dialogs.instrument_dialog import InstrumentDialog
from ui.dialogs.maintenance_dialog import ScheduleEventDialog, CompleteEventDialog
from ui.dialogs.history_dialog import HistoryDialog
from ui.dialogs.advisor_dialog import AdvisorDialog

__all__ = [
    "InstrumentDialog",
    "ScheduleEventDialog",
    "CompleteEventDialog",
    "HistoryDialog",
    "AdvisorDialog",
]
