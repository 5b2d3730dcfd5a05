# ui/table_models.py - Table models for the instrument list, upcoming list and event history

from datetime import date

from PyQt5 import QtCore, QtGui

from domain.models import Instrument, MaintenanceEvent
from maintenance_scheduler import DueKind, EventTiming, classify_event, instrument_due_status

DUE_FILTERS = ("All", "Overdue", "Due in 30 days")

_DUE_BACKGROUND = {
    DueKind.OVERDUE: QtGui.QColor(80, 30, 30),
    DueKind.DUE_SOON: QtGui.QColor(80, 70, 30),
}
_DUE_FOREGROUND = {
    DueKind.OVERDUE: QtGui.QColor("#FF6B6B"),
    DueKind.DUE_SOON: QtGui.QColor("#FFD93D"),
}


class InstrumentTableModel(QtCore.QAbstractTableModel):
    """Table model for the instrument list. Due status is computed against `today`."""

    HEADERS = [
        "Name",
        "Model",
        "Serial",
        "Location",
        "Status",
        "Type",
        "Last Maintenance",
        "Next Maintenance",
        "Days Left",
        "Due",
    ]
    COL_STATUS = 4
    COL_DAYS_LEFT = 8

    def __init__(self, instruments=None, today: date | None = None, parent=None):
        super().__init__(parent)
        self.instruments: list[Instrument] = list(instruments or [])
        self.today = today or date.today()

    def due_status(self, inst: Instrument):
        return instrument_due_status(inst, self.today)

    def _days_left(self, inst: Instrument):
        if inst.next_maintenance_date is None:
            return None
        return (inst.next_maintenance_date - self.today).days

    def sort(self, column, order=QtCore.Qt.AscendingOrder):
        reverse = order == QtCore.Qt.DescendingOrder

        def sort_key(inst):
            if column == 6:
                return inst.last_maintenance_date or date.min
            if column == 7:
                return inst.next_maintenance_date or date.max
            if column == self.COL_DAYS_LEFT:
                days = self._days_left(inst)
                return days if days is not None else 999999
            return str(self._display(inst, column)).lower()

        self.layoutAboutToBeChanged.emit()
        self.instruments.sort(key=sort_key, reverse=reverse)
        self.layoutChanged.emit()

    def rowCount(self, parent=None):
        return len(self.instruments)

    def columnCount(self, parent=None):
        return len(self.HEADERS)

    def _display(self, inst: Instrument, col: int):
        if col == 0:
            return inst.name
        elif col == 1:
            return inst.model
        elif col == 2:
            return inst.serial_number
        elif col == 3:
            return inst.location
        elif col == self.COL_STATUS:
            return inst.status.value
        elif col == 5:
            return inst.maintenance_type.value
        elif col == 6:
            return inst.last_maintenance_date.isoformat() if inst.last_maintenance_date else ""
        elif col == 7:
            return inst.next_maintenance_date.isoformat() if inst.next_maintenance_date else ""
        elif col == self.COL_DAYS_LEFT:
            days = self._days_left(inst)
            return days if days is not None else ""
        elif col == 9:
            return self.due_status(inst).kind.value
        return ""

    def data(self, index, role=QtCore.Qt.DisplayRole):
        if not index.isValid():
            return None
        inst = self.instruments[index.row()]

        if role == QtCore.Qt.BackgroundRole:
            return _DUE_BACKGROUND.get(self.due_status(inst).kind)
        if role == QtCore.Qt.ForegroundRole:
            return _DUE_FOREGROUND.get(self.due_status(inst).kind)
        if role == QtCore.Qt.DisplayRole:
            return self._display(inst, index.column())
        return None

    def headerData(self, section, orientation, role=QtCore.Qt.DisplayRole):
        if role != QtCore.Qt.DisplayRole:
            return None
        if orientation == QtCore.Qt.Horizontal:
            return self.HEADERS[section]
        return section + 1

    def set_instruments(self, instruments, today: date | None = None):
        self.beginResetModel()
        self.instruments = list(instruments)
        if today is not None:
            self.today = today
        self.endResetModel()

    def get_instrument_id(self, row):
        if 0 <= row < len(self.instruments):
            return self.instruments[row].id
        return None

    def get_instrument_at_row(self, row) -> Instrument | None:
        """Return the full instrument for a source row (for proxy filtering)."""
        if 0 <= row < len(self.instruments):
            return self.instruments[row]
        return None


class InstrumentFilterProxyModel(QtCore.QSortFilterProxyModel):
    """Proxy model for filtering and sorting instruments."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.text_filter = ""
        self.status_filter = ""
        self.due_filter = "All"

    def set_text_filter(self, text: str):
        self.text_filter = (text or "").lower().strip()
        self.invalidateFilter()

    def set_status_filter(self, status: str):
        self.status_filter = status or ""
        self.invalidateFilter()

    def set_due_filter(self, df: str):
        self.due_filter = df if df in DUE_FILTERS else "All"
        self.invalidateFilter()

    def filterAcceptsRow(self, source_row, source_parent):
        model = self.sourceModel()
        if model is None:
            return True
        inst = model.get_instrument_at_row(source_row)
        if inst is None:
            return False

        if self.text_filter:
            haystack = " ".join(
                [inst.name, inst.model, inst.serial_number, inst.location]
            ).lower()
            words = self.text_filter.split()
            if not all(w in haystack for w in words):
                return False

        if self.status_filter and inst.status.value != self.status_filter:
            return False

        if self.due_filter != "All":
            due = model.due_status(inst)
            if self.due_filter == "Overdue":
                if due.kind is not DueKind.OVERDUE:
                    return False
            elif self.due_filter == "Due in 30 days":
                if due.days_left is None or due.days_left > 30:
                    return False

        return True


class UpcomingTableModel(QtCore.QAbstractTableModel):
    """Rows of services.dashboard_service.UpcomingRow for the dashboard."""

    HEADERS = ["Instrument", "Serial", "Location", "Due Date", "Days Left"]

    def __init__(self, rows=None, parent=None):
        super().__init__(parent)
        self.rows = list(rows or [])

    def rowCount(self, parent=None):
        return len(self.rows)

    def columnCount(self, parent=None):
        return len(self.HEADERS)

    def data(self, index, role=QtCore.Qt.DisplayRole):
        if not index.isValid():
            return None
        row = self.rows[index.row()]
        if role == QtCore.Qt.ForegroundRole:
            return _DUE_FOREGROUND.get(row.due.kind)
        if role != QtCore.Qt.DisplayRole:
            return None
        inst = row.instrument
        col = index.column()
        if col == 0:
            return inst.name
        elif col == 1:
            return inst.serial_number
        elif col == 2:
            return inst.location
        elif col == 3:
            return inst.next_maintenance_date.isoformat() if inst.next_maintenance_date else ""
        elif col == 4:
            return f"{row.due.days_left} days" if row.due.days_left is not None else ""
        return None

    def headerData(self, section, orientation, role=QtCore.Qt.DisplayRole):
        if role == QtCore.Qt.DisplayRole and orientation == QtCore.Qt.Horizontal:
            return self.HEADERS[section]
        return None

    def set_rows(self, rows):
        self.beginResetModel()
        self.rows = list(rows)
        self.endResetModel()


class MaintenanceEventTableModel(QtCore.QAbstractTableModel):
    """Maintenance events of one instrument, with their timing against `today`."""

    HEADERS = ["Date", "Type", "Description", "State", "Notes", "Files"]

    def __init__(self, events=None, today: date | None = None, parent=None):
        super().__init__(parent)
        self.events: list[MaintenanceEvent] = list(events or [])
        self.today = today or date.today()

    def rowCount(self, parent=None):
        return len(self.events)

    def columnCount(self, parent=None):
        return len(self.HEADERS)

    def data(self, index, role=QtCore.Qt.DisplayRole):
        if not index.isValid():
            return None
        ev = self.events[index.row()]
        if role == QtCore.Qt.ForegroundRole and classify_event(ev, self.today) is EventTiming.MISSED:
            return _DUE_FOREGROUND[DueKind.OVERDUE]
        if role != QtCore.Qt.DisplayRole:
            return None
        col = index.column()
        if col == 0:
            return ev.date.isoformat() if ev.date else ""
        elif col == 1:
            return ev.type.value
        elif col == 2:
            return ev.description
        elif col == 3:
            return classify_event(ev, self.today).value
        elif col == 4:
            return ev.notes or ""
        elif col == 5:
            return len(ev.files)
        return None

    def headerData(self, section, orientation, role=QtCore.Qt.DisplayRole):
        if role == QtCore.Qt.DisplayRole and orientation == QtCore.Qt.Horizontal:
            return self.HEADERS[section]
        return None

    def set_events(self, events):
        self.beginResetModel()
        self.events = list(events)
        self.endResetModel()

    def get_event_at_row(self, row) -> MaintenanceEvent | None:
        if 0 <= row < len(self.events):
            return self.events[row]
        return None
