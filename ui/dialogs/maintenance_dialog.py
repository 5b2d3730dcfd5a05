# ui/dialogs/maintenance_dialog.py - Schedule and complete maintenance events

from datetime import date

from PyQt5 import QtWidgets, QtCore

from domain.models import EventType, Instrument, MaintenanceEvent
from ui.dialogs.common import STANDARD_FIELD_WIDTH, date_from_qdate, qdate_from_date


class ScheduleEventDialog(QtWidgets.QDialog):
    """Collect date, type, description and notes for a new maintenance event."""

    def __init__(self, instrument: Instrument, parent=None):
        super().__init__(parent)
        self.setWindowTitle(f"Schedule Maintenance - {instrument.name}")
        self.resize(440, 320)

        form = QtWidgets.QFormLayout(self)

        self.date_edit = QtWidgets.QDateEdit(calendarPopup=True)
        self.date_edit.setDisplayFormat("yyyy-MM-dd")
        initial = instrument.next_maintenance_date or date.today()
        self.date_edit.setDate(qdate_from_date(initial))

        self.type_combo = QtWidgets.QComboBox()
        self.type_combo.addItems([et.value for et in EventType])

        self.description_edit = QtWidgets.QLineEdit()
        self.description_edit.setMinimumWidth(STANDARD_FIELD_WIDTH)
        self.description_edit.setPlaceholderText("e.g. Replace pump seals")

        self.notes_edit = QtWidgets.QPlainTextEdit()
        self.notes_edit.setMinimumHeight(70)

        form.addRow("Date*", self.date_edit)
        form.addRow("Type", self.type_combo)
        form.addRow("Description*", self.description_edit)
        form.addRow("Notes", self.notes_edit)

        self._error_label = QtWidgets.QLabel("")
        self._error_label.setStyleSheet("color: #d32f2f; font-size: 10px;")
        self._error_label.hide()
        form.addRow("", self._error_label)

        btn_box = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel
        )
        btn_box.accepted.connect(self._on_ok_clicked)
        btn_box.rejected.connect(self.reject)
        form.addRow(btn_box)
        self.description_edit.setFocus()

    def _on_ok_clicked(self):
        if not self.description_edit.text().strip():
            self.description_edit.setStyleSheet("border: 2px solid #d32f2f;")
            self._error_label.setText("Description is required")
            self._error_label.show()
            return
        self.accept()

    def get_data(self) -> dict:
        return {
            "date": date_from_qdate(self.date_edit.date()),
            "type": self.type_combo.currentText(),
            "description": self.description_edit.text().strip(),
            "notes": self.notes_edit.toPlainText().strip(),
        }


class CompleteEventDialog(QtWidgets.QDialog):
    """
    Pick the open event to complete, the day it was done and optional notes.
    The interval spin box defaults to "instrument default" (0).
    """

    def __init__(self, instrument: Instrument, open_events: list[MaintenanceEvent], parent=None):
        super().__init__(parent)
        self.setWindowTitle(f"Complete Maintenance - {instrument.name}")
        self.resize(460, 300)
        self._events = list(open_events)

        form = QtWidgets.QFormLayout(self)

        self.event_combo = QtWidgets.QComboBox()
        for ev in self._events:
            when = ev.date.isoformat() if ev.date else "Undated"
            self.event_combo.addItem(f"{when} - {ev.type.value}: {ev.description}", ev.id)

        self.date_edit = QtWidgets.QDateEdit(calendarPopup=True)
        self.date_edit.setDisplayFormat("yyyy-MM-dd")
        self.date_edit.setDate(QtCore.QDate.currentDate())
        self.date_edit.setMaximumDate(QtCore.QDate.currentDate())

        self.interval_spin = QtWidgets.QSpinBox()
        self.interval_spin.setRange(0, 120)
        self.interval_spin.setSpecialValueText("Instrument default")
        self.interval_spin.setSuffix(" months")
        if instrument.interval_months:
            self.interval_spin.setValue(instrument.interval_months)

        self.notes_edit = QtWidgets.QPlainTextEdit()
        self.notes_edit.setMinimumHeight(70)
        self.notes_edit.setPlaceholderText("What was done, parts replaced, readings...")

        form.addRow("Event", self.event_combo)
        form.addRow("Completed on", self.date_edit)
        form.addRow("Next interval", self.interval_spin)
        form.addRow("Notes", self.notes_edit)

        btn_box = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel
        )
        btn_box.accepted.connect(self.accept)
        btn_box.rejected.connect(self.reject)
        btn_box.button(QtWidgets.QDialogButtonBox.Ok).setEnabled(bool(self._events))
        form.addRow(btn_box)

    def get_result(self) -> tuple[int, date, int | None, str]:
        """(event_id, completion_date, interval_months or None, notes)"""
        return (
            self.event_combo.currentData(),
            date_from_qdate(self.date_edit.date()),
            self.interval_spin.value() or None,
            self.notes_edit.toPlainText().strip(),
        )
