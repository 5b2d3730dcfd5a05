# ui/dialogs/instrument_dialog.py - Instrument add/edit dialog

from PyQt5 import QtWidgets, QtCore, QtGui

from domain.models import Instrument, InstrumentStatus, MaintenanceType
from ui.dialogs.common import STANDARD_FIELD_WIDTH, qdate_from_date


class InstrumentDialog(QtWidgets.QDialog):
    """New instrument when `instrument` is None, otherwise edit it. Installation date is fixed after creation."""

    REQUIRED = ("name", "model", "serial_number", "location")

    def __init__(self, instrument: Instrument | None = None, parent=None):
        super().__init__(parent)
        self.instrument = instrument
        self.setWindowTitle("Instrument" + (" - Edit" if instrument else " - New"))
        self.resize(480, 480)

        form = QtWidgets.QFormLayout(self)

        self.edits = {}
        for key in self.REQUIRED:
            edit = QtWidgets.QLineEdit()
            edit.setMinimumWidth(STANDARD_FIELD_WIDTH)
            edit.textChanged.connect(lambda _text, k=key: self._validate_field(k))
            self.edits[key] = edit

        self.status_combo = QtWidgets.QComboBox()
        self.status_combo.addItems([st.value for st in InstrumentStatus])

        self.installation_date = QtWidgets.QDateEdit(calendarPopup=True)
        self.installation_date.setDisplayFormat("yyyy-MM-dd")
        self.installation_date.setDate(QtCore.QDate.currentDate())

        self.type_combo = QtWidgets.QComboBox()
        self.type_combo.addItems([mt.value for mt in MaintenanceType])
        self.type_combo.setCurrentText(MaintenanceType.PM.value)

        # 0 means "derive from maintenance type, else the default interval"
        self.interval_spin = QtWidgets.QSpinBox()
        self.interval_spin.setRange(0, 120)
        self.interval_spin.setSpecialValueText("Default")
        self.interval_spin.setSuffix(" months")

        self.notes_edit = QtWidgets.QPlainTextEdit()
        self.notes_edit.setPlaceholderText("Optional notes about this instrument")
        self.notes_edit.setMinimumHeight(80)
        option = QtGui.QTextOption()
        option.setWrapMode(QtGui.QTextOption.WordWrap)
        self.notes_edit.document().setDefaultTextOption(option)

        form.addRow("Name*", self.edits["name"])
        form.addRow("Model*", self.edits["model"])
        form.addRow("Serial number*", self.edits["serial_number"])
        form.addRow("Location*", self.edits["location"])
        form.addRow("Status", self.status_combo)
        form.addRow("Installation date*", self.installation_date)
        form.addRow("Maintenance type", self.type_combo)
        form.addRow("Interval", self.interval_spin)
        form.addRow("Notes", self.notes_edit)

        self._error_label = QtWidgets.QLabel("")
        self._error_label.setStyleSheet("color: #d32f2f; font-size: 10px; margin-left: 4px;")
        self._error_label.hide()
        form.addRow("", self._error_label)

        if not instrument:
            hint_label = QtWidgets.QLabel(
                "<small><i>Next maintenance is scheduled one interval after installation "
                "(6 months unless the type or interval says otherwise)</i></small>"
            )
            hint_label.setWordWrap(True)
            form.addRow("", hint_label)

        btn_box = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel
        )
        btn_box.accepted.connect(self._on_ok_clicked)
        btn_box.rejected.connect(self.reject)
        form.addRow(btn_box)

        if instrument:
            self._load_instrument()
        self.edits["name"].setFocus()

    def _validate_field(self, key: str) -> bool:
        edit = self.edits[key]
        ok = bool(edit.text().strip())
        edit.setStyleSheet("" if ok else "border: 2px solid #d32f2f;")
        return ok

    def _on_ok_clicked(self):
        missing = [k for k in self.REQUIRED if not self._validate_field(k)]
        if missing:
            self._error_label.setText("Name, model, serial number and location are required")
            self._error_label.show()
            self.edits[missing[0]].setFocus()
            return
        self.accept()

    def _load_instrument(self):
        inst = self.instrument
        for key, edit in self.edits.items():
            edit.setText(inst.get(key) or "")
        self.status_combo.setCurrentText(inst.status.value)
        if inst.installation_date:
            self.installation_date.setDate(qdate_from_date(inst.installation_date))
        self.installation_date.setEnabled(False)
        self.type_combo.setCurrentText(inst.maintenance_type.value)
        self.interval_spin.setValue(inst.interval_months or 0)
        self.notes_edit.setPlainText(inst.notes or "")

    def get_data(self) -> dict:
        data = {key: edit.text().strip() for key, edit in self.edits.items()}
        data.update(
            {
                "status": self.status_combo.currentText(),
                "maintenance_type": self.type_combo.currentText(),
                "interval_months": self.interval_spin.value() or None,
                "notes": self.notes_edit.toPlainText().strip(),
            }
        )
        if self.instrument:
            if self.instrument.updated_at:
                data["updated_at"] = self.instrument.updated_at
        else:
            data["installation_date"] = self.installation_date.date().toString("yyyy-MM-dd")
        return data
