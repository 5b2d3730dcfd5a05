# ui/dialogs/history_dialog.py - Maintenance history for one instrument

from datetime import date
from pathlib import Path

from PyQt5 import QtWidgets, QtCore, QtGui

from database import MaintenanceRepository
from pdf_export import default_report_filename, export_instrument_history
from services import maintenance_service
from ui.table_models import MaintenanceEventTableModel


class HistoryDialog(QtWidgets.QDialog):
    """Open and completed events for an instrument, with file attachments and PDF export."""

    def __init__(self, repo: MaintenanceRepository, instrument_id: int, parent=None):
        super().__init__(parent)
        self.repo = repo
        self.instrument_id = instrument_id
        self.instrument = repo.get_instrument(instrument_id)
        name = self.instrument.name if self.instrument else str(instrument_id)
        self.setWindowTitle(f"Maintenance History - {name}")
        self.resize(900, 560)

        layout = QtWidgets.QVBoxLayout(self)

        info = []
        if self.instrument:
            info.append(f"Serial: {self.instrument.serial_number}")
            info.append(f"Location: {self.instrument.location}")
            if self.instrument.last_maintenance_date:
                info.append(f"Last: {self.instrument.last_maintenance_date.isoformat()}")
            if self.instrument.next_maintenance_date:
                info.append(f"Next: {self.instrument.next_maintenance_date.isoformat()}")
        layout.addWidget(QtWidgets.QLabel(" | ".join(info)))

        layout.addWidget(QtWidgets.QLabel("<b>Open</b>"))
        self.open_model = MaintenanceEventTableModel(parent=self)
        self.open_table = self._make_table(self.open_model)
        layout.addWidget(self.open_table)

        layout.addWidget(QtWidgets.QLabel("<b>Completed</b>"))
        self.completed_model = MaintenanceEventTableModel(parent=self)
        self.completed_table = self._make_table(self.completed_model)
        layout.addWidget(self.completed_table)

        btn_layout = QtWidgets.QHBoxLayout()
        self.btn_attach = QtWidgets.QPushButton("Attach file...")
        self.btn_attach.setToolTip("Attach a file to the selected event")
        self.btn_open_files = QtWidgets.QPushButton("Open files")
        self.btn_export = QtWidgets.QPushButton("Export PDF...")
        btn_close = QtWidgets.QPushButton("Close")
        btn_layout.addWidget(self.btn_attach)
        btn_layout.addWidget(self.btn_open_files)
        btn_layout.addStretch()
        btn_layout.addWidget(self.btn_export)
        btn_layout.addWidget(btn_close)
        layout.addLayout(btn_layout)

        self.btn_attach.clicked.connect(self.on_attach)
        self.btn_open_files.clicked.connect(self.on_open_files)
        self.btn_export.clicked.connect(self.on_export_pdf)
        btn_close.clicked.connect(self.accept)

        self._load()

    def _make_table(self, model) -> QtWidgets.QTableView:
        table = QtWidgets.QTableView()
        table.setModel(model)
        table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        table.setSelectionMode(QtWidgets.QAbstractItemView.SingleSelection)
        table.horizontalHeader().setStretchLastSection(True)
        table.verticalHeader().setVisible(False)
        return table

    def _load(self):
        self.history = maintenance_service.get_history(self.repo, self.instrument_id)
        self.open_model.set_events(self.history.open)
        self.completed_model.set_events(self.history.completed)
        self.open_table.resizeColumnsToContents()
        self.completed_table.resizeColumnsToContents()

    def _selected_event(self):
        for table, model in (
            (self.open_table, self.open_model),
            (self.completed_table, self.completed_model),
        ):
            rows = table.selectionModel().selectedRows()
            if rows:
                return model.get_event_at_row(rows[0].row())
        return None

    def on_attach(self):
        ev = self._selected_event()
        if ev is None:
            QtWidgets.QMessageBox.information(self, "No selection", "Select an event first.")
            return
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Attach file")
        if not path:
            return
        try:
            maintenance_service.attach_file(self.repo, ev.id, path)
        except (OSError, LookupError) as e:
            QtWidgets.QMessageBox.critical(self, "Attach failed", str(e))
            return
        self._load()

    def on_open_files(self):
        ev = self._selected_event()
        if ev is None or not ev.files:
            QtWidgets.QMessageBox.information(self, "No files", "The selected event has no attachments.")
            return
        for path in ev.files:
            QtGui.QDesktopServices.openUrl(QtCore.QUrl.fromLocalFile(path))

    def on_export_pdf(self):
        if self.instrument is None:
            return
        suggested = default_report_filename(f"History_{self.instrument.name}", date.today())
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export history", str(Path.home() / suggested), "PDF files (*.pdf)"
        )
        if not path:
            return
        try:
            export_instrument_history(self.instrument, self.history, path)
        except OSError as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", str(e))
            return
        QtWidgets.QMessageBox.information(self, "Export complete", f"Saved to:\n{path}")
