# ui/main_window.py - Main application window

from datetime import date
from pathlib import Path
import sqlite3

from PyQt5 import QtWidgets, QtCore, QtGui

from database import MaintenanceRepository, get_effective_db_path, StaleDataError
from domain.models import InstrumentStatus
from maintenance_scheduler import InvalidIntervalError
from pdf_export import default_report_filename, export_dashboard_report
from services import dashboard_service, instrument_service, maintenance_service
from table_export import export_rows_csv, export_rows_xlsx

from ui.table_models import (
    DUE_FILTERS,
    InstrumentTableModel,
    InstrumentFilterProxyModel,
    UpcomingTableModel,
)
from ui.dialogs import (
    InstrumentDialog,
    ScheduleEventDialog,
    CompleteEventDialog,
    HistoryDialog,
    AdvisorDialog,
)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, repo: MaintenanceRepository):
        super().__init__()
        self.repo = repo
        self.setWindowTitle("Instrument Maintenance Tracker")
        self.resize(1100, 700)

        self._init_ui()
        self.load_instruments()

    def _init_ui(self):
        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)

        # ------------------------------------------------------------------
        # Toolbar
        # ------------------------------------------------------------------
        toolbar = self.addToolBar("Main")
        toolbar.setMovable(False)
        toolbar.setToolButtonStyle(QtCore.Qt.ToolButtonTextBesideIcon)

        self.act_new = toolbar.addAction("New")
        self.act_new.setShortcut(QtGui.QKeySequence.New)
        self.act_new.setToolTip("Register a new instrument (Ctrl+N)")

        self.act_edit = toolbar.addAction("Edit")
        self.act_edit.setShortcut(QtGui.QKeySequence("Ctrl+E"))
        self.act_edit.setToolTip("Edit selected instrument (Ctrl+E)")

        toolbar.addSeparator()

        self.act_schedule = toolbar.addAction("Schedule")
        self.act_schedule.setShortcut(QtGui.QKeySequence("Ctrl+S"))
        self.act_schedule.setToolTip("Schedule maintenance for selected instrument (Ctrl+S)")

        self.act_complete = toolbar.addAction("Complete")
        self.act_complete.setShortcut(QtGui.QKeySequence("Ctrl+M"))
        self.act_complete.setToolTip("Complete an open maintenance event (Ctrl+M)")

        self.act_hist = toolbar.addAction("History")
        self.act_hist.setShortcut(QtGui.QKeySequence("Ctrl+H"))
        self.act_hist.setToolTip("View maintenance history (Ctrl+H)")

        toolbar.addSeparator()

        self.act_advisor = toolbar.addAction("Advisor")
        self.act_advisor.setToolTip("Predict failure likelihood for selected instrument")

        self.act_new.triggered.connect(self.on_new)
        self.act_edit.triggered.connect(self.on_edit)
        self.act_schedule.triggered.connect(self.on_schedule)
        self.act_complete.triggered.connect(self.on_complete)
        self.act_hist.triggered.connect(self.on_history)
        self.act_advisor.triggered.connect(self.on_advisor)

        self.act_set_status = QtWidgets.QAction("Set status...", self)
        self.act_set_status.setToolTip("Change the operational status of selected instrument")
        self.act_set_status.triggered.connect(self.on_set_status)

        self.act_archive = QtWidgets.QAction("Archive", self)
        self.act_archive.setShortcut(QtGui.QKeySequence.Delete)
        self.act_archive.setToolTip("Archive selected instrument (Del)")
        self.act_archive.triggered.connect(self.on_archive)

        # ------------------------------------------------------------------
        # Menus
        # ------------------------------------------------------------------
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        file_menu.addAction(self.act_new)
        file_menu.addSeparator()
        export_pdf_action = file_menu.addAction("Export dashboard to PDF...")
        export_pdf_action.setShortcut(QtGui.QKeySequence("Ctrl+Shift+P"))
        export_pdf_action.triggered.connect(self.on_export_dashboard)
        export_menu = file_menu.addMenu("Export current view")
        export_csv_action = export_menu.addAction("To CSV...")
        export_csv_action.setShortcut(QtGui.QKeySequence("Ctrl+Shift+C"))
        export_csv_action.triggered.connect(self.on_export_csv)
        export_xlsx_action = export_menu.addAction("To Excel...")
        export_xlsx_action.setShortcut(QtGui.QKeySequence("Ctrl+Shift+E"))
        export_xlsx_action.triggered.connect(self.on_export_excel)
        file_menu.addSeparator()
        exit_action = file_menu.addAction("E&xit")
        exit_action.setShortcut(QtGui.QKeySequence.Quit)
        exit_action.triggered.connect(self.close)

        edit_menu = menubar.addMenu("&Edit")
        edit_menu.addAction(self.act_edit)
        edit_menu.addAction(self.act_set_status)
        edit_menu.addSeparator()
        edit_menu.addAction(self.act_archive)

        maint_menu = menubar.addMenu("&Maintenance")
        maint_menu.addAction(self.act_schedule)
        maint_menu.addAction(self.act_complete)
        maint_menu.addAction(self.act_hist)
        maint_menu.addSeparator()
        maint_menu.addAction(self.act_advisor)

        help_menu = menubar.addMenu("&Help")
        about_action = help_menu.addAction("About...")
        about_action.triggered.connect(self.on_show_about)

        # ------------------------------------------------------------------
        # Overview + upcoming maintenance
        # ------------------------------------------------------------------
        layout.addWidget(self._create_statistics_widget())

        self.upcoming_group = QtWidgets.QGroupBox("Upcoming Maintenance")
        upcoming_layout = QtWidgets.QVBoxLayout(self.upcoming_group)
        self.upcoming_model = UpcomingTableModel(parent=self)
        self.upcoming_table = QtWidgets.QTableView()
        self.upcoming_table.setModel(self.upcoming_model)
        self.upcoming_table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        self.upcoming_table.horizontalHeader().setStretchLastSection(True)
        self.upcoming_table.verticalHeader().setVisible(False)
        self.upcoming_table.setMaximumHeight(170)
        upcoming_layout.addWidget(self.upcoming_table)
        self.type_distribution_label = QtWidgets.QLabel("")
        self.type_distribution_label.setWordWrap(True)
        upcoming_layout.addWidget(self.type_distribution_label)
        self.status_distribution_label = QtWidgets.QLabel("")
        self.status_distribution_label.setWordWrap(True)
        upcoming_layout.addWidget(self.status_distribution_label)
        layout.addWidget(self.upcoming_group)

        # ------------------------------------------------------------------
        # Filters row
        # ------------------------------------------------------------------
        filters_container = QtWidgets.QWidget()
        filters_layout = QtWidgets.QHBoxLayout(filters_container)
        filters_layout.setContentsMargins(5, 5, 5, 5)
        filters_layout.setSpacing(10)

        filters_layout.addWidget(QtWidgets.QLabel("Search:"))
        self.search_edit = QtWidgets.QLineEdit()
        self.search_edit.setPlaceholderText("Search by name, model, serial or location...")
        self.search_edit.setClearButtonEnabled(True)
        filters_layout.addWidget(self.search_edit, 3)

        search_shortcut = QtWidgets.QShortcut(QtGui.QKeySequence("Ctrl+F"), self)
        search_shortcut.activated.connect(lambda: self.search_edit.setFocus())

        self.status_filter_combo = QtWidgets.QComboBox()
        self.status_filter_combo.addItem("All Statuses", "")
        for st in InstrumentStatus:
            self.status_filter_combo.addItem(st.value, st.value)
        filters_layout.addWidget(QtWidgets.QLabel("Status:"))
        filters_layout.addWidget(self.status_filter_combo)

        self.due_filter_combo = QtWidgets.QComboBox()
        self.due_filter_combo.addItems(list(DUE_FILTERS))
        self.due_filter_combo.setToolTip("Filter by maintenance due date")
        filters_layout.addWidget(QtWidgets.QLabel("Due:"))
        filters_layout.addWidget(self.due_filter_combo)

        clear_filters_btn = QtWidgets.QPushButton("Clear")
        clear_filters_btn.setMaximumWidth(60)
        clear_filters_btn.clicked.connect(self._clear_filters)
        filters_layout.addWidget(clear_filters_btn)

        self.show_archived_check = QtWidgets.QCheckBox("Show archived")
        self.show_archived_check.toggled.connect(self.load_instruments)
        filters_layout.addWidget(self.show_archived_check)

        layout.addWidget(filters_container)

        # ------------------------------------------------------------------
        # Table + models
        # ------------------------------------------------------------------
        self.table = QtWidgets.QTableView()
        self.model = InstrumentTableModel([])

        self.proxy = InstrumentFilterProxyModel(self)
        self.proxy.setSourceModel(self.model)

        self.table.setModel(self.proxy)
        self.table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QtWidgets.QAbstractItemView.SingleSelection)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setSortingEnabled(True)
        self.table.doubleClicked.connect(self.on_table_double_clicked)
        self.table.setAlternatingRowColors(True)
        self.table.setShowGrid(False)
        self.table.verticalHeader().setVisible(False)
        self.table.verticalHeader().setDefaultSectionSize(24)
        self.table.setContextMenuPolicy(QtCore.Qt.CustomContextMenu)
        self.table.customContextMenuRequested.connect(self._show_table_context_menu)
        layout.addWidget(self.table, 1)

        self.setCentralWidget(central)

        self.search_edit.textChanged.connect(self._on_filters_changed)
        self.status_filter_combo.currentIndexChanged.connect(self._on_filters_changed)
        self.due_filter_combo.currentIndexChanged.connect(self._on_filters_changed)

        self.statusBar().showMessage("Ready - Select an instrument to get started")
        self.table.selectionModel().selectionChanged.connect(self._update_status_bar)

    def _create_statistics_widget(self):
        stats = QtWidgets.QWidget()
        stats_layout = QtWidgets.QHBoxLayout(stats)
        stats_layout.setContentsMargins(8, 4, 8, 4)
        stats_layout.setSpacing(15)

        self.total_label = QtWidgets.QLabel("Total: 0")
        self.operational_label = QtWidgets.QLabel("Operational: 0")
        self.needs_maintenance_label = QtWidgets.QLabel("Needs Maintenance: 0")
        self.overdue_label = QtWidgets.QLabel("Overdue: 0")

        for label in (self.total_label, self.operational_label, self.needs_maintenance_label):
            label.setStyleSheet("padding: 4px 8px; border-radius: 3px;")
        self.needs_maintenance_label.setStyleSheet(
            "padding: 4px 8px; border-radius: 3px; color: #FF9800;"
        )
        self.overdue_label.setStyleSheet(
            "padding: 4px 8px; border-radius: 3px; color: #FF4444; font-weight: bold;"
        )

        stats_layout.addWidget(self.total_label)
        stats_layout.addWidget(self.operational_label)
        stats_layout.addWidget(self.needs_maintenance_label)
        stats_layout.addWidget(self.overdue_label)
        stats_layout.addStretch()
        return stats

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_instruments(self):
        today = date.today()
        include_archived = self.show_archived_check.isChecked()
        instruments = self.repo.list_instruments(include_archived=include_archived)
        self.model.set_instruments(instruments, today=today)
        self._update_dashboard(today)
        self.statusBar().showMessage(f"Loaded {len(instruments)} instrument(s)", 3000)

    def _update_dashboard(self, today: date):
        dashboard = dashboard_service.build_dashboard(self.repo, today)
        s = dashboard.summary
        self.total_label.setText(f"Total: {s.total}")
        self.operational_label.setText(f"Operational: {s.operational}")
        self.needs_maintenance_label.setText(f"Needs Maintenance: {s.needs_maintenance}")
        self.overdue_label.setText(f"Overdue: {s.overdue}")

        self.upcoming_group.setTitle(f"Upcoming Maintenance (next {dashboard.window_days} days)")
        self.upcoming_model.set_rows(dashboard.upcoming)

        total = sum(dashboard.type_distribution.values())
        parts = [
            f"{mt.value}: {n} ({n * 100 / total:.0f}%)"
            for mt, n in dashboard.type_distribution.items()
        ]
        self.type_distribution_label.setText("Maintenance types - " + ", ".join(parts) if parts else "")
        statuses = [f"{st.value}: {n}" for st, n in dashboard.status_distribution.items()]
        self.status_distribution_label.setText(
            "Instrument status - " + ", ".join(statuses) if dashboard.summary.total else ""
        )

    def _on_filters_changed(self):
        self.proxy.set_text_filter(self.search_edit.text())
        self.proxy.set_status_filter(self.status_filter_combo.currentData() or "")
        self.proxy.set_due_filter(self.due_filter_combo.currentText())

    def _clear_filters(self):
        self.search_edit.clear()
        self.status_filter_combo.setCurrentIndex(0)
        self.due_filter_combo.setCurrentIndex(0)
        self._on_filters_changed()
        self.statusBar().showMessage("Filters cleared", 2000)

    def _update_status_bar(self):
        inst = self._selected_instrument()
        if inst is None:
            self.statusBar().showMessage("Ready - Select an instrument to get started")
            return
        msg = f"Selected: {inst.name} | Location: {inst.location}"
        if inst.next_maintenance_date:
            msg += f" | Next maintenance: {inst.next_maintenance_date.isoformat()}"
        self.statusBar().showMessage(msg)

    def _show_table_context_menu(self, position):
        menu = QtWidgets.QMenu(self)
        if self._selected_instrument_id():
            menu.addAction(self.act_edit)
            menu.addAction(self.act_set_status)
            menu.addSeparator()
            menu.addAction(self.act_schedule)
            menu.addAction(self.act_complete)
            menu.addAction(self.act_hist)
            menu.addAction(self.act_advisor)
            menu.addSeparator()
            menu.addAction(self.act_archive)
        else:
            menu.addAction(self.act_new)
        menu.exec_(self.table.viewport().mapToGlobal(position))

    # ------------------------------------------------------------------
    # Selection helpers
    # ------------------------------------------------------------------

    def _selected_instrument_id(self):
        idx = self.table.currentIndex()
        if not idx.isValid():
            return None
        src_idx = self.proxy.mapToSource(idx)
        return self.model.get_instrument_id(src_idx.row())

    def _selected_instrument(self):
        idx = self.table.currentIndex()
        if not idx.isValid():
            return None
        return self.model.get_instrument_at_row(self.proxy.mapToSource(idx).row())

    def _require_selection(self, action_text: str):
        inst = self._selected_instrument()
        if inst is None:
            QtWidgets.QMessageBox.information(
                self,
                "No selection",
                f"Please select an instrument to {action_text}.",
            )
        return inst

    def on_table_double_clicked(self, index: QtCore.QModelIndex):
        if index.isValid():
            self.on_history()

    # ------------------------------------------------------------------
    # Instrument actions
    # ------------------------------------------------------------------

    def on_new(self):
        dlg = InstrumentDialog(parent=self)
        if dlg.exec_() != QtWidgets.QDialog.Accepted:
            return
        try:
            QtWidgets.QApplication.setOverrideCursor(QtCore.Qt.WaitCursor)
            instrument_service.add_instrument(self.repo, dlg.get_data())
            self.load_instruments()
            self.statusBar().showMessage("New instrument created successfully", 3000)
        except (ValueError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(
                self,
                "Creation failed",
                f"Failed to create instrument:\n{e}",
            )
        finally:
            QtWidgets.QApplication.restoreOverrideCursor()

    def on_edit(self):
        inst = self._require_selection("edit")
        if inst is None:
            return
        dlg = InstrumentDialog(inst, parent=self)
        if dlg.exec_() != QtWidgets.QDialog.Accepted:
            return
        try:
            QtWidgets.QApplication.setOverrideCursor(QtCore.Qt.WaitCursor)
            instrument_service.update_instrument(self.repo, inst.id, dlg.get_data())
            self.load_instruments()
            self.statusBar().showMessage("Instrument updated successfully", 3000)
        except StaleDataError as e:
            QtWidgets.QMessageBox.warning(
                self,
                "Update failed",
                str(e) + "\n\nRefresh the list and try again.",
            )
            self.load_instruments()
        except (ValueError, LookupError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(
                self,
                "Update failed",
                f"Failed to update instrument:\n{e}",
            )
        finally:
            QtWidgets.QApplication.restoreOverrideCursor()

    def on_set_status(self):
        inst = self._require_selection("change status of")
        if inst is None:
            return
        statuses = [st.value for st in InstrumentStatus]
        status, ok = QtWidgets.QInputDialog.getItem(
            self, "Set status", f"Status for {inst.name}:", statuses,
            statuses.index(inst.status.value), False,
        )
        if not ok or status == inst.status.value:
            return
        reason, _ = QtWidgets.QInputDialog.getText(
            self, "Reason", "Reason (optional, for audit log):"
        )
        try:
            instrument_service.set_status(self.repo, inst.id, status, reason.strip() or None)
            self.load_instruments()
            self.statusBar().showMessage(f"{inst.name} set to {status}", 3000)
        except (ValueError, LookupError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(self, "Update failed", str(e))

    def on_archive(self):
        inst = self._require_selection("archive")
        if inst is None:
            return
        reply = QtWidgets.QMessageBox.question(
            self,
            "Archive instrument",
            f"Archive '{inst.name}' ({inst.serial_number})?\n\n"
            "Archived instruments keep their history but are no longer tracked for maintenance.",
        )
        if reply != QtWidgets.QMessageBox.Yes:
            return
        try:
            instrument_service.archive_instrument(self.repo, inst.id, reason="Archived from main window")
            self.load_instruments()
            self.statusBar().showMessage(f"Archived instrument '{inst.name}'", 3000)
        except (LookupError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(self, "Archive failed", f"Failed to archive instrument:\n{e}")

    # ------------------------------------------------------------------
    # Maintenance actions
    # ------------------------------------------------------------------

    def on_schedule(self):
        inst = self._require_selection("schedule maintenance for")
        if inst is None:
            return
        dlg = ScheduleEventDialog(inst, parent=self)
        if dlg.exec_() != QtWidgets.QDialog.Accepted:
            return
        try:
            maintenance_service.schedule_event(self.repo, inst.id, dlg.get_data())
            self.statusBar().showMessage(f"Maintenance scheduled for {inst.name}", 3000)
        except (ValueError, LookupError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(self, "Scheduling failed", str(e))

    def on_complete(self):
        inst = self._require_selection("complete maintenance for")
        if inst is None:
            return
        history = maintenance_service.get_history(self.repo, inst.id)
        if not history.open:
            QtWidgets.QMessageBox.information(
                self,
                "Nothing to complete",
                f"{inst.name} has no open maintenance events.\nUse Schedule to add one first.",
            )
            return
        dlg = CompleteEventDialog(inst, history.open, parent=self)
        if dlg.exec_() != QtWidgets.QDialog.Accepted:
            return
        event_id, completed_on, interval, notes = dlg.get_result()
        try:
            result = maintenance_service.complete_event(
                self.repo, event_id, completed_on, interval_months=interval, notes=notes
            )
        except InvalidIntervalError as e:
            QtWidgets.QMessageBox.warning(self, "Invalid interval", str(e))
            return
        except (ValueError, LookupError, sqlite3.Error) as e:
            QtWidgets.QMessageBox.critical(self, "Update failed", f"Failed to complete maintenance:\n{e}")
            return
        self.load_instruments()
        next_due = result.instrument.next_maintenance_date
        self.statusBar().showMessage(
            f"{inst.name} maintained on {completed_on.isoformat()}; next due {next_due.isoformat()}", 5000
        )

    def on_history(self):
        inst = self._require_selection("view history for")
        if inst is None:
            return
        HistoryDialog(self.repo, inst.id, parent=self).exec_()
        self.load_instruments()

    def on_advisor(self):
        inst = self._require_selection("get a prediction for")
        if inst is None:
            return
        AdvisorDialog(get_effective_db_path(), inst.id, inst.name, parent=self).exec_()

    def on_export_dashboard(self):
        suggested = default_report_filename("Maintenance_Dashboard", date.today())
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export dashboard", str(Path.home() / suggested), "PDF files (*.pdf)"
        )
        if not path:
            return
        try:
            export_dashboard_report(dashboard_service.build_dashboard(self.repo), path)
        except OSError as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", f"Error exporting dashboard:\n{e}")
            return
        self.statusBar().showMessage(f"Dashboard exported to {path}", 5000)

    def _current_view(self) -> tuple[list[str], list[list]]:
        """Headers and display values of the filtered, sorted instrument table."""
        cols = self.proxy.columnCount()
        headers = [
            self.proxy.headerData(c, QtCore.Qt.Horizontal, QtCore.Qt.DisplayRole) or ""
            for c in range(cols)
        ]
        rows = [
            [self.proxy.data(self.proxy.index(r, c), QtCore.Qt.DisplayRole) for c in range(cols)]
            for r in range(self.proxy.rowCount())
        ]
        return headers, rows

    def _ask_export_path(self, title: str, suggested: str, file_filter: str) -> str | None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, title, str(Path.home() / suggested), file_filter
        )
        if not path:
            return None
        if Path(path).exists():
            reply = QtWidgets.QMessageBox.question(
                self,
                "File exists",
                f"{path} already exists. Overwrite?",
                QtWidgets.QMessageBox.Yes | QtWidgets.QMessageBox.No,
                QtWidgets.QMessageBox.No,
            )
            if reply != QtWidgets.QMessageBox.Yes:
                return None
        return path

    def on_export_csv(self):
        path = self._ask_export_path(
            "Export to CSV", f"instruments_{date.today().isoformat()}.csv", "CSV files (*.csv)"
        )
        if not path:
            return
        headers, rows = self._current_view()
        try:
            out = export_rows_csv(path, headers, rows)
        except OSError as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", f"Error writing CSV:\n{e}")
            return
        self.statusBar().showMessage(f"Exported {len(rows)} instrument(s) to {out}", 5000)

    def on_export_excel(self):
        path = self._ask_export_path(
            "Export to Excel", f"instruments_{date.today().isoformat()}.xlsx", "Excel files (*.xlsx)"
        )
        if not path:
            return
        headers, rows = self._current_view()
        try:
            out = export_rows_xlsx(path, headers, rows)
        except OSError as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", f"Error writing Excel file:\n{e}")
            return
        self.statusBar().showMessage(f"Exported {len(rows)} instrument(s) to {out}", 5000)

    def on_show_about(self):
        QtWidgets.QMessageBox.about(
            self,
            "About",
            "Instrument Maintenance Tracker\n\n"
            "Tracks laboratory instruments, their maintenance schedule and history.\n\n"
            f"Database: {get_effective_db_path()}",
        )
