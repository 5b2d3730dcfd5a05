# ui/dialogs/advisor_dialog.py - Failure prediction for one instrument

import logging
from pathlib import Path

from PyQt5 import QtWidgets, QtCore

from database import MaintenanceRepository, get_connection
from services.advisor_service import (
    MIN_USAGE_PATTERNS_LENGTH,
    AdvisorError,
    advise_for_instrument,
)

logger = logging.getLogger(__name__)


class AdvisorWorker(QtCore.QThread):
    """Runs the prediction off the UI thread on its own database connection."""
    finished = QtCore.pyqtSignal(object)
    error = QtCore.pyqtSignal(str)

    def __init__(self, db_path: Path, instrument_id: int, usage_patterns: str):
        super().__init__()
        self.db_path = db_path
        self.instrument_id = instrument_id
        self.usage_patterns = usage_patterns

    def run(self):
        try:
            conn = get_connection(self.db_path)
            try:
                repo = MaintenanceRepository(conn)
                prediction = advise_for_instrument(repo, self.instrument_id, self.usage_patterns)
            finally:
                conn.close()
            self.finished.emit(prediction)
        except (AdvisorError, ValueError, LookupError) as e:
            self.error.emit(str(e))
        except Exception as e:
            logger.exception("Advisor request failed for instrument %s", self.instrument_id)
            self.error.emit(f"Prediction failed: {e}")


class AdvisorDialog(QtWidgets.QDialog):
    def __init__(self, db_path: Path, instrument_id: int, instrument_name: str, parent=None):
        super().__init__(parent)
        self.db_path = db_path
        self.instrument_id = instrument_id
        self._worker = None
        self.setWindowTitle(f"Maintenance Advisor - {instrument_name}")
        self.resize(620, 520)

        layout = QtWidgets.QVBoxLayout(self)

        layout.addWidget(QtWidgets.QLabel("Usage patterns"))
        self.usage_edit = QtWidgets.QPlainTextEdit()
        self.usage_edit.setPlaceholderText(
            "How is the instrument used? e.g. Runs 8 hours a day, 5 days a week, mostly high-salt samples"
        )
        self.usage_edit.setMaximumHeight(110)
        layout.addWidget(self.usage_edit)

        self.btn_predict = QtWidgets.QPushButton("Predict")
        self.btn_predict.clicked.connect(self.on_predict)
        layout.addWidget(self.btn_predict, alignment=QtCore.Qt.AlignRight)

        self.status_label = QtWidgets.QLabel("")
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        layout.addWidget(QtWidgets.QLabel("<b>Failure likelihood</b>"))
        self.likelihood_view = QtWidgets.QPlainTextEdit()
        self.likelihood_view.setReadOnly(True)
        self.likelihood_view.setMaximumHeight(90)
        layout.addWidget(self.likelihood_view)

        layout.addWidget(QtWidgets.QLabel("<b>Recommended actions</b>"))
        self.actions_view = QtWidgets.QPlainTextEdit()
        self.actions_view.setReadOnly(True)
        layout.addWidget(self.actions_view)

        btn_box = QtWidgets.QDialogButtonBox(QtWidgets.QDialogButtonBox.Close)
        btn_box.rejected.connect(self.reject)
        layout.addWidget(btn_box)

    def on_predict(self):
        usage = self.usage_edit.toPlainText().strip()
        if len(usage) < MIN_USAGE_PATTERNS_LENGTH:
            self.status_label.setText(
                f"Please describe usage patterns in at least {MIN_USAGE_PATTERNS_LENGTH} characters."
            )
            return
        self.btn_predict.setEnabled(False)
        self.status_label.setText("Asking the advisor...")
        self.likelihood_view.clear()
        self.actions_view.clear()

        self._worker = AdvisorWorker(self.db_path, self.instrument_id, usage)
        self._worker.finished.connect(self._on_finished)
        self._worker.error.connect(self._on_error)
        self._worker.start()

    def _on_finished(self, prediction):
        self.btn_predict.setEnabled(True)
        self.status_label.setText(prediction.history_note)
        self.likelihood_view.setPlainText(prediction.failure_likelihood)
        self.actions_view.setPlainText(prediction.recommended_actions)

    def _on_error(self, message: str):
        self.btn_predict.setEnabled(True)
        self.status_label.setText(message)

    def reject(self):
        if self._worker is not None and self._worker.isRunning():
            self._worker.wait(5000)
        super().reject()
