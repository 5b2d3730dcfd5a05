# ui/run.py - Application entry point and run_gui

from PyQt5 import QtWidgets

from database import MaintenanceRepository
from ui.main_window import MainWindow


def run_gui(repo: MaintenanceRepository) -> None:
    """Create and run the main application window."""
    app = QtWidgets.QApplication([])
    app.setOrganizationName("MaintenanceTracker")
    app.setApplicationName("MaintenanceTracker")
    app.setStyle("Fusion")
    win = MainWindow(repo)
    win.showMaximized()
    app.exec_()
