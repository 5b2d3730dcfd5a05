# main.py

import argparse
import sqlite3
import sys
from pathlib import Path

from database import (
    get_connection,
    initialize_db,
    run_integrity_check,
    DB_PATH,
    MaintenanceRepository,
)
from crash_log import configure_logging, install_global_excepthook, logger, log_current_exception


def _is_readonly_db_error(exc: BaseException) -> bool:
    err = str(exc).lower()
    return "readonly" in err or "read-only" in err or "attempt to write" in err


def _show_error(title: str, message: str, headless: bool) -> None:
    """Message box in GUI mode, stderr in headless mode."""
    if headless:
        print(f"{title}: {message}", file=sys.stderr)
        return
    from PyQt5.QtWidgets import QApplication, QMessageBox
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    QMessageBox.critical(None, title, message)


def _show_readonly_dialog(message: str) -> bool:
    """Show dialog for read-only database. Returns True to try again, False to close."""
    from PyQt5.QtWidgets import QApplication, QMessageBox
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    box = QMessageBox()
    box.setIcon(QMessageBox.Warning)
    box.setWindowTitle("Database read-only")
    box.setText("The application cannot write to the maintenance database.")
    box.setInformativeText(message + "\n\nFix the folder or file permissions, then click Try Again.")
    try_again = box.addButton("Try Again", QMessageBox.AcceptRole)
    box.addButton("Close", QMessageBox.RejectRole)
    box.exec_()
    return box.clickedButton() == try_again


def _open_database(db_path: Path, headless: bool) -> sqlite3.Connection:
    while True:
        try:
            conn = get_connection(db_path)
            conn = initialize_db(conn, db_path)
        except sqlite3.OperationalError as e:
            if "could not open database" in str(e).lower():
                logger.error("Database file not openable: %s", e)
                _show_error("Cannot open database", str(e), headless)
                sys.exit(1)
            if not _is_readonly_db_error(e):
                raise
            logger.warning("Database read-only: %s", e)
            if headless or not _show_readonly_dialog(str(e)):
                if headless:
                    print(str(e), file=sys.stderr)
                sys.exit(1 if headless else 0)
            continue

        integrity_err = run_integrity_check(conn)
        if integrity_err:
            logger.error("Database integrity check failed: %s", integrity_err)
            _show_error(
                "Database integrity check failed",
                f"{integrity_err}\n\nRestore the database from a backup.\n\nDatabase: {db_path}",
                headless,
            )
            sys.exit(1)
        return conn


def write_report(repo: MaintenanceRepository, output_path: str) -> Path:
    """Build the dashboard for today and write it to output_path."""
    from pdf_export import export_dashboard_report
    from services.dashboard_service import build_dashboard

    dashboard = build_dashboard(repo)
    path = export_dashboard_report(dashboard, output_path)
    logger.info(
        "Dashboard report written to %s (%d instruments, %d overdue)",
        path, dashboard.summary.total, dashboard.summary.overdue,
    )
    return path


def main(argv=None):
    configure_logging()
    install_global_excepthook()

    parser = argparse.ArgumentParser(
        description="Instrument Maintenance Tracker (GUI + headless report mode)"
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the SQLite database (default: environment, config.json, then user config folder)",
    )
    parser.add_argument(
        "--report",
        metavar="PDF_PATH",
        default=None,
        help="Run headless: write the dashboard report to PDF_PATH and exit.",
    )
    args = parser.parse_args(argv)
    headless = args.report is not None
    db_path = Path(args.db) if args.db else DB_PATH

    logger.info("Program start. args=%s db=%s", sys.argv, db_path)

    try:
        conn = _open_database(db_path, headless)
        repo = MaintenanceRepository(conn)
        try:
            if headless:
                logger.info("Running in headless mode: dashboard report")
                path = write_report(repo, args.report)
                print(f"Report written to {path}")
            else:
                from ui.run import run_gui
                logger.info("Starting GUI mode")
                run_gui(repo)
        finally:
            conn.close()
        logger.info("Program exit normally")

    except RuntimeError as e:
        err_msg = str(e).lower()
        if "migration" in err_msg or "schema" in err_msg:
            log_current_exception("Migration/schema error in main()")
            _show_error("Database schema error", str(e) + "\n\nExiting.", headless)
            sys.exit(1)
        raise
    except OSError as e:
        if not headless:
            raise
        log_current_exception("Report export failed")
        print(f"Report export failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception:
        log_current_exception("Fatal error in main()")
        raise


if __name__ == "__main__":
    main()
