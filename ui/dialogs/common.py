# ui/dialogs/common.py - Shared constants and helpers for dialogs

from datetime import date

from PyQt5 import QtCore

STANDARD_FIELD_WIDTH = 280


def qdate_from_date(d: date) -> QtCore.QDate:
    return QtCore.QDate(d.year, d.month, d.day)


def date_from_qdate(qd: QtCore.QDate) -> date:
    return date(qd.year(), qd.month(), qd.day())
