# test_table_models.py
"""
Tests for the Qt table models and the instrument filter proxy (no widgets).
Run with: python -m pytest test_table_models.py -v
"""

import unittest
from datetime import date

from PyQt5 import QtCore

from domain.models import EventType, Instrument, InstrumentStatus, MaintenanceEvent
from ui.table_models import (
    InstrumentFilterProxyModel,
    InstrumentTableModel,
    MaintenanceEventTableModel,
)

TODAY = date(2024, 6, 1)

_app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


def make_instrument(id, name, next_date, status=InstrumentStatus.OPERATIONAL, location="Lab A"):
    return Instrument(
        id=id,
        name=name,
        model="M1",
        serial_number=f"SN-{id}",
        location=location,
        status=status,
        installation_date=date(2023, 1, 1),
        last_maintenance_date=date(2023, 12, 1),
        next_maintenance_date=next_date,
    )


INSTRUMENTS = [
    make_instrument(1, "Centrifuge", date(2024, 5, 20)),                        # overdue
    make_instrument(2, "Balance", date(2024, 6, 5), location="Weigh room"),     # due soon
    make_instrument(3, "Incubator", date(2024, 6, 25)),                         # within 30 days
    make_instrument(4, "Freezer", date(2024, 9, 1)),                            # scheduled
    make_instrument(5, "Old HPLC", date(2024, 1, 1), InstrumentStatus.ARCHIVED),
]


def _names(proxy):
    model = proxy.sourceModel()
    return [
        model.get_instrument_at_row(proxy.mapToSource(proxy.index(r, 0)).row()).name
        for r in range(proxy.rowCount())
    ]


class TestInstrumentTableModel(unittest.TestCase):
    def setUp(self):
        self.model = InstrumentTableModel(INSTRUMENTS, today=TODAY)

    def test_shape(self):
        self.assertEqual(self.model.rowCount(), 5)
        self.assertEqual(self.model.columnCount(), len(InstrumentTableModel.HEADERS))

    def test_display(self):
        idx = self.model.index(1, 0)
        self.assertEqual(self.model.data(idx), "Balance")
        self.assertEqual(self.model.data(self.model.index(1, InstrumentTableModel.COL_STATUS)), "Operational")
        self.assertEqual(self.model.data(self.model.index(1, 7)), "2024-06-05")
        self.assertEqual(self.model.data(self.model.index(1, InstrumentTableModel.COL_DAYS_LEFT)), 4)
        self.assertEqual(self.model.data(self.model.index(1, 9)), "Due Soon")
        self.assertEqual(self.model.data(self.model.index(0, 9)), "Overdue")
        self.assertEqual(self.model.data(self.model.index(4, 9)), "Unknown")

    def test_overdue_row_colored(self):
        self.assertIsNotNone(self.model.data(self.model.index(0, 0), QtCore.Qt.BackgroundRole))
        self.assertIsNone(self.model.data(self.model.index(3, 0), QtCore.Qt.BackgroundRole))

    def test_sort_by_next_maintenance(self):
        self.model.sort(7, QtCore.Qt.AscendingOrder)
        self.assertEqual([i.id for i in self.model.instruments], [5, 1, 2, 3, 4])

    def test_lookup_helpers(self):
        self.assertEqual(self.model.get_instrument_id(2), 3)
        self.assertIsNone(self.model.get_instrument_id(99))
        self.assertIsNone(self.model.get_instrument_at_row(-1))


class TestInstrumentFilterProxyModel(unittest.TestCase):
    def setUp(self):
        self.model = InstrumentTableModel(INSTRUMENTS, today=TODAY)
        self.proxy = InstrumentFilterProxyModel()
        self.proxy.setSourceModel(self.model)

    def test_no_filter(self):
        self.assertEqual(self.proxy.rowCount(), 5)

    def test_text_filter_matches_all_words(self):
        self.proxy.set_text_filter("weigh BALANCE")
        self.assertEqual(_names(self.proxy), ["Balance"])
        self.proxy.set_text_filter("lab a")
        self.assertEqual(sorted(_names(self.proxy)), ["Centrifuge", "Freezer", "Incubator", "Old HPLC"])

    def test_status_filter(self):
        self.proxy.set_status_filter("Archived")
        self.assertEqual(_names(self.proxy), ["Old HPLC"])

    def test_due_filters(self):
        self.proxy.set_due_filter("Overdue")
        self.assertEqual(_names(self.proxy), ["Centrifuge"])
        self.proxy.set_due_filter("Due in 30 days")
        self.assertEqual(sorted(_names(self.proxy)), ["Balance", "Incubator"])
        self.proxy.set_due_filter("bogus")
        self.assertEqual(self.proxy.rowCount(), 5)


class TestMaintenanceEventTableModel(unittest.TestCase):
    def test_state_column(self):
        events = [
            MaintenanceEvent(1, 1, date(2024, 3, 1), EventType.SCHEDULED, "Lamp", completed=True, files=["a", "b"]),
            MaintenanceEvent(2, 1, date(2024, 5, 1), EventType.UNSCHEDULED, "Seals"),
            MaintenanceEvent(3, 1, date(2024, 7, 1), EventType.SCHEDULED, "Service"),
        ]
        model = MaintenanceEventTableModel(events, today=TODAY)
        self.assertEqual([model.data(model.index(r, 3)) for r in range(3)], ["Completed", "Missed", "Pending"])
        self.assertEqual(model.data(model.index(0, 5)), 2)
        self.assertIsNotNone(model.data(model.index(1, 0), QtCore.Qt.ForegroundRole))
        self.assertIsNone(model.data(model.index(2, 0), QtCore.Qt.ForegroundRole))
        self.assertEqual(model.get_event_at_row(1).id, 2)


if __name__ == "__main__":
    unittest.main()
