# test_maintenance_scheduler.py
"""
Unit tests for maintenance_scheduler: due classification, completion rule,
fleet summary, upcoming window and event partitioning.
Run with: python -m pytest test_maintenance_scheduler.py -v
"""

import unittest
from datetime import date

from domain.models import (
    EventType,
    Instrument,
    InstrumentStatus,
    MaintenanceEvent,
    MaintenanceType,
)
from maintenance_scheduler import (
    DueKind,
    DueStatus,
    EventTiming,
    InvalidIntervalError,
    add_months,
    classify_due_status,
    classify_event,
    complete_maintenance_event,
    initial_schedule,
    maintenance_type_distribution,
    partition_events,
    resolve_interval_months,
    status_distribution,
    summarize_fleet,
    upcoming_within_window,
)

NOW = date(2024, 6, 1)


def make_instrument(id=1, status=InstrumentStatus.OPERATIONAL, next_date=None, **kw):
    defaults = dict(
        id=id,
        name=f"HPLC {id}",
        model="1260 Infinity",
        serial_number=f"SN-{id:04d}",
        location="Lab A",
        status=status,
        installation_date=date(2023, 1, 1),
        last_maintenance_date=date(2023, 12, 1),
        next_maintenance_date=next_date,
    )
    defaults.update(kw)
    return Instrument(**defaults)


def make_event(id=1, instrument_id=1, when=None, completed=False, **kw):
    return MaintenanceEvent(
        id=id,
        instrument_id=instrument_id,
        date=when,
        type=kw.pop("type", EventType.SCHEDULED),
        description=kw.pop("description", "Replace lamp"),
        completed=completed,
        **kw,
    )


class TestAddMonths(unittest.TestCase):
    def test_simple(self):
        self.assertEqual(add_months(date(2024, 1, 15), 6), date(2024, 7, 15))

    def test_year_rollover(self):
        self.assertEqual(add_months(date(2024, 11, 30), 3), date(2025, 2, 28))

    def test_end_of_month_clamped(self):
        self.assertEqual(add_months(date(2024, 8, 31), 6), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))

    def test_twelve_months(self):
        self.assertEqual(add_months(date(2024, 2, 29), 12), date(2025, 2, 28))


class TestClassifyDueStatus(unittest.TestCase):
    def test_due_soon(self):
        st = classify_due_status(date(2024, 6, 3), InstrumentStatus.OPERATIONAL, NOW)
        self.assertEqual(st, DueStatus(DueKind.DUE_SOON, 2))

    def test_due_today_is_due_soon(self):
        st = classify_due_status(NOW, InstrumentStatus.OPERATIONAL, NOW)
        self.assertEqual(st, DueStatus(DueKind.DUE_SOON, 0))

    def test_seven_days_is_due_soon_eight_is_scheduled(self):
        self.assertEqual(classify_due_status(date(2024, 6, 8), "Operational", NOW).kind, DueKind.DUE_SOON)
        st = classify_due_status(date(2024, 6, 9), "Operational", NOW)
        self.assertEqual(st, DueStatus(DueKind.SCHEDULED, 8))

    def test_overdue(self):
        st = classify_due_status(date(2024, 5, 1), InstrumentStatus.OPERATIONAL, NOW)
        self.assertEqual(st.kind, DueKind.OVERDUE)
        self.assertTrue(st.is_overdue)

    def test_needs_maintenance_can_be_overdue(self):
        st = classify_due_status(date(2024, 5, 1), InstrumentStatus.NEEDS_MAINTENANCE, NOW)
        self.assertTrue(st.is_overdue)

    def test_archived_and_out_of_service_never_overdue(self):
        for status in (InstrumentStatus.ARCHIVED, InstrumentStatus.OUT_OF_SERVICE):
            st = classify_due_status(date(2024, 5, 1), status, NOW)
            self.assertFalse(st.is_overdue)
            self.assertEqual(st.kind, DueKind.UNKNOWN)

    def test_archived_future_date_classified_normally(self):
        st = classify_due_status(date(2024, 6, 4), InstrumentStatus.ARCHIVED, NOW)
        self.assertEqual(st, DueStatus(DueKind.DUE_SOON, 3))

    def test_missing_date_is_unknown(self):
        self.assertEqual(classify_due_status(None, InstrumentStatus.OPERATIONAL, NOW).kind, DueKind.UNKNOWN)
        self.assertEqual(classify_due_status("", InstrumentStatus.OPERATIONAL, NOW).kind, DueKind.UNKNOWN)

    def test_unparseable_date_is_unknown(self):
        self.assertEqual(classify_due_status("soon", InstrumentStatus.OPERATIONAL, NOW).kind, DueKind.UNKNOWN)

    def test_accepts_iso_strings(self):
        st = classify_due_status("2024-06-03", "Operational", NOW)
        self.assertEqual(st, DueStatus(DueKind.DUE_SOON, 2))

    def test_str(self):
        self.assertEqual(str(DueStatus(DueKind.DUE_SOON, 2)), "Due Soon (2 days)")
        self.assertEqual(str(DueStatus(DueKind.OVERDUE)), "Overdue")


class TestCompleteMaintenanceEvent(unittest.TestCase):
    def test_recomputes_schedule(self):
        inst = make_instrument(next_date=date(2024, 1, 10))
        ev = make_event(when=date(2024, 1, 15))
        result = complete_maintenance_event(inst, ev, date(2024, 1, 15), 6)
        self.assertEqual(result.instrument.last_maintenance_date, date(2024, 1, 15))
        self.assertEqual(result.instrument.next_maintenance_date, date(2024, 7, 15))
        self.assertTrue(result.event.completed)
        self.assertEqual(result.event.date, date(2024, 1, 15))
        self.assertIsNone(result.event.scheduled_date)

    def test_default_interval_is_six_months(self):
        inst = make_instrument()
        result = complete_maintenance_event(inst, make_event(when=date(2024, 3, 1)), date(2024, 3, 1))
        self.assertEqual(result.instrument.next_maintenance_date, date(2024, 9, 1))

    def test_inputs_not_mutated(self):
        inst = make_instrument(next_date=date(2024, 1, 10))
        ev = make_event(when=date(2024, 1, 10), files=["a.pdf"])
        result = complete_maintenance_event(inst, ev, date(2024, 1, 15), 6)
        self.assertFalse(ev.completed)
        self.assertEqual(ev.date, date(2024, 1, 10))
        self.assertEqual(inst.next_maintenance_date, date(2024, 1, 10))
        self.assertEqual(result.event.files, ["a.pdf"])
        self.assertIsNot(result.event.files, ev.files)

    def test_status_unchanged(self):
        inst = make_instrument(status=InstrumentStatus.NEEDS_MAINTENANCE)
        result = complete_maintenance_event(inst, make_event(when=NOW), NOW, 3)
        self.assertEqual(result.instrument.status, InstrumentStatus.NEEDS_MAINTENANCE)

    def test_completed_late_keeps_scheduled_date(self):
        ev = make_event(when=date(2024, 1, 10))
        result = complete_maintenance_event(make_instrument(), ev, date(2024, 1, 15), 6)
        self.assertEqual(result.event.date, date(2024, 1, 15))
        self.assertEqual(result.event.scheduled_date, date(2024, 1, 10))

    def test_next_after_last_for_positive_intervals(self):
        for months in (1, 2, 3, 6, 12, 24):
            result = complete_maintenance_event(make_instrument(), make_event(when=NOW), NOW, months)
            self.assertGreater(result.instrument.next_maintenance_date, result.instrument.last_maintenance_date)

    def test_non_positive_interval_rejected(self):
        for months in (0, -1):
            with self.assertRaises(InvalidIntervalError):
                complete_maintenance_event(make_instrument(), make_event(when=NOW), NOW, months)

    def test_invalid_interval_is_value_error(self):
        with self.assertRaises(ValueError):
            complete_maintenance_event(make_instrument(), make_event(when=NOW), NOW, 0)

    def test_event_for_other_instrument_rejected(self):
        with self.assertRaises(ValueError):
            complete_maintenance_event(make_instrument(id=1), make_event(instrument_id=2, when=NOW), NOW, 6)


class TestSchedulingHelpers(unittest.TestCase):
    def test_initial_schedule(self):
        last, nxt = initial_schedule(date(2024, 1, 15))
        self.assertEqual(last, date(2024, 1, 15))
        self.assertEqual(nxt, date(2024, 7, 15))

    def test_initial_schedule_rejects_zero(self):
        with self.assertRaises(InvalidIntervalError):
            initial_schedule(date(2024, 1, 15), 0)

    def test_resolve_interval_order(self):
        inst = make_instrument(maintenance_type=MaintenanceType.QUARTERLY)
        self.assertEqual(resolve_interval_months(inst, 2), 2)
        self.assertEqual(resolve_interval_months(inst), 3)
        inst.interval_months = 4
        self.assertEqual(resolve_interval_months(inst), 4)

    def test_resolve_interval_falls_back_to_default(self):
        inst = make_instrument(maintenance_type=MaintenanceType.PM)
        self.assertEqual(resolve_interval_months(inst), 6)
        self.assertEqual(resolve_interval_months(inst, default=9), 9)


class TestFleetSummary(unittest.TestCase):
    def test_counts(self):
        instruments = [
            make_instrument(1, InstrumentStatus.OPERATIONAL, date(2024, 5, 1)),
            make_instrument(2, InstrumentStatus.OPERATIONAL, date(2024, 7, 1)),
            make_instrument(3, InstrumentStatus.NEEDS_MAINTENANCE, date(2024, 5, 20)),
            make_instrument(4, InstrumentStatus.ARCHIVED, date(2024, 1, 1)),
            make_instrument(5, InstrumentStatus.OUT_OF_SERVICE, None),
        ]
        s = summarize_fleet(instruments, NOW)
        self.assertEqual(s.total, 5)
        self.assertEqual(s.operational, 2)
        self.assertEqual(s.needs_maintenance, 1)
        self.assertEqual(s.overdue, 2)

    def test_empty(self):
        s = summarize_fleet([], NOW)
        self.assertEqual((s.total, s.operational, s.needs_maintenance, s.overdue), (0, 0, 0, 0))


class TestUpcomingWithinWindow(unittest.TestCase):
    def test_sorted_and_bounded(self):
        instruments = [
            make_instrument(3, next_date=date(2024, 6, 10)),
            make_instrument(1, next_date=date(2024, 6, 10)),
            make_instrument(2, next_date=date(2024, 6, 2)),
            make_instrument(4, next_date=date(2024, 7, 1)),   # 30 days: included
            make_instrument(5, next_date=date(2024, 7, 2)),   # 31 days: excluded
            make_instrument(6, next_date=date(2024, 5, 31)),  # past: excluded
            make_instrument(7, next_date=None),
        ]
        result = upcoming_within_window(instruments, NOW, 30)
        self.assertEqual([i.id for i in result], [2, 1, 3, 4])

    def test_today_included(self):
        result = upcoming_within_window([make_instrument(1, next_date=NOW)], NOW, 0)
        self.assertEqual(len(result), 1)


class TestEvents(unittest.TestCase):
    def test_classify_event(self):
        self.assertEqual(classify_event(make_event(when=date(2024, 5, 1), completed=True), NOW), EventTiming.COMPLETED)
        self.assertEqual(classify_event(make_event(when=date(2024, 5, 1)), NOW), EventTiming.MISSED)
        self.assertEqual(classify_event(make_event(when=NOW), NOW), EventTiming.PENDING)
        self.assertEqual(classify_event(make_event(when=None), NOW), EventTiming.PENDING)

    def test_partition(self):
        events = [
            make_event(1, when=date(2024, 1, 1), completed=True),
            make_event(2, when=date(2024, 3, 1), completed=True),
            make_event(3, when=date(2024, 7, 1)),
            make_event(4, when=date(2024, 5, 1)),
            make_event(5, when=None),
        ]
        history, open_events = partition_events(events, NOW)
        self.assertEqual([e.id for e in history], [2, 1])
        self.assertEqual([e.id for e in open_events], [4, 3, 5])


class TestDistributions(unittest.TestCase):
    def test_maintenance_type_distribution(self):
        instruments = [
            make_instrument(1, maintenance_type=MaintenanceType.PM),
            make_instrument(2, maintenance_type=MaintenanceType.PM),
            make_instrument(3, maintenance_type=MaintenanceType.CALIBRATION),
            make_instrument(4, maintenance_type="Preventative Maintenance"),
            make_instrument(5, maintenance_type="something odd"),
        ]
        dist = maintenance_type_distribution(instruments)
        self.assertEqual(
            dist,
            {MaintenanceType.PM: 3, MaintenanceType.CALIBRATION: 1, MaintenanceType.OTHER: 1},
        )
        self.assertEqual(list(dist), [MaintenanceType.PM, MaintenanceType.CALIBRATION, MaintenanceType.OTHER])

    def test_status_distribution_has_every_status(self):
        dist = status_distribution([make_instrument(1, InstrumentStatus.ARCHIVED)])
        self.assertEqual(set(dist), set(InstrumentStatus))
        self.assertEqual(dist[InstrumentStatus.ARCHIVED], 1)
        self.assertEqual(dist[InstrumentStatus.OPERATIONAL], 0)


if __name__ == "__main__":
    unittest.main()
