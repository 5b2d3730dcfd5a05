# test_advisor_service.py
"""
Tests for the failure-prediction advisor with a fake OpenAI client.
Run with: python -m pytest test_advisor_service.py -v
"""

import json
import sqlite3
import unittest
from datetime import date
from types import SimpleNamespace
from unittest import mock

import openai

from domain.models import EventType, Instrument, InstrumentStatus, MaintenanceEvent
from services.advisor_service import (
    HISTORY_UNAVAILABLE_NOTE,
    AdvisorError,
    Prediction,
    advise_for_instrument,
    format_event_line,
    format_maintenance_history,
    predict_instrument_failure,
)


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


GOOD_REPLY = json.dumps({
    "failureLikelihood": "Moderate (30-50%) within 6 months",
    "recommendedActions": "Replace pump seals\nCheck lamp hours",
})


def make_event(**kw):
    defaults = dict(
        id=1,
        instrument_id=7,
        date=date(2024, 3, 1),
        type=EventType.SCHEDULED,
        description="Replace lamp",
        notes=None,
        completed=True,
    )
    defaults.update(kw)
    return MaintenanceEvent(**defaults)


class TestFormatting(unittest.TestCase):
    def test_event_line(self):
        self.assertEqual(
            format_event_line(make_event()),
            "2024-03-01 - Scheduled: Replace lamp (Completed). Notes: N/A",
        )

    def test_event_line_pending_with_notes(self):
        line = format_event_line(make_event(completed=False, notes="Order parts", type=EventType.EMERGENCY))
        self.assertEqual(line, "2024-03-01 - Emergency: Replace lamp (Pending). Notes: Order parts")

    def test_history_joined_in_order(self):
        text = format_maintenance_history([make_event(id=1), make_event(id=2, description="Seals")])
        lines = text.split("\n")
        self.assertEqual(len(lines), 2)
        self.assertIn("Seals", lines[1])

    def test_empty_history(self):
        self.assertEqual(format_maintenance_history([]), "")


class TestPredictInstrumentFailure(unittest.TestCase):
    def test_returns_reply_verbatim(self):
        client, completions = fake_client(GOOD_REPLY)
        result = predict_instrument_failure("HPLC", "history", "8 hours a day", client=client, model="test-model")
        self.assertEqual(
            result,
            Prediction(
                failure_likelihood="Moderate (30-50%) within 6 months",
                recommended_actions="Replace pump seals\nCheck lamp hours",
            ),
        )
        call = completions.calls[0]
        self.assertEqual(call["model"], "test-model")
        self.assertEqual(call["response_format"], {"type": "json_object"})
        user_msg = call["messages"][1]["content"]
        self.assertIn("HPLC", user_msg)
        self.assertIn("history", user_msg)
        self.assertIn("8 hours a day", user_msg)

    def test_client_error_wrapped(self):
        client, _ = fake_client(error=openai.OpenAIError("connection reset"))
        with self.assertRaises(AdvisorError) as ctx:
            predict_instrument_failure("HPLC", "", "daily use in QC", client=client, model="m")
        self.assertEqual(str(ctx.exception), "Failed to get prediction from AI. Please try again.")
        self.assertIsInstance(ctx.exception.__cause__, openai.OpenAIError)

    def test_non_json_reply(self):
        client, _ = fake_client("I think it will fail soon")
        with self.assertRaises(AdvisorError):
            predict_instrument_failure("HPLC", "", "daily use in QC", client=client, model="m")

    def test_missing_keys(self):
        client, _ = fake_client(json.dumps({"failureLikelihood": "Low"}))
        with self.assertRaises(AdvisorError):
            predict_instrument_failure("HPLC", "", "daily use in QC", client=client, model="m")


class FakeRepo:
    def __init__(self, instrument=None, events=None, history_error=None):
        self.instrument = instrument
        self.events = events or []
        self.history_error = history_error

    def get_instrument(self, instrument_id):
        return self.instrument

    def list_events_for_instrument(self, instrument_id):
        if self.history_error is not None:
            raise self.history_error
        return self.events


INSTRUMENT = Instrument(
    id=7,
    name="HPLC",
    model="1260",
    serial_number="DE-1",
    location="Lab A",
    status=InstrumentStatus.OPERATIONAL,
    installation_date=date(2023, 1, 1),
    last_maintenance_date=date(2024, 3, 1),
    next_maintenance_date=date(2024, 9, 1),
)


class TestAdviseForInstrument(unittest.TestCase):
    def test_short_usage_rejected_before_call(self):
        client, completions = fake_client(GOOD_REPLY)
        with self.assertRaises(ValueError):
            advise_for_instrument(FakeRepo(INSTRUMENT), 7, "  daily  ", client=client)
        self.assertEqual(completions.calls, [])

    def test_unknown_instrument(self):
        client, _ = fake_client(GOOD_REPLY)
        with self.assertRaises(LookupError):
            advise_for_instrument(FakeRepo(None), 7, "Runs all day in QC", client=client)

    def test_history_sent_to_model(self):
        client, completions = fake_client(GOOD_REPLY)
        repo = FakeRepo(INSTRUMENT, events=[make_event()])
        with mock.patch("services.advisor_service.load_advisor_model", return_value="m"):
            result = advise_for_instrument(repo, 7, "Runs all day in QC", client=client)
        self.assertEqual(result.failure_likelihood, "Moderate (30-50%) within 6 months")
        self.assertIn("Replace lamp (Completed)", completions.calls[0]["messages"][1]["content"])
        self.assertEqual(result.history_note, "")

    def test_history_failure_proceeds_without_history(self):
        client, completions = fake_client(GOOD_REPLY)
        repo = FakeRepo(INSTRUMENT, history_error=sqlite3.OperationalError("disk I/O error"))
        with mock.patch("services.advisor_service.load_advisor_model", return_value="m"):
            with self.assertLogs("services.advisor_service", level="WARNING"):
                result = advise_for_instrument(repo, 7, "Runs all day in QC", client=client)
        self.assertEqual(result.history_note, HISTORY_UNAVAILABLE_NOTE)
        self.assertEqual(result.recommended_actions, json.loads(GOOD_REPLY)["recommendedActions"])
        self.assertIn("No maintenance history recorded.", completions.calls[0]["messages"][1]["content"])


if __name__ == "__main__":
    unittest.main()
