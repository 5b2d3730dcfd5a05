# services/advisor_service.py - Predictive maintenance advisor (LLM-backed)
"""
Ask a language model how likely an instrument is to fail, given its
maintenance history and a free-text description of how it is used.

The model's answer is returned verbatim; nothing here interprets it.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable

import openai

from config import load_advisor_model
from domain.models import MaintenanceEvent

if TYPE_CHECKING:
    from database import MaintenanceRepository

logger = logging.getLogger(__name__)

HISTORY_UNAVAILABLE_NOTE = "Could not fetch maintenance history for analysis."
MIN_USAGE_PATTERNS_LENGTH = 10

SYSTEM_PROMPT = """You are a laboratory equipment reliability engineer.

Given an instrument name, its maintenance history and a description of how it is used,
estimate how likely the instrument is to fail in the coming months and recommend actions.

Return a JSON object with exactly these keys:
{
  "failureLikelihood": "Short assessment, e.g. 'Moderate (30-50%) within 6 months' with one sentence of reasoning",
  "recommendedActions": "Concrete maintenance actions, one per line"
}"""


class AdvisorError(Exception):
    """Raised when the prediction service cannot produce an answer."""


@dataclass(frozen=True)
class Prediction:
    failure_likelihood: str
    recommended_actions: str
    history_note: str = ""


def format_event_line(event: MaintenanceEvent) -> str:
    state = "Completed" if event.completed else "Pending"
    when = event.date.isoformat() if event.date else "Undated"
    return f"{when} - {event.type.value}: {event.description} ({state}). Notes: {event.notes or 'N/A'}"


def format_maintenance_history(events: Iterable[MaintenanceEvent]) -> str:
    """One line per event, newline-joined, in the order given."""
    return "\n".join(format_event_line(ev) for ev in events)


def _build_user_prompt(instrument_name: str, maintenance_history: str, usage_patterns: str) -> str:
    return (
        f"INSTRUMENT: {instrument_name}\n\n"
        f"MAINTENANCE HISTORY:\n{maintenance_history or 'No maintenance history recorded.'}\n\n"
        f"USAGE PATTERNS:\n{usage_patterns}\n"
    )


def predict_instrument_failure(
    instrument_name: str,
    maintenance_history: str,
    usage_patterns: str,
    client=None,
    model: str | None = None,
) -> Prediction:
    """
    Call the model and return its prediction.
    client defaults to openai.OpenAI() (reads OPENAI_API_KEY); pass a client to reuse or fake it.
    Raises AdvisorError when the call fails or the reply is not the expected JSON object.
    """
    model = model or load_advisor_model()
    try:
        client = client or openai.OpenAI()
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": _build_user_prompt(instrument_name, maintenance_history, usage_patterns),
                },
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
        )
    except openai.OpenAIError as e:
        logger.error("Advisor request for %s failed: %s", instrument_name, e)
        raise AdvisorError("Failed to get prediction from AI. Please try again.") from e

    content = response.choices[0].message.content or ""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("Advisor returned non-JSON content for %s: %r", instrument_name, content[:200])
        raise AdvisorError("The AI returned an unreadable answer. Please try again.") from e
    if not isinstance(data, dict) or "failureLikelihood" not in data or "recommendedActions" not in data:
        logger.error("Advisor reply for %s is missing keys: %r", instrument_name, data)
        raise AdvisorError("The AI returned an incomplete answer. Please try again.")

    return Prediction(
        failure_likelihood=str(data["failureLikelihood"]),
        recommended_actions=str(data["recommendedActions"]),
    )


def advise_for_instrument(
    repo: "MaintenanceRepository",
    instrument_id: int,
    usage_patterns: str,
    client=None,
) -> Prediction:
    """
    Validate input, load the instrument's history and ask the model.
    A failed history load is logged and the prediction proceeds without history;
    the result then carries HISTORY_UNAVAILABLE_NOTE for display.
    """
    usage = (usage_patterns or "").strip()
    if len(usage) < MIN_USAGE_PATTERNS_LENGTH:
        raise ValueError(
            f"Please describe usage patterns in at least {MIN_USAGE_PATTERNS_LENGTH} characters."
        )
    instrument = repo.get_instrument(instrument_id)
    if instrument is None:
        raise LookupError("Selected instrument not found.")

    note = ""
    try:
        history = format_maintenance_history(repo.list_events_for_instrument(instrument_id))
    except sqlite3.Error as e:
        logger.warning("Could not load maintenance history for instrument %s: %s", instrument_id, e)
        history = ""
        note = HISTORY_UNAVAILABLE_NOTE

    logger.info("Requesting failure prediction for instrument %s", instrument_id)
    prediction = predict_instrument_failure(instrument.name, history, usage, client=client)
    return replace(prediction, history_note=note) if note else prediction
