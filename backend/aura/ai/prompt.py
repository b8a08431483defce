"""Prompt text for the habit command assistant."""

from __future__ import annotations

import json
from datetime import date

from aura.models import MonthlyRecord
from aura.services.habit_dates import date_key

SYSTEM_PROMPT = """
You are Aura, an assistant inside a personal monthly habit tracker.

Rules:
- Call at most one function per reply.
- Match habit names against the existing habits in the current state; use the existing spelling.
- Resolve relative dates ("today", "yesterday", "last Monday") against today's date and send them as YYYY-MM-DD.
- If the request is not one of the available actions, answer briefly in plain text.
- Never invent habits that are not in the current state when logging a completion.
""".strip()


def build_command_prompt(utterance: str, record: MonthlyRecord, today: date) -> str:
    """Embed the user's request and the full month state for disambiguation."""
    habits = [habit.model_dump() for habit in record.habits]
    return (
        f'User query: "{utterance}"\n\n'
        "Current state:\n"
        f"- Today's Date: {date_key(today)}\n"
        f"- Month: {record.month_key}\n"
        f"- Habits: {json.dumps(habits, separators=(',', ':'))}\n"
        f"- Habit Notes: {record.note}\n"
        f"- Monthly Reflection: {record.reflection}\n\n"
        "Based on the user's query and the current state, decide if a function should be called. "
        "If so, call the appropriate function with the correct arguments. "
        "Otherwise, provide a helpful text response."
    )
