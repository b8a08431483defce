"""Turn a validated `PendingAction` into a message and at most one store mutation.

Resolution is pure: it reads the record snapshot it is given, never performs
I/O, and never raises for expected outcomes (missing habit, cap reached,
unknown action). Those come back as a message with no mutation.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from aura.models import Habit, MonthlyRecord
from aura.services.habit_dates import date_in_month, date_key
from aura.services.habit_store import AppendHabit, AppendNote, SetCompletion, SetReflection, StoreMutation

ResolutionOutcome = Literal["applied", "not_found", "validation_failed", "unsupported"]

UNSUPPORTED_MESSAGE = "Sorry, I don't know how to do that."


@dataclass
class Resolution:
    message: str
    mutation: StoreMutation | None = None
    outcome: ResolutionOutcome = "applied"


def next_habit_id(record: MonthlyRecord, *, now_ms: int | None = None) -> int:
    """Creation-time millisecond id, bumped past every id already in the month."""
    candidate = now_ms if now_ms is not None else int(time.time() * 1000)
    highest = max((habit.id for habit in record.habits), default=0)
    return max(candidate, highest + 1)


def cap_message(cap: int) -> str:
    return f"You can only track {cap} habits at a time."


def _resolve_add_habit(args: Any, record: MonthlyRecord, cap: int, new_id: Callable[[MonthlyRecord], int]) -> Resolution:
    if len(record.habits) >= cap:
        return Resolution(cap_message(cap), outcome="validation_failed")

    habit = Habit(id=new_id(record), name=args.name, completions={})
    return Resolution(f'New habit added: "{args.name}"', AppendHabit(habit, cap=cap))


def _resolve_log_completion(args: Any, record: MonthlyRecord, today: date) -> Resolution:
    day = args.date or date_key(today)

    habit = record.find_by_name(args.name)
    if habit is None:
        return Resolution(f'Couldn\'t find the habit "{args.name}"', outcome="not_found")

    if not date_in_month(day, record.month_key):
        return Resolution(
            f"{day} is not in {record.month_key}. Open that month to log it.",
            outcome="validation_failed",
        )

    return Resolution(f'Logged "{args.name}" for {day}', SetCompletion(habit.id, day))


def resolve(
    action: Any,
    record: MonthlyRecord,
    *,
    today: date,
    cap: int,
    new_id: Callable[[MonthlyRecord], int] | None = None,
) -> Resolution:
    kind = getattr(action, "kind", None)
    args = getattr(action, "arguments", None)

    if kind == "add_habit":
        return _resolve_add_habit(args, record, cap, new_id or next_habit_id)

    if kind == "log_habit_completion":
        return _resolve_log_completion(args, record, today)

    if kind == "add_habit_note":
        return Resolution("Note added to habits section.", AppendNote(args.note))

    if kind == "set_monthly_reflection":
        return Resolution("Monthly reflection has been set.", SetReflection(args.reflection))

    return Resolution(UNSUPPORTED_MESSAGE, outcome="unsupported")
