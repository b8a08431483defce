"""Structured actions the language service may request, with strict validation.

The function-call payload from the model is untrusted: it is accepted only if
it names one of the four known actions and its arguments match that action's
schema exactly (no extra keys, non-empty strings, zero-padded dates).
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from aura.errors import MalformedResponse, ValidationFailed
from aura.services.habit_dates import parse_date_key

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _StrictArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class AddHabitArgs(_StrictArgs):
    name: str = Field(min_length=1, max_length=120)


class LogHabitCompletionArgs(_StrictArgs):
    name: str = Field(min_length=1, max_length=120)
    date: str | None = Field(default=None, pattern=DATE_PATTERN)

    @field_validator("date", mode="before")
    @classmethod
    def blank_date_means_today(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date")
    @classmethod
    def validate_calendar_date(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            parse_date_key(value)
        except ValidationFailed as exc:
            raise ValueError(str(exc)) from exc
        return value


class AddHabitNoteArgs(_StrictArgs):
    note: str = Field(min_length=1, max_length=2000)


class SetMonthlyReflectionArgs(_StrictArgs):
    reflection: str = Field(min_length=1, max_length=5000)


class AddHabitAction(BaseModel):
    kind: Literal["add_habit"] = "add_habit"
    arguments: AddHabitArgs


class LogHabitCompletionAction(BaseModel):
    kind: Literal["log_habit_completion"] = "log_habit_completion"
    arguments: LogHabitCompletionArgs


class AddHabitNoteAction(BaseModel):
    kind: Literal["add_habit_note"] = "add_habit_note"
    arguments: AddHabitNoteArgs


class SetMonthlyReflectionAction(BaseModel):
    kind: Literal["set_monthly_reflection"] = "set_monthly_reflection"
    arguments: SetMonthlyReflectionArgs


PendingAction = Annotated[
    Union[AddHabitAction, LogHabitCompletionAction, AddHabitNoteAction, SetMonthlyReflectionAction],
    Field(discriminator="kind"),
]

_pending_action_adapter: TypeAdapter[PendingAction] = TypeAdapter(PendingAction)

ACTION_KINDS = ("add_habit", "log_habit_completion", "add_habit_note", "set_monthly_reflection")


def parse_action(name: str, arguments: Any) -> PendingAction:
    """Validate one model function call into a `PendingAction`."""
    if name not in ACTION_KINDS:
        raise MalformedResponse(f"Unknown action: {name or '<empty>'}")
    if not isinstance(arguments, dict):
        raise MalformedResponse(f"Arguments for {name} must be an object")

    try:
        return _pending_action_adapter.validate_python({"kind": name, "arguments": arguments})
    except ValidationError as exc:
        raise MalformedResponse(f"Invalid arguments for {name}: {exc.error_count()} error(s)") from exc


def action_schemas() -> list[dict[str, Any]]:
    """Gemini function declarations for the four habit actions."""
    return [
        {
            "name": "add_habit",
            "description": "Adds a new habit to the habit tracker.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING", "description": "The name of the habit to track."},
                },
                "required": ["name"],
            },
        },
        {
            "name": "log_habit_completion",
            "description": "Logs a habit as completed for a specific date.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING", "description": "The name of the habit."},
                    "date": {
                        "type": "STRING",
                        "description": "The date of completion in YYYY-MM-DD format. Defaults to today if not provided.",
                    },
                },
                "required": ["name"],
            },
        },
        {
            "name": "add_habit_note",
            "description": "Adds a note to the habit tracker section.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "note": {"type": "STRING", "description": "The note content to add."},
                },
                "required": ["note"],
            },
        },
        {
            "name": "set_monthly_reflection",
            "description": "Sets the end-of-month reflection for the habit tracker.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "reflection": {"type": "STRING", "description": "The reflection text."},
                },
                "required": ["reflection"],
            },
        },
    ]
