"""Habit-domain value types shared by the store, resolver and routers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from aura.errors import ValidationFailed
from aura.services.habit_dates import normalize_month_key, parse_date_key


def _clean_completions(value: dict[str, Any] | None) -> dict[str, bool]:
    # Absence means "not completed"; false entries from older rows are dropped.
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValueError("completions must be an object of YYYY-MM-DD keys")
    cleaned: dict[str, bool] = {}
    for key, done in value.items():
        try:
            parse_date_key(str(key))
        except ValidationFailed as exc:
            raise ValueError(str(exc)) from exc
        if done is True:
            cleaned[str(key)] = True
    return cleaned


class Habit(BaseModel):
    id: int
    name: str = ""
    completions: dict[str, bool] = Field(default_factory=dict)

    @field_validator("completions", mode="before")
    @classmethod
    def validate_completions(cls, value: dict[str, Any] | None) -> dict[str, bool]:
        return _clean_completions(value)


class MonthlyRecord(BaseModel):
    """Habits, free-text note and reflection for one YYYY-MM month."""

    month_key: str
    habits: list[Habit] = Field(default_factory=list)
    note: str = ""
    reflection: str = ""

    @field_validator("month_key")
    @classmethod
    def validate_month_key(cls, value: str) -> str:
        try:
            return normalize_month_key(value)
        except ValidationFailed as exc:
            raise ValueError(str(exc)) from exc

    @model_validator(mode="after")
    def ensure_unique_ids(self) -> "MonthlyRecord":
        ids = [habit.id for habit in self.habits]
        if len(ids) != len(set(ids)):
            raise ValueError("habit ids must be unique within a month")
        return self

    def find_habit(self, habit_id: int) -> Habit | None:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def find_by_name(self, name: str) -> Habit | None:
        """Case-insensitive exact name match; first match wins."""
        wanted = name.strip().lower()
        for habit in self.habits:
            if habit.name.strip().lower() == wanted:
                return habit
        return None


class HabitPatch(BaseModel):
    """The only Habit fields a partial update may touch."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    completions: dict[str, bool] | None = None

    @field_validator("completions", mode="before")
    @classmethod
    def validate_completions(cls, value: dict[str, Any] | None) -> dict[str, bool] | None:
        if value is None:
            return None
        return _clean_completions(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def apply_to(self, habit: Habit) -> Habit:
        return habit.model_copy(update=self.changes(), deep=True)
