from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .models import Habit, MonthlyRecord
from .services.habit_dates import shift_month_key


class MonthlyRecordResponse(BaseModel):
    month_key: str
    habits: list[Habit]
    note: str
    reflection: str
    cap: int
    previous_month: str
    next_month: str

    @classmethod
    def from_record(cls, record: MonthlyRecord, *, cap: int) -> "MonthlyRecordResponse":
        return cls(
            month_key=record.month_key,
            habits=record.habits,
            note=record.note,
            reflection=record.reflection,
            cap=cap,
            previous_month=shift_month_key(record.month_key, -1),
            next_month=shift_month_key(record.month_key, 1),
        )


class HabitMutationResponse(BaseModel):
    record: MonthlyRecordResponse
    persisted: bool
    detail: str | None = None


class AddHabitRequest(BaseModel):
    name: str = Field(default="", max_length=120)


class RenameHabitRequest(BaseModel):
    name: str = Field(max_length=120)


class ToggleCompletionRequest(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")


class TextUpdateRequest(BaseModel):
    text: str = Field(max_length=5000)


class CommandRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    month_key: str | None = None


class CommandActionItem(BaseModel):
    kind: str
    arguments: dict[str, Any]


class CommandResponse(BaseModel):
    reply: str
    action: CommandActionItem | None = None
    applied: bool = False
    persisted: bool | None = None
    record: MonthlyRecordResponse
