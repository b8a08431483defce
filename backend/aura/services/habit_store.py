"""In-memory resident month and the mutations that may change it.

A `HabitStore` holds exactly one `MonthlyRecord`. Every change goes through a
`StoreMutation`, which knows two things:

- how to derive the next record from the current one (`apply_to`, pure)
- how to mirror that change into a `HabitRepository` (`persist`, async)

Only `MutationController` calls `HabitStore.apply`/`restore`; routers and the
command flow never write the record directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from aura.errors import CapReached, NotFound, ValidationFailed
from aura.models import Habit, HabitPatch, MonthlyRecord
from aura.services.habit_dates import date_in_month, parse_date_key

if TYPE_CHECKING:
    from aura.services.persistence import HabitRepository


class HabitStore:
    def __init__(self, record: MonthlyRecord) -> None:
        self._record = record.model_copy(deep=True)

    @property
    def record(self) -> MonthlyRecord:
        """Detached copy of the resident record."""
        return self._record.model_copy(deep=True)

    @property
    def month_key(self) -> str:
        return self._record.month_key

    def snapshot(self) -> MonthlyRecord:
        return self._record.model_copy(deep=True)

    def restore(self, snapshot: MonthlyRecord) -> None:
        self._record = snapshot.model_copy(deep=True)

    def replace(self, record: MonthlyRecord) -> None:
        """Swap in another month (navigation)."""
        self._record = record.model_copy(deep=True)

    def apply(self, mutation: "StoreMutation") -> MonthlyRecord:
        self._record = mutation.apply_to(self._record.model_copy(deep=True))
        return self.record


def _require_habit(record: MonthlyRecord, habit_id: int) -> Habit:
    habit = record.find_habit(habit_id)
    if habit is None:
        raise NotFound(f"Habit {habit_id} not found in {record.month_key}")
    return habit


def _require_day_in_month(record: MonthlyRecord, day: str) -> None:
    parse_date_key(day)
    if not date_in_month(day, record.month_key):
        raise ValidationFailed(f"{day} is outside {record.month_key}")


def _replace_habit(record: MonthlyRecord, updated: Habit) -> MonthlyRecord:
    habits = [updated if habit.id == updated.id else habit for habit in record.habits]
    return record.model_copy(update={"habits": habits})


class StoreMutation:
    """One change to the resident record plus its remote counterpart."""

    name = "mutation"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        raise NotImplementedError

    async def persist(
        self,
        repository: "HabitRepository",
        before: MonthlyRecord,
        after: MonthlyRecord,
    ) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class AppendHabit(StoreMutation):
    habit: Habit
    cap: int | None = None

    name = "append_habit"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        if self.cap is not None and len(record.habits) >= self.cap:
            raise CapReached(f"You can only track {self.cap} habits at a time.")
        if record.find_habit(self.habit.id) is not None:
            raise ValidationFailed(f"Habit id {self.habit.id} already exists")
        habits = [*record.habits, self.habit.model_copy(deep=True)]
        return record.model_copy(update={"habits": habits})

    async def persist(self, repository, before, after) -> None:
        await repository.add_habit(after.month_key, self.habit)


@dataclass(frozen=True)
class RemoveHabit(StoreMutation):
    habit_id: int

    name = "remove_habit"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        _require_habit(record, self.habit_id)
        habits = [habit for habit in record.habits if habit.id != self.habit_id]
        return record.model_copy(update={"habits": habits})

    async def persist(self, repository, before, after) -> None:
        await repository.delete_habit(self.habit_id)


@dataclass(frozen=True)
class RenameHabit(StoreMutation):
    habit_id: int
    new_name: str

    name = "rename_habit"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        habit = _require_habit(record, self.habit_id)
        return _replace_habit(record, HabitPatch(name=self.new_name).apply_to(habit))

    async def persist(self, repository, before, after) -> None:
        await repository.update_habit(self.habit_id, HabitPatch(name=self.new_name))


class _CompletionMutation(StoreMutation):
    habit_id: int
    day: str

    def _next_completions(self, habit: Habit) -> dict[str, bool]:
        raise NotImplementedError

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        _require_day_in_month(record, self.day)
        habit = _require_habit(record, self.habit_id)
        patch = HabitPatch(completions=self._next_completions(habit))
        return _replace_habit(record, patch.apply_to(habit))

    async def persist(self, repository, before, after) -> None:
        habit = _require_habit(after, self.habit_id)
        await repository.update_habit(self.habit_id, HabitPatch(completions=habit.completions))


@dataclass(frozen=True)
class ToggleCompletion(_CompletionMutation):
    habit_id: int
    day: str

    name = "toggle_completion"

    def _next_completions(self, habit: Habit) -> dict[str, bool]:
        completions = dict(habit.completions)
        if self.day in completions:
            del completions[self.day]
        else:
            completions[self.day] = True
        return completions


@dataclass(frozen=True)
class SetCompletion(_CompletionMutation):
    habit_id: int
    day: str

    name = "set_completion"

    def _next_completions(self, habit: Habit) -> dict[str, bool]:
        return {**habit.completions, self.day: True}


def append_note_text(current: str, text: str) -> str:
    if not current:
        return f"- {text}"
    return f"{current}\n- {text}"


@dataclass(frozen=True)
class AppendNote(StoreMutation):
    text: str

    name = "append_note"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        return record.model_copy(update={"note": append_note_text(record.note, self.text)})

    async def persist(self, repository, before, after) -> None:
        await repository.save_note(after.month_key, after.note)


@dataclass(frozen=True)
class SetNote(StoreMutation):
    text: str

    name = "set_note"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        return record.model_copy(update={"note": self.text})

    async def persist(self, repository, before, after) -> None:
        await repository.save_note(after.month_key, after.note)


@dataclass(frozen=True)
class SetReflection(StoreMutation):
    text: str

    name = "set_reflection"

    def apply_to(self, record: MonthlyRecord) -> MonthlyRecord:
        return record.model_copy(update={"reflection": self.text})

    async def persist(self, repository, before, after) -> None:
        await repository.save_reflection(after.month_key, after.reflection)
