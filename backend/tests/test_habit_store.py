from __future__ import annotations

import pytest
from pydantic import ValidationError

from aura.errors import CapReached, NotFound, ValidationFailed
from aura.models import Habit, HabitPatch, MonthlyRecord
from aura.services.habit_store import (
    AppendHabit,
    AppendNote,
    HabitStore,
    RemoveHabit,
    RenameHabit,
    SetCompletion,
    SetNote,
    SetReflection,
    ToggleCompletion,
)


def _record(**overrides) -> MonthlyRecord:
    data = {
        "month_key": "2026-10",
        "habits": [
            {"id": 1, "name": "Read", "completions": {"2026-10-01": True}},
            {"id": 2, "name": "Walk", "completions": {}},
        ],
        "note": "",
        "reflection": "",
    }
    data.update(overrides)
    return MonthlyRecord.model_validate(data)


def test_habit_drops_false_completions() -> None:
    habit = Habit.model_validate({"id": 7, "name": "Stretch", "completions": {"2026-10-02": False, "2026-10-03": True}})
    assert habit.completions == {"2026-10-03": True}


def test_habit_rejects_malformed_completion_keys() -> None:
    with pytest.raises(ValidationError):
        Habit.model_validate({"id": 7, "completions": {"2026-10-2": True}})


def test_record_rejects_duplicate_ids() -> None:
    with pytest.raises(ValidationError):
        _record(habits=[{"id": 1, "name": "A"}, {"id": 1, "name": "B"}])


def test_find_by_name_is_case_insensitive_exact() -> None:
    record = _record()
    assert record.find_by_name("read").id == 1
    assert record.find_by_name("  WALK ").id == 2
    assert record.find_by_name("Rea") is None


def test_patch_touches_only_named_fields() -> None:
    habit = Habit(id=1, name="Read", completions={"2026-10-01": True})
    renamed = HabitPatch(name="Read more").apply_to(habit)
    assert renamed.completions == {"2026-10-01": True}
    assert renamed.id == 1

    with pytest.raises(ValidationError):
        HabitPatch.model_validate({"id": 99})


@pytest.mark.parametrize("day", ["2026-10-01", "2026-10-15", "2026-10-31"])
def test_toggle_twice_is_identity(day: str) -> None:
    record = _record()
    once = ToggleCompletion(1, day).apply_to(record)
    twice = ToggleCompletion(1, day).apply_to(once)
    assert twice == record
    assert all(value is True for value in once.habits[0].completions.values())


def test_toggle_removes_key_instead_of_storing_false() -> None:
    record = ToggleCompletion(1, "2026-10-01").apply_to(_record())
    assert "2026-10-01" not in record.habits[0].completions


def test_set_completion_is_idempotent() -> None:
    once = SetCompletion(2, "2026-10-05").apply_to(_record())
    twice = SetCompletion(2, "2026-10-05").apply_to(once)
    assert once == twice
    assert twice.habits[1].completions == {"2026-10-05": True}


def test_completion_outside_month_is_rejected() -> None:
    with pytest.raises(ValidationFailed):
        ToggleCompletion(1, "2026-11-01").apply_to(_record())


def test_unknown_habit_raises_not_found() -> None:
    with pytest.raises(NotFound):
        RenameHabit(42, "x").apply_to(_record())
    with pytest.raises(NotFound):
        RemoveHabit(42).apply_to(_record())


def test_append_habit_honours_cap() -> None:
    record = _record()
    added = AppendHabit(Habit(id=3, name=""), cap=3).apply_to(record)
    assert [habit.id for habit in added.habits] == [1, 2, 3]
    assert added.habits[2].name == ""

    with pytest.raises(CapReached):
        AppendHabit(Habit(id=4, name="Too many"), cap=3).apply_to(added)


def test_append_note_formats_bullets() -> None:
    first = AppendNote("Buy milk").apply_to(_record())
    assert first.note == "- Buy milk"
    second = AppendNote("Call mom").apply_to(first)
    assert second.note == "- Buy milk\n- Call mom"


def test_set_note_and_reflection_replace_wholesale() -> None:
    record = _record(note="old", reflection="old")
    assert SetNote("new").apply_to(record).note == "new"
    assert SetReflection("A good month").apply_to(record).reflection == "A good month"


def test_store_hands_out_detached_copies() -> None:
    store = HabitStore(_record())
    view = store.record
    view.habits[0].completions["2026-10-09"] = True
    assert "2026-10-09" not in store.record.habits[0].completions


def test_store_snapshot_and_restore() -> None:
    store = HabitStore(_record())
    snapshot = store.snapshot()
    store.apply(RenameHabit(1, "Read daily"))
    assert store.record.habits[0].name == "Read daily"
    store.restore(snapshot)
    assert store.record == _record()
