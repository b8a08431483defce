from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from aura.ai.interpreter import CommandInterpreter, CommandResult
from aura.errors import AuthenticationRequired
from aura.models import Habit
from aura.services.command_service import run_command
from aura.services.habit_store import AppendHabit, SetReflection
from aura.services.persistence import InMemoryPersistence
from aura.services.sessions import HabitSessionRegistry


def _run(coro):
    return asyncio.run(coro)


def test_registry_requires_identity() -> None:
    registry = HabitSessionRegistry(InMemoryPersistence())
    with pytest.raises(AuthenticationRequired):
        _run(registry.session_for(None, "2026-10"))


def test_one_session_per_user_and_month_navigation() -> None:
    registry = HabitSessionRegistry(InMemoryPersistence())
    user_id = uuid4()

    async def scenario():
        october = await registry.session_for(user_id, "2026-10")
        await october.apply(AppendHabit(Habit(id=1, name="Read"), cap=3))
        november = await registry.session_for(user_id, "2026-11")
        assert november is october
        assert november.record.habits == []
        back = await registry.session_for(user_id, "2026-10")
        return back.record

    record = _run(scenario())

    assert len(registry) == 1
    assert [habit.name for habit in record.habits] == ["Read"]


class CannedInterpreter(CommandInterpreter):
    def __init__(self, result: CommandResult):
        super().__init__(None)
        self.result = result

    async def interpret(self, utterance, record, today):
        return self.result


def test_run_command_at_cap_reports_without_mutating() -> None:
    registry = HabitSessionRegistry(InMemoryPersistence())
    user_id = uuid4()

    async def scenario():
        session = await registry.session_for(user_id, "2026-10")
        for habit_id in (1, 2, 3):
            await session.apply(AppendHabit(Habit(id=habit_id, name=f"H{habit_id}"), cap=3))
        interpreter = CannedInterpreter(
            CommandResult(action={"kind": "add_habit", "arguments": {"name": "Run"}})
        )
        return await run_command(session, interpreter, "add run", cap=3)

    outcome = _run(scenario())

    assert outcome.applied is False
    assert outcome.reply == "You can only track 3 habits at a time."
    assert len(outcome.record.habits) == 3


def test_run_command_passes_text_through() -> None:
    registry = HabitSessionRegistry(InMemoryPersistence())

    async def scenario():
        session = await registry.session_for(uuid4(), "2026-10")
        return await run_command(session, CannedInterpreter(CommandResult(text="Hello!")), "hi", cap=3)

    outcome = _run(scenario())

    assert outcome.reply == "Hello!"
    assert outcome.action is None
    assert outcome.persisted is None


class GatedInterpreter(CommandInterpreter):
    """Blocks inside `interpret` until the test releases it."""

    def __init__(self, result: CommandResult):
        super().__init__(None)
        self.result = result
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def interpret(self, utterance, record, today):
        self.started.set()
        await self.release.wait()
        return self.result


def test_command_lands_in_month_it_was_issued_for() -> None:
    persistence = InMemoryPersistence()
    registry = HabitSessionRegistry(persistence)
    user_id = uuid4()

    async def scenario():
        session = await registry.session_for(user_id, "2026-10")
        interpreter = GatedInterpreter(
            CommandResult(action={"kind": "add_habit_note", "arguments": {"note": "october note"}})
        )
        task = asyncio.create_task(
            run_command(session, interpreter, "note october", cap=3, month_key="2026-10")
        )
        await interpreter.started.wait()
        await registry.session_for(user_id, "2026-11")
        interpreter.release.set()
        outcome = await task

        repository = persistence.for_user(user_id)
        return outcome, await repository.get_month("2026-10"), await repository.get_month("2026-11")

    outcome, october, november = _run(scenario())

    assert outcome.persisted is True
    assert outcome.record.month_key == "2026-10"
    assert october.note == "- october note"
    assert november.note == ""


def test_direct_edit_stays_in_named_month_after_navigation() -> None:
    persistence = InMemoryPersistence()
    registry = HabitSessionRegistry(persistence)
    user_id = uuid4()

    async def scenario():
        session = await registry.session_for(user_id, "2026-10")
        await registry.session_for(user_id, "2026-11")
        outcome = await session.apply(SetReflection("Solid month"), month_key="2026-10")
        repository = persistence.for_user(user_id)
        return outcome, await repository.get_month("2026-10"), await repository.get_month("2026-11")

    outcome, october, november = _run(scenario())

    assert outcome.record.month_key == "2026-10"
    assert october.reflection == "Solid month"
    assert november.reflection == ""


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_idle_sessions_are_evicted_and_reload_from_persistence() -> None:
    clock = FakeClock()
    registry = HabitSessionRegistry(InMemoryPersistence(), idle_seconds=60, clock=clock)
    alice, bob = uuid4(), uuid4()

    async def scenario():
        first = await registry.session_for(alice, "2026-10")
        await first.apply(AppendHabit(Habit(id=1, name="Read"), cap=3))
        clock.now = 30
        await registry.session_for(bob, "2026-10")
        assert len(registry) == 2

        clock.now = 120
        await registry.session_for(bob, "2026-10")
        assert len(registry) == 1

        again = await registry.session_for(alice, "2026-10")
        return first, again

    first, again = _run(scenario())

    assert again is not first
    assert [habit.name for habit in again.record.habits] == ["Read"]
    assert len(registry) == 2
