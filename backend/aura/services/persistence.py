"""Persistence adapters for monthly habit records.

Every repository is bound to one identity. Calls made without an identity
fail with `AuthenticationRequired` before touching storage.

Two backends are provided:
- `PostgresPersistence`: remote store through the shared psycopg pool
- `InMemoryPersistence`: local process-memory store (dev and tests)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

import psycopg
from psycopg.types.json import Jsonb

from aura.errors import AuthenticationRequired, NotFound, UpstreamUnavailable, ValidationFailed
from aura.models import Habit, HabitPatch, MonthlyRecord

if TYPE_CHECKING:
    from aura.database import Database


class HabitRepository(Protocol):
    async def get_month(self, month_key: str) -> MonthlyRecord: ...

    async def add_habit(self, month_key: str, habit: Habit) -> Habit: ...

    async def update_habit(self, habit_id: int, patch: HabitPatch) -> Habit: ...

    async def delete_habit(self, habit_id: int) -> None: ...

    async def save_note(self, month_key: str, text: str) -> None: ...

    async def save_reflection(self, month_key: str, text: str) -> None: ...


class HabitPersistence(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    def for_user(self, user_id: UUID | None) -> HabitRepository: ...


def _require_identity(user_id: UUID | None) -> UUID:
    if user_id is None:
        raise AuthenticationRequired("Sign in to access your habits")
    return user_id


class InMemoryHabitRepository:
    def __init__(self, backend: "InMemoryPersistence", user_id: UUID | None) -> None:
        self.backend = backend
        self.user_id = user_id

    def _month(self, month_key: str) -> dict[str, Any]:
        user_id = _require_identity(self.user_id)
        key = (user_id, month_key)
        if key not in self.backend.months:
            self.backend.months[key] = {"habit_ids": [], "note": "", "reflection": ""}
        return self.backend.months[key]

    def _owned_habit(self, habit_id: int) -> dict[str, Any]:
        user_id = _require_identity(self.user_id)
        row = self.backend.habits.get((user_id, habit_id))
        if row is None:
            raise NotFound(f"Habit {habit_id} not found")
        return row

    async def get_month(self, month_key: str) -> MonthlyRecord:
        month = self._month(month_key)
        habits = [
            Habit.model_validate(self.backend.habits[(self.user_id, habit_id)]["habit"])
            for habit_id in month["habit_ids"]
        ]
        return MonthlyRecord(
            month_key=month_key,
            habits=habits,
            note=month["note"],
            reflection=month["reflection"],
        )

    async def add_habit(self, month_key: str, habit: Habit) -> Habit:
        month = self._month(month_key)
        key = (self.user_id, habit.id)
        if key in self.backend.habits:
            raise ValidationFailed(f"Habit id {habit.id} already exists")
        self.backend.habits[key] = {
            "month_key": month_key,
            "habit": habit.model_dump(),
        }
        month["habit_ids"].append(habit.id)
        return habit.model_copy(deep=True)

    async def update_habit(self, habit_id: int, patch: HabitPatch) -> Habit:
        row = self._owned_habit(habit_id)
        updated = patch.apply_to(Habit.model_validate(row["habit"]))
        row["habit"] = updated.model_dump()
        return updated

    async def delete_habit(self, habit_id: int) -> None:
        row = self._owned_habit(habit_id)
        month = self._month(row["month_key"])
        month["habit_ids"].remove(habit_id)
        del self.backend.habits[(self.user_id, habit_id)]

    async def save_note(self, month_key: str, text: str) -> None:
        self._month(month_key)["note"] = text

    async def save_reflection(self, month_key: str, text: str) -> None:
        self._month(month_key)["reflection"] = text


class InMemoryPersistence:
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self.months: dict[tuple[UUID, str], dict[str, Any]] = {}
        # Rows are keyed by owner too; ids are only unique per user.
        self.habits: dict[tuple[UUID, int], dict[str, Any]] = {}

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def for_user(self, user_id: UUID | None) -> InMemoryHabitRepository:
        return InMemoryHabitRepository(self, user_id)


def _habit_from_row(row: dict[str, Any]) -> Habit:
    return Habit(id=row["id"], name=row["name"] or "", completions=row["completions"] or {})


class PostgresHabitRepository:
    def __init__(self, database: "Database", user_id: UUID | None) -> None:
        self.database = database
        self.user_id = user_id

    async def _fetch(self, query: str, params: tuple, *, many: bool = False) -> Any:
        try:
            async with self.database.connection() as connection:
                async with connection.cursor() as cursor:
                    await cursor.execute(query, params)
                    if cursor.description is None:
                        return None
                    if many:
                        return await cursor.fetchall()
                    return await cursor.fetchone()
        except psycopg.OperationalError as exc:
            raise UpstreamUnavailable("Habit store is unreachable") from exc

    async def get_month(self, month_key: str) -> MonthlyRecord:
        user_id = _require_identity(self.user_id)

        rows = await self._fetch(
            """
            SELECT id, name, completions
            FROM habits
            WHERE user_id = %s AND month_key = %s
            ORDER BY position, id
            """,
            (user_id, month_key),
            many=True,
        )
        month_row = await self._fetch(
            """
            SELECT note, reflection
            FROM habit_months
            WHERE user_id = %s AND month_key = %s
            """,
            (user_id, month_key),
        )

        return MonthlyRecord(
            month_key=month_key,
            habits=[_habit_from_row(row) for row in rows or []],
            note=(month_row or {}).get("note") or "",
            reflection=(month_row or {}).get("reflection") or "",
        )

    async def add_habit(self, month_key: str, habit: Habit) -> Habit:
        user_id = _require_identity(self.user_id)

        row = await self._fetch(
            """
            INSERT INTO habits (id, user_id, month_key, name, completions, position)
            VALUES (
                %s, %s, %s, %s, %s,
                COALESCE(
                    (SELECT MAX(position) + 1 FROM habits WHERE user_id = %s AND month_key = %s),
                    0
                )
            )
            RETURNING id, name, completions
            """,
            (habit.id, user_id, month_key, habit.name, Jsonb(habit.completions), user_id, month_key),
        )
        return _habit_from_row(row)

    async def update_habit(self, habit_id: int, patch: HabitPatch) -> Habit:
        user_id = _require_identity(self.user_id)
        changes = patch.changes()
        if not changes:
            raise ValueError("At least one field must be provided")

        updates = []
        params: list[Any] = []

        # Only columns named by HabitPatch are ever written.
        if "name" in changes:
            updates.append("name = %s")
            params.append(changes["name"])
        if "completions" in changes:
            updates.append("completions = %s")
            params.append(Jsonb(changes["completions"]))

        params.extend([habit_id, user_id])

        row = await self._fetch(
            f"""
            UPDATE habits
            SET {', '.join(updates)}
            WHERE id = %s AND user_id = %s
            RETURNING id, name, completions
            """,
            tuple(params),
        )
        if row is None:
            raise NotFound(f"Habit {habit_id} not found")
        return _habit_from_row(row)

    async def delete_habit(self, habit_id: int) -> None:
        user_id = _require_identity(self.user_id)

        row = await self._fetch(
            """
            DELETE FROM habits
            WHERE id = %s AND user_id = %s
            RETURNING id
            """,
            (habit_id, user_id),
        )
        if row is None:
            raise NotFound(f"Habit {habit_id} not found")

    async def save_note(self, month_key: str, text: str) -> None:
        user_id = _require_identity(self.user_id)

        await self._fetch(
            """
            INSERT INTO habit_months (user_id, month_key, note)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, month_key) DO UPDATE SET note = EXCLUDED.note
            """,
            (user_id, month_key, text),
        )

    async def save_reflection(self, month_key: str, text: str) -> None:
        user_id = _require_identity(self.user_id)

        await self._fetch(
            """
            INSERT INTO habit_months (user_id, month_key, reflection)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, month_key) DO UPDATE SET reflection = EXCLUDED.reflection
            """,
            (user_id, month_key, text),
        )


class PostgresPersistence:
    def __init__(self, database: "Database") -> None:
        self.database = database

    async def open(self) -> None:
        await self.database.open()

    async def close(self) -> None:
        await self.database.close()

    def for_user(self, user_id: UUID | None) -> PostgresHabitRepository:
        return PostgresHabitRepository(self.database, user_id)


def build_persistence(database_url: str) -> HabitPersistence:
    if not database_url:
        return InMemoryPersistence()

    from aura.database import Database

    return PostgresPersistence(Database(database_url))
