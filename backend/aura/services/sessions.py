"""Per-identity resident month: one store and one mutation controller per user."""

from __future__ import annotations

import time
from collections.abc import Callable
from uuid import UUID

from loguru import logger

from aura.errors import AuthenticationRequired
from aura.models import MonthlyRecord
from aura.services.habit_dates import normalize_month_key
from aura.services.habit_store import HabitStore, StoreMutation
from aura.services.mutations import MutationController, MutationOutcome
from aura.services.persistence import HabitPersistence, HabitRepository


class HabitSession:
    def __init__(self, repository: HabitRepository, record: MonthlyRecord, *, serialize: bool = True) -> None:
        self.repository = repository
        self.store = HabitStore(record)
        self.controller = MutationController(self.store, repository, serialize=serialize)

    @property
    def record(self) -> MonthlyRecord:
        return self.store.record

    async def open_month(self, month_key: str) -> MonthlyRecord:
        """Return the resident record for `month_key`, fetching it on navigation."""
        month_key = normalize_month_key(month_key)
        if self.store.month_key == month_key:
            return self.store.record

        record = await self.repository.get_month(month_key)
        logger.debug("Loaded {} with {} habit(s)", month_key, len(record.habits))
        return await self.controller.switch_month(record)

    async def apply(self, mutation: StoreMutation, *, month_key: str | None = None) -> MutationOutcome:
        if month_key is not None:
            month_key = normalize_month_key(month_key)
        return await self.controller.apply(mutation, month_key=month_key)


class HabitSessionRegistry:
    """
    One `HabitSession` per signed-in user.

    Sessions untouched for `idle_seconds` are dropped on the next lookup; their
    confirmed state is already persisted, so a returning user just reloads.
    The map is therefore bounded by the users active within that window.
    """

    def __init__(
        self,
        persistence: HabitPersistence,
        *,
        serialize: bool = True,
        idle_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.persistence = persistence
        self.serialize = serialize
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[UUID, HabitSession] = {}
        self._last_used: dict[UUID, float] = {}

    async def session_for(self, user_id: UUID | None, month_key: str) -> HabitSession:
        if user_id is None:
            raise AuthenticationRequired("Sign in to access your habits")

        self._evict_idle(exclude=user_id)
        self._last_used[user_id] = self._clock()

        session = self._sessions.get(user_id)
        if session is None:
            repository = self.persistence.for_user(user_id)
            record = await repository.get_month(normalize_month_key(month_key))
            # Another request may have created the session while we awaited.
            session = self._sessions.setdefault(
                user_id,
                HabitSession(repository, record, serialize=self.serialize),
            )

        await session.open_month(month_key)
        return session

    def _evict_idle(self, *, exclude: UUID) -> None:
        cutoff = self._clock() - self.idle_seconds
        idle = [
            user_id
            for user_id, last_used in self._last_used.items()
            if last_used < cutoff and user_id != exclude
        ]
        for user_id in idle:
            self._sessions.pop(user_id, None)
            del self._last_used[user_id]
        if idle:
            logger.debug("Evicted {} idle habit session(s)", len(idle))

    def __len__(self) -> int:
        return len(self._sessions)
