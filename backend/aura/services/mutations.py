"""Optimistic apply / persist / roll back for the resident month."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass

from loguru import logger

from aura.errors import AuthenticationRequired
from aura.models import MonthlyRecord
from aura.services.habit_store import HabitStore, StoreMutation
from aura.services.persistence import HabitRepository

PersistOp = Callable[[], Awaitable[object]]


@dataclass
class MutationOutcome:
    ok: bool
    record: MonthlyRecord
    error: Exception | None = None


class MutationController:
    """
    Sole writer of a `HabitStore`.

    `apply` runs: snapshot -> local apply (no await in between) -> persist ->
    restore that operation's snapshot on failure. Failures are logged and
    reported in the outcome; nothing is retried.

    With `serialize=True` one mutation at a time owns the record, in issue
    order (asyncio.Lock wakes waiters FIFO). With `serialize=False` local
    applies happen immediately and persistence calls overlap; a rollback then
    restores the full-record snapshot of its own operation and can undo a
    newer overlapping edit.
    """

    def __init__(self, store: HabitStore, repository: HabitRepository, *, serialize: bool = True) -> None:
        self.store = store
        self.repository = repository
        self.serialize = serialize
        self._lock = asyncio.Lock()

    async def apply(
        self,
        mutation: StoreMutation,
        persist_op: PersistOp | None = None,
        *,
        month_key: str | None = None,
    ) -> MutationOutcome:
        """
        Apply `mutation` to `month_key` (default: whatever month is resident).

        If another month became resident since the caller looked, the target
        month is loaded back first so the change never lands in the wrong month.
        """
        async with AsyncExitStack() as stack:
            if self.serialize:
                await stack.enter_async_context(self._lock)
            if month_key is not None and self.store.month_key != month_key:
                await self._reopen(month_key)
            return await self._apply(mutation, persist_op)

    async def _reopen(self, month_key: str) -> None:
        record = await self.repository.get_month(month_key)
        logger.debug("Reopened {} for a pending mutation (was {})", month_key, self.store.month_key)
        self.store.replace(record)

    async def _apply(self, mutation: StoreMutation, persist_op: PersistOp | None) -> MutationOutcome:
        snapshot = self.store.snapshot()
        # Domain errors (NotFound, ValidationFailed) surface here, before any state change.
        applied = self.store.apply(mutation)

        if persist_op is None:
            async def persist_mutation() -> None:
                await mutation.persist(self.repository, snapshot, applied)

            persist_op = persist_mutation

        try:
            await persist_op()
        except AuthenticationRequired:
            self._rollback(snapshot)
            raise
        except Exception as exc:
            self._rollback(snapshot)
            logger.warning(
                "Rolled back {} on {}: {}: {}",
                mutation.name,
                snapshot.month_key,
                type(exc).__name__,
                exc,
            )
            return MutationOutcome(ok=False, record=self.store.record, error=exc)

        logger.debug("Persisted {} on {}", mutation.name, applied.month_key)
        return MutationOutcome(ok=True, record=self.store.record)

    def _rollback(self, snapshot: MonthlyRecord) -> None:
        # The user may have navigated away while persistence was in flight.
        if self.store.month_key != snapshot.month_key:
            logger.info("Skipped rollback for {}: month no longer resident", snapshot.month_key)
            return
        self.store.restore(snapshot)

    async def switch_month(self, record: MonthlyRecord) -> MonthlyRecord:
        """Make another month resident, after any in-flight serialized mutation."""
        async with AsyncExitStack() as stack:
            if self.serialize:
                await stack.enter_async_context(self._lock)
            self.store.replace(record)
            return self.store.record
