"""Direct habit edits (calendar grid, rename, add/delete, note, reflection).

These bypass the command interpreter and go straight through the session's
mutation controller: local state changes first, persistence follows, and a
failed save rolls the month back and comes back with `persisted=false`.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import get_current_user_id
from .config import settings
from .dependencies import get_session_registry
from .errors import AuraError, AuthenticationRequired, CapReached, NotFound, UpstreamUnavailable, ValidationFailed
from .models import Habit
from .schemas import (
    AddHabitRequest,
    HabitMutationResponse,
    MonthlyRecordResponse,
    RenameHabitRequest,
    TextUpdateRequest,
    ToggleCompletionRequest,
)
from .services.habit_store import AppendHabit, RemoveHabit, RenameHabit, SetNote, SetReflection, StoreMutation, ToggleCompletion
from .services.resolver import next_habit_id
from .services.sessions import HabitSession, HabitSessionRegistry

router = APIRouter(prefix="/habits", tags=["habits"])


def http_error(exc: AuraError) -> HTTPException:
    if isinstance(exc, AuthenticationRequired):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, CapReached):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationFailed):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, UpstreamUnavailable):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


async def _open_session(registry: HabitSessionRegistry, user_id: UUID, month_key: str) -> HabitSession:
    try:
        return await registry.session_for(user_id, month_key)
    except AuraError as exc:
        raise http_error(exc) from exc


async def _apply(session: HabitSession, mutation: StoreMutation, month_key: str) -> HabitMutationResponse:
    try:
        outcome = await session.apply(mutation, month_key=month_key)
    except AuraError as exc:
        raise http_error(exc) from exc

    return HabitMutationResponse(
        record=MonthlyRecordResponse.from_record(outcome.record, cap=settings.habit_cap),
        persisted=outcome.ok,
        detail=None if outcome.ok else "Change could not be saved and was undone.",
    )


@router.get("/months/{month_key}", response_model=MonthlyRecordResponse)
async def get_month_endpoint(
    month_key: str,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> MonthlyRecordResponse:
    """Load `month_key` (YYYY-MM) as the caller's resident month."""
    session = await _open_session(registry, user_id, month_key)
    return MonthlyRecordResponse.from_record(session.record, cap=settings.habit_cap)


@router.post("/months/{month_key}/habits", response_model=HabitMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_habit_endpoint(
    month_key: str,
    payload: AddHabitRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    session = await _open_session(registry, user_id, month_key)
    habit = Habit(id=next_habit_id(session.record), name=payload.name, completions={})
    return await _apply(session, AppendHabit(habit, cap=settings.habit_cap), month_key)


@router.patch("/months/{month_key}/habits/{habit_id}", response_model=HabitMutationResponse)
async def rename_habit_endpoint(
    month_key: str,
    habit_id: int,
    payload: RenameHabitRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    session = await _open_session(registry, user_id, month_key)
    return await _apply(session, RenameHabit(habit_id, payload.name), month_key)


@router.post("/months/{month_key}/habits/{habit_id}/toggle", response_model=HabitMutationResponse)
async def toggle_completion_endpoint(
    month_key: str,
    habit_id: int,
    payload: ToggleCompletionRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    """Flip one calendar day for one habit."""
    session = await _open_session(registry, user_id, month_key)
    return await _apply(session, ToggleCompletion(habit_id, payload.date), month_key)


@router.delete("/months/{month_key}/habits/{habit_id}", response_model=HabitMutationResponse)
async def delete_habit_endpoint(
    month_key: str,
    habit_id: int,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    session = await _open_session(registry, user_id, month_key)
    return await _apply(session, RemoveHabit(habit_id), month_key)


@router.put("/months/{month_key}/note", response_model=HabitMutationResponse)
async def set_note_endpoint(
    month_key: str,
    payload: TextUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    session = await _open_session(registry, user_id, month_key)
    return await _apply(session, SetNote(payload.text), month_key)


@router.put("/months/{month_key}/reflection", response_model=HabitMutationResponse)
async def set_reflection_endpoint(
    month_key: str,
    payload: TextUpdateRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
) -> HabitMutationResponse:
    session = await _open_session(registry, user_id, month_key)
    return await _apply(session, SetReflection(payload.text), month_key)
