"""Natural-language habit commands (`POST /habits/command`)."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from .ai.interpreter import CommandInterpreter
from .auth import get_current_user_id
from .config import settings
from .dependencies import get_interpreter, get_session_registry
from .errors import AuraError
from .habits import http_error
from .schemas import CommandActionItem, CommandRequest, CommandResponse, MonthlyRecordResponse
from .services.command_service import run_command
from .services.habit_dates import month_key as month_key_for
from .services.sessions import HabitSessionRegistry

router = APIRouter(prefix="/habits", tags=["habits-command"])


def _today() -> date:
    """Wrapper for deterministic tests."""
    return date.today()


@router.post("/command", response_model=CommandResponse)
async def habit_command(
    payload: CommandRequest,
    user_id: UUID = Depends(get_current_user_id),
    registry: HabitSessionRegistry = Depends(get_session_registry),
    interpreter: CommandInterpreter = Depends(get_interpreter),
) -> CommandResponse:
    """
    Interpret one instruction and apply it to the caller's month.

    Example request:
    {"message": "log meditation for yesterday", "month_key": "2026-10"}

    Interpreter failures come back as a `reply`, never as a 5xx.
    """
    message_text = payload.message.strip()
    if not message_text:
        raise HTTPException(status_code=422, detail="message must not be empty")

    today = _today()
    try:
        target_month = payload.month_key or month_key_for(today)
        session = await registry.session_for(user_id, target_month)
        outcome = await run_command(
            session,
            interpreter,
            message_text,
            cap=settings.habit_cap,
            today=today,
            month_key=target_month,
        )
    except AuraError as exc:
        raise http_error(exc) from exc

    action = None
    if outcome.action is not None:
        action = CommandActionItem(
            kind=outcome.action.kind,
            arguments=outcome.action.arguments.model_dump(exclude_none=True),
        )

    return CommandResponse(
        reply=outcome.reply,
        action=action,
        applied=outcome.applied,
        persisted=outcome.persisted,
        record=MonthlyRecordResponse.from_record(outcome.record, cap=settings.habit_cap),
    )
