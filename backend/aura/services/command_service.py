"""Run one natural-language command against a user's resident month."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from loguru import logger

from aura.ai.actions import PendingAction
from aura.ai.interpreter import CommandInterpreter
from aura.errors import NotFound, ValidationFailed
from aura.models import MonthlyRecord
from aura.services.resolver import resolve
from aura.services.sessions import HabitSession

PERSIST_FAILED_SUFFIX = "but it could not be saved, so the change was undone."


@dataclass
class CommandOutcome:
    reply: str
    record: MonthlyRecord
    action: PendingAction | None = None
    applied: bool = False
    persisted: bool | None = None


def _today() -> date:
    """Wrapper for deterministic tests."""
    return date.today()


async def run_command(
    session: HabitSession,
    interpreter: CommandInterpreter,
    utterance: str,
    *,
    cap: int,
    today: date | None = None,
    month_key: str | None = None,
) -> CommandOutcome:
    """
    Interpret `utterance` and apply it to `month_key` (default: the resident month).

    The command stays bound to that month even if the user navigates elsewhere
    while the interpreter is still running.
    """
    utterance = utterance.strip()
    if not utterance:
        raise ValidationFailed("message must not be empty")

    today = today or _today()
    issued = await session.open_month(month_key) if month_key else session.record
    result = await interpreter.interpret(utterance, issued, today)
    if result.action is None:
        return CommandOutcome(reply=result.text or "", record=issued)

    # Resolve against the freshest copy of the issuing month; the interpreter call may have taken a while.
    record = await session.open_month(issued.month_key)
    resolution = resolve(result.action, record, today=today, cap=cap)
    if resolution.mutation is None:
        return CommandOutcome(reply=resolution.message, record=record, action=result.action)

    try:
        outcome = await session.apply(resolution.mutation, month_key=issued.month_key)
    except (NotFound, ValidationFailed) as exc:
        # State moved between resolve and apply (e.g. a concurrent delete or add).
        logger.info("Command {} no longer applies: {}", result.action.kind, exc)
        return CommandOutcome(reply=str(exc), record=session.record, action=result.action)

    if not outcome.ok:
        reply = f"{resolution.message.rstrip('.')}, {PERSIST_FAILED_SUFFIX}"
        return CommandOutcome(
            reply=reply,
            record=outcome.record,
            action=result.action,
            applied=False,
            persisted=False,
        )

    return CommandOutcome(
        reply=resolution.message,
        record=outcome.record,
        action=result.action,
        applied=True,
        persisted=True,
    )
