"""Request-scoped access to the handles created in the app lifespan."""

from fastapi import HTTPException, Request

from .ai.interpreter import CommandInterpreter
from .services.sessions import HabitSessionRegistry


def get_session_registry(request: Request) -> HabitSessionRegistry:
    registry = getattr(request.app.state, "sessions", None)
    if registry is None:
        raise HTTPException(status_code=500, detail="Habit store is not initialised")
    return registry


def get_interpreter(request: Request) -> CommandInterpreter:
    interpreter = getattr(request.app.state, "interpreter", None)
    if interpreter is None:
        return CommandInterpreter(None)
    return interpreter
