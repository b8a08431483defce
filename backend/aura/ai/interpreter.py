"""Natural-language command -> exactly one of {text reply, validated action}."""

from __future__ import annotations

from datetime import date
from typing import Optional

from loguru import logger
from pydantic import BaseModel, model_validator

from aura.ai.actions import PendingAction, action_schemas, parse_action
from aura.ai.gemini_client import GeminiClient, GeminiError, GeminiRequestError
from aura.ai.prompt import SYSTEM_PROMPT, build_command_prompt
from aura.errors import MalformedResponse, UpstreamUnavailable
from aura.models import MonthlyRecord

NOT_CONFIGURED_REPLY = "API Key not configured. Please set your API key."
UPSTREAM_ERROR_REPLY = "Sorry, I encountered an error. It might be related to your API key. Please try again."
RATE_LIMITED_REPLY = "Aura is rate-limited right now. Try again shortly."
MALFORMED_REPLY = "I couldn't turn that into a habit action. Please rephrase and try again."
EMPTY_REPLY = "I could not complete that request. Please rephrase and try again."


class CommandResult(BaseModel):
    text: Optional[str] = None
    action: Optional[PendingAction] = None

    @model_validator(mode="after")
    def exactly_one(self) -> "CommandResult":
        if (self.text is None) == (self.action is None):
            raise ValueError("CommandResult needs exactly one of text or action")
        return self


class CommandInterpreter:
    """
    Ask the language service what a user utterance means.

    Failures never escape `interpret`: a missing key short-circuits before any
    network call, and transport, status or payload problems become a text result.
    """

    def __init__(self, client: GeminiClient | None) -> None:
        self.client = client

    @property
    def configured(self) -> bool:
        return self.client is not None and bool(self.client.api_key)

    async def interpret(self, utterance: str, record: MonthlyRecord, today: date) -> CommandResult:
        if not self.configured:
            return CommandResult(text=NOT_CONFIGURED_REPLY)

        try:
            return await self._interpret(utterance.strip(), record, today)
        except UpstreamUnavailable as exc:
            status_code = getattr(exc.__cause__, "status_code", None)
            logger.warning("Command interpreter upstream failure (status={}): {}", status_code, exc)
            if status_code == 429:
                return CommandResult(text=RATE_LIMITED_REPLY)
            return CommandResult(text=UPSTREAM_ERROR_REPLY)
        except MalformedResponse as exc:
            logger.warning("Command interpreter rejected model output: {}", exc)
            return CommandResult(text=MALFORMED_REPLY)
        except Exception:
            logger.exception("Unexpected command interpreter failure")
            return CommandResult(text=UPSTREAM_ERROR_REPLY)

    async def _interpret(self, utterance: str, record: MonthlyRecord, today: date) -> CommandResult:
        prompt = build_command_prompt(utterance, record, today)

        try:
            result = await self.client.generate(
                prompt,
                function_declarations=action_schemas(),
                system_prompt=SYSTEM_PROMPT,
            )
        except GeminiRequestError as exc:
            raise UpstreamUnavailable(f"Gemini request failed with status {exc.status_code}") from exc
        except GeminiError as exc:
            raise MalformedResponse(str(exc)) from exc

        if result.function_calls:
            # Only the first call is acted upon.
            call = result.function_calls[0]
            if len(result.function_calls) > 1:
                logger.info("Model returned {} function calls; using {}", len(result.function_calls), call.name)
            action = parse_action(call.name, call.arguments)
            logger.debug("Interpreted command as {}", action.kind)
            return CommandResult(action=action)

        if result.text_response:
            return CommandResult(text=result.text_response)

        return CommandResult(text=EMPTY_REPLY)


def build_interpreter(api_key: str, model: str) -> CommandInterpreter:
    if not api_key:
        return CommandInterpreter(None)
    return CommandInterpreter(GeminiClient(api_key=api_key, model=model))
