from __future__ import annotations

import asyncio
from datetime import date

import pytest

from aura.ai import interpreter as interpreter_module
from aura.ai.gemini_client import (
    GeminiFunctionCall,
    GeminiRequestError,
    GeminiResponseError,
    GeminiResult,
)
from aura.ai.interpreter import (
    EMPTY_REPLY,
    MALFORMED_REPLY,
    NOT_CONFIGURED_REPLY,
    RATE_LIMITED_REPLY,
    UPSTREAM_ERROR_REPLY,
    CommandInterpreter,
    CommandResult,
    build_interpreter,
)
from aura.models import MonthlyRecord

TODAY = date(2026, 10, 19)


def _run(coro):
    return asyncio.run(coro)


def _record() -> MonthlyRecord:
    return MonthlyRecord.model_validate(
        {"month_key": "2026-10", "habits": [{"id": 1, "name": "Meditation", "completions": {}}]}
    )


class StubGeminiClient:
    def __init__(self, outcome, api_key="test-key"):
        self.api_key = api_key
        self.outcome = outcome
        self.prompts = []

    async def generate(self, prompt, *, function_declarations, system_prompt=""):
        self.prompts.append(prompt)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_missing_key_short_circuits_before_network() -> None:
    client = StubGeminiClient(GeminiResult(text_response="unused"), api_key="")
    result = _run(CommandInterpreter(client).interpret("log meditation", _record(), TODAY))

    assert result == CommandResult(text=NOT_CONFIGURED_REPLY)
    assert client.prompts == []
    assert build_interpreter("", "gemini-2.5-flash").configured is False


def test_function_call_becomes_action_and_prompt_carries_state() -> None:
    client = StubGeminiClient(
        GeminiResult(
            text_response="",
            function_calls=[GeminiFunctionCall(name="log_habit_completion", arguments={"name": "Meditation", "date": "2026-10-18"})],
        )
    )

    result = _run(CommandInterpreter(client).interpret("  log meditation for yesterday ", _record(), TODAY))

    assert result.text is None
    assert result.action.kind == "log_habit_completion"
    assert result.action.arguments.date == "2026-10-18"
    assert 'User query: "log meditation for yesterday"' in client.prompts[0]
    assert "Today's Date: 2026-10-19" in client.prompts[0]
    assert '"name":"Meditation"' in client.prompts[0]


def test_first_function_call_wins() -> None:
    client = StubGeminiClient(
        GeminiResult(
            text_response="Sure",
            function_calls=[
                GeminiFunctionCall(name="add_habit_note", arguments={"note": "first"}),
                GeminiFunctionCall(name="add_habit_note", arguments={"note": "second"}),
            ],
        )
    )

    result = _run(CommandInterpreter(client).interpret("note things", _record(), TODAY))

    assert result.action.arguments.note == "first"
    assert result.text is None


def test_plain_text_reply() -> None:
    client = StubGeminiClient(GeminiResult(text_response="You have one habit."))
    result = _run(CommandInterpreter(client).interpret("what am I tracking?", _record(), TODAY))
    assert result == CommandResult(text="You have one habit.")


@pytest.mark.parametrize(
    ("outcome", "expected"),
    [
        (GeminiRequestError(429, "quota"), RATE_LIMITED_REPLY),
        (GeminiRequestError(503, "down"), UPSTREAM_ERROR_REPLY),
        (GeminiRequestError(400, "API key not valid"), UPSTREAM_ERROR_REPLY),
        (GeminiResponseError("missing candidates"), MALFORMED_REPLY),
        (RuntimeError("boom"), UPSTREAM_ERROR_REPLY),
        (GeminiResult(text_response=""), EMPTY_REPLY),
        (GeminiResult(text_response="", function_calls=[GeminiFunctionCall(name="drop_table", arguments={})]), MALFORMED_REPLY),
        (GeminiResult(text_response="", function_calls=[GeminiFunctionCall(name="add_habit", arguments="{oops")]), MALFORMED_REPLY),
        (GeminiResult(text_response="", function_calls=[GeminiFunctionCall(name="add_habit", arguments={"title": "x"})]), MALFORMED_REPLY),
    ],
)
def test_failures_fail_closed_to_text(outcome, expected) -> None:
    result = _run(CommandInterpreter(StubGeminiClient(outcome)).interpret("do it", _record(), TODAY))

    assert result.text == expected
    assert result.action is None


@pytest.mark.parametrize(
    "outcome",
    [
        GeminiResult(text_response=""),
        GeminiResult(text_response="hello"),
        GeminiResult(text_response="hi", function_calls=[GeminiFunctionCall(name="add_habit", arguments={"name": "Run"})]),
        GeminiResult(text_response="", function_calls=[GeminiFunctionCall(name="", arguments=None)]),
        GeminiResult(text_response="", function_calls=[GeminiFunctionCall(name="set_monthly_reflection", arguments=[1, 2])]),
        GeminiResponseError("bad"),
        ValueError("weird"),
    ],
)
def test_result_is_always_exactly_one_shape(outcome) -> None:
    result = _run(CommandInterpreter(StubGeminiClient(outcome)).interpret("anything", _record(), TODAY))
    assert (result.text is None) != (result.action is None)


def test_command_result_refuses_both_or_neither() -> None:
    with pytest.raises(ValueError):
        CommandResult()
    with pytest.raises(ValueError):
        CommandResult(
            text="x",
            action={"kind": "add_habit", "arguments": {"name": "Run"}},
        )


def test_build_interpreter_uses_gemini_client(monkeypatch) -> None:
    created = {}

    class FakeClient:
        def __init__(self, *, api_key, model):
            created["api_key"] = api_key
            created["model"] = model

    monkeypatch.setattr(interpreter_module, "GeminiClient", FakeClient)
    interpreter = build_interpreter("key-123", "gemini-2.5-flash")

    assert isinstance(interpreter.client, FakeClient)
    assert created == {"api_key": "key-123", "model": "gemini-2.5-flash"}
