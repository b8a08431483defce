"""Gemini `generateContent` wrapper for single-turn function calling."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class GeminiError(Exception):
    """Base exception for Gemini client errors."""


class GeminiRequestError(GeminiError):
    """Raised when Gemini API request fails."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class GeminiResponseError(GeminiError):
    """Raised when Gemini response shape cannot be parsed."""


@dataclass
class GeminiFunctionCall:
    """One function call emitted by the model."""

    name: str
    arguments: Any


@dataclass
class GeminiResult:
    text_response: str
    function_calls: list[GeminiFunctionCall] = field(default_factory=list)


class GeminiClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: int = 25,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.transport = transport

    async def generate(
        self,
        prompt: str,
        *,
        function_declarations: list[dict[str, Any]],
        system_prompt: str = "",
    ) -> GeminiResult:
        """Send one user prompt with the given function declarations."""
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.1},
        }
        if system_prompt:
            body["system_instruction"] = {"parts": [{"text": system_prompt}]}
        if function_declarations:
            body["tools"] = [{"functionDeclarations": function_declarations}]
            body["toolConfig"] = {"functionCallingConfig": {"mode": "AUTO"}}

        url = f"{GEMINI_BASE_URL}/{self.model}:generateContent"
        # Key travels in a header so it never shows up in logged URLs.
        headers = {"x-goog-api-key": self.api_key}

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                    response = await client.post(url, headers=headers, json=body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt < self.max_retries:
                    logger.debug("Gemini transport error on attempt {}: {}", attempt + 1, type(exc).__name__)
                    await asyncio.sleep(0.5 * (2**attempt))
                    continue
                raise GeminiRequestError(503, "Gemini request failed") from exc

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                logger.debug("Gemini returned {} on attempt {}, retrying", response.status_code, attempt + 1)
                await asyncio.sleep(0.5 * (2**attempt))
                continue

            if response.status_code >= 400:
                raise GeminiRequestError(response.status_code, response.text[:500])

            try:
                payload = response.json()
            except ValueError as exc:
                raise GeminiResponseError("Invalid JSON from Gemini") from exc

            return parse_response(payload)

        raise GeminiRequestError(503, "Gemini request failed")


def _function_call_arguments(raw: Any) -> Any:
    # Some SDK proxies hand back args as a JSON string.
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    if raw is None:
        return {}
    return raw


def parse_response(payload: Any) -> GeminiResult:
    if not isinstance(payload, dict):
        raise GeminiResponseError("Gemini response is not an object")

    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        raise GeminiResponseError("Gemini response missing candidates")

    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise GeminiResponseError("Gemini response missing content parts")

    text_parts: list[str] = []
    function_calls: list[GeminiFunctionCall] = []

    for part in parts:
        if not isinstance(part, dict):
            continue

        text = part.get("text")
        if isinstance(text, str) and text.strip():
            text_parts.append(text.strip())

        raw_call = part.get("functionCall") or part.get("function_call")
        if not isinstance(raw_call, dict):
            continue

        function_calls.append(
            GeminiFunctionCall(
                name=str(raw_call.get("name") or "").strip(),
                arguments=_function_call_arguments(raw_call.get("args")),
            )
        )

    return GeminiResult(
        text_response="\n".join(text_parts).strip(),
        function_calls=function_calls,
    )
