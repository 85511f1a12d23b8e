"""Gemini access for project generation and block param extraction."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from google import genai
from google.genai import types

from .config import VALID_THINKING_LEVELS, get_config
from .errors import ModelOutputError
from .retry import with_retry

logger = logging.getLogger(__name__)

_FENCE_PREFIXES = ("```json", "```")


def _thinking_config(level: str) -> types.ThinkingConfig:
    normalized = level.strip().lower()
    if normalized not in VALID_THINKING_LEVELS:
        raise ValueError(
            f"Invalid thinking level '{level}'. Allowed: {', '.join(sorted(VALID_THINKING_LEVELS))}"
        )
    return types.ThinkingConfig(thinking_level=normalized)


def _request_config(
    *,
    thinking_level: str | None,
    system_instruction: str | None,
    response_schema: dict | None,
    json_output: bool,
    temperature: float | None,
) -> types.GenerateContentConfig:
    cfg = get_config()
    request = types.GenerateContentConfig(
        thinking_config=_thinking_config(thinking_level or cfg.default_thinking_level),
        temperature=cfg.default_temperature if temperature is None else temperature,
    )
    if system_instruction:
        request.system_instruction = system_instruction
    if json_output or response_schema:
        request.response_mime_type = "application/json"
    if response_schema:
        request.response_json_schema = response_schema
    return request


def _visible_text(response: Any) -> str:
    """Answer text of *response*, leaving out thought parts."""
    parts = response.candidates[0].content.parts if response.candidates else []
    answer = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
    return "\n".join(answer) if answer else (response.text or "")


def _strip_fences(raw: str) -> str:
    """Drop a surrounding markdown code fence if the model added one anyway."""
    text = raw.strip()
    for prefix in _FENCE_PREFIXES:
        if text.startswith(prefix) and text.endswith("```"):
            return text[len(prefix) : -3].strip()
    return text


class GeminiClient:
    """One ``genai.Client`` per API key, shared by every tool call."""

    _clients: dict[str, genai.Client] = {}

    @classmethod
    def get(cls, api_key: str | None = None) -> genai.Client:
        key = api_key or get_config().gemini_api_key or os.getenv("GEMINI_API_KEY", "")
        if not key:
            raise ValueError("No Gemini API key — set GEMINI_API_KEY in the environment or .env")
        client = cls._clients.get(key)
        if client is None:
            client = cls._clients[key] = genai.Client(api_key=key)
            logger.info("Gemini client ready (key …%s)", key[-4:])
        return client

    @classmethod
    async def generate(
        cls,
        contents: Any,
        *,
        model: str | None = None,
        thinking_level: str | None = None,
        system_instruction: str | None = None,
        response_schema: dict | None = None,
        json_output: bool = False,
        temperature: float | None = None,
    ) -> str:
        """Send one ``generate_content`` request, retrying transient failures.

        Args:
            contents: Prompt text or a list of parts (text plus inline image).
            model: Model id; ``config.default_model`` when omitted.
            thinking_level: Thinking depth; the configured level when omitted.
            system_instruction: System prompt for the request.
            response_schema: JSON schema for the reply (implies JSON output).
            json_output: Ask for ``application/json`` without a schema.
            temperature: Sampling temperature override.

        Returns:
            The reply text without thought parts.
        """
        request = _request_config(
            thinking_level=thinking_level,
            system_instruction=system_instruction,
            response_schema=response_schema,
            json_output=json_output,
            temperature=temperature,
        )
        client = cls.get()
        model_id = model or get_config().default_model
        response = await with_retry(
            lambda: client.aio.models.generate_content(model=model_id, contents=contents, config=request),
            label=model_id,
        )
        return _visible_text(response)

    @classmethod
    async def generate_json(cls, contents: Any, **kwargs: Any) -> dict:
        """:meth:`generate` with JSON output, decoded into a dict.

        Raises:
            ModelOutputError: The reply is not a JSON object.
        """
        raw = await cls.generate(contents, json_output=True, **kwargs)
        try:
            parsed = json.loads(_strip_fences(raw))
        except json.JSONDecodeError as exc:
            raise ModelOutputError(f"Model returned non-JSON: {raw[:200]!r}") from exc
        if not isinstance(parsed, dict):
            raise ModelOutputError(f"Model returned {type(parsed).__name__}, expected a JSON object")
        return parsed

    @classmethod
    async def close_all(cls) -> int:
        """Close every pooled client and empty the pool. Returns how many were closed."""
        closed = 0
        for key, client in list(cls._clients.items()):
            try:
                await client.aio.close()
            except Exception:
                logger.debug("Async close failed for key …%s", key[-4:], exc_info=True)
            try:
                client.close()
            except Exception:
                logger.debug("Sync close failed for key …%s", key[-4:], exc_info=True)
            closed += 1
        cls._clients.clear()
        logger.info("Closed %d Gemini client(s)", closed)
        return closed
