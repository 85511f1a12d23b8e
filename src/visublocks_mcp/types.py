"""Parameter aliases and JSON-argument coercion shared by the tool modules."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field


def coerce_json_param(value: str | dict | list | None, expected_type: type) -> dict | list | None:
    """Turn a JSON-string tool argument back into a dict/list.

    Some MCP clients send object and array arguments as JSON text; anything
    that does not decode to *expected_type* is returned untouched so pydantic
    reports the real problem.
    """
    if not isinstance(value, str):
        return value
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value
    return parsed if isinstance(parsed, expected_type) else value


# ── Literal enums ────────────────────────────────────────────────────────────

ThinkingLevel = Literal["minimal", "low", "medium", "high"]
ModelPreset = Literal["best", "budget"]
RenderFormat = Literal["nodes", "html"]
ParamTypeName = Literal["color", "text", "number", "select"]

# ── Annotated aliases ────────────────────────────────────────────────────────

PromptText = Annotated[str, Field(description="Prompt text containing [[Block:<id> key=value ...]] tokens")]
BlockIdParam = Annotated[str, Field(
    min_length=1,
    pattern=r"^[A-Za-z0-9_-]+$",
    description="Block definition id (letters, digits, '_' and '-')",
)]
TokenIndex = Annotated[int, Field(ge=0, description="0-based position of the token among all tokens in the text")]
CaretOffset = Annotated[int | None, Field(
    ge=0,
    description="Caret offset in the plain text; omit to insert at the end",
)]
ParamValues = Annotated[dict | None, Field(description="Param values keyed by param key; missing keys use defaults")]
SegmentsParam = Annotated[list | None, Field(
    description="Segment list: [{type:'text', id, value} | {type:'block', id, block_id, values, "
    "context_url, context_data}]",
)]
