"""Project generation tool — 1 tool on a FastMCP sub-server."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Annotated

from fastmcp import FastMCP
from google.genai import types
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from ..client import GeminiClient
from ..config import get_config
from ..errors import ModelOutputError, PayloadTooLargeError, make_tool_error
from ..flatten import flatten_segments, flatten_text, prompt_text
from ..library import get_library
from ..models.project import FALLBACK_PROJECT, RemotionProject
from ..models.usage import BlockUsage
from ..prompts.generation import REMOTION_SYSTEM, build_generation_prompt, duration_hint
from ..segments import SegmentList, from_string
from ..tracing import trace
from ..types import SegmentsParam, ThinkingLevel, coerce_json_param

logger = logging.getLogger(__name__)
generate_server = FastMCP("generate")

_DATA_URL = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)


def _image_part(data_url: str) -> types.Part | None:
    """Decode an image ``data:`` URL into an inline part; None for anything else."""
    match = _DATA_URL.match(data_url.strip())
    if not match:
        return None
    try:
        data = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError):
        return None
    return types.Part.from_bytes(data=data, mime_type=match.group(1))


def _collect(
    prompt: str,
    text: str | None,
    segments: list | None,
) -> tuple[str, list[BlockUsage]]:
    """Resolve the free prompt and block usages from whichever input was given."""
    library = get_library()
    if segments is not None:
        segs = SegmentList.validate_python(segments)
        return prompt or prompt_text(segs), flatten_segments(segs, library.blocks())
    if text is not None:
        free = prompt or prompt_text(from_string(text, library.definitions()))
        return free, flatten_text(text, library.blocks())
    return prompt, []


@generate_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
@trace(name="generate_project", span_type="TOOL")
async def generate_project(
    prompt: Annotated[str, Field(description="Free-form instruction; derived from text/segments when empty")] = "",
    text: Annotated[str | None, Field(description="Token-annotated prompt whose blocks are flattened")] = None,
    segments: SegmentsParam = None,
    guidance_image: Annotated[str, Field(description="Optional guidance image as a data URL")] = "",
    seconds_per_block: Annotated[int | None, Field(
        ge=1, le=30, description="Target seconds per used block (default from config)",
    )] = None,
    fast: Annotated[bool, Field(description="Use the flash model for a quicker draft")] = False,
    model: Annotated[str | None, Field(description="Gemini model ID override")] = None,
    thinking_level: ThinkingLevel | None = None,
) -> dict:
    """Generate a Remotion project from a prompt and its block references.

    Blocks are flattened into per-block context (params, effect sentences,
    attachments, source files) and a duration hint of roughly
    ``seconds_per_block`` per block is added.

    Args:
        prompt: Instruction text.
        text: Prompt text with ``[[Block:...]]`` tokens.
        segments: Segment list from the composer (takes precedence over text).
        guidance_image: Image data URL attached as visual guidance.
        seconds_per_block: Duration budget per used block.
        fast: Prefer the flash model.
        model: Explicit model (beats ``fast``).
        thinking_level: Gemini thinking depth.

    Returns:
        Dict with the project (``{kind, files, compositionId, width, height,
        fps, durationInFrames}``), model, duration hint and block count; with
        DEV_FALLBACK on, a failed call returns the fallback project instead.
    """
    segments = coerce_json_param(segments, list)
    cfg = get_config()
    try:
        if guidance_image and len(guidance_image) > cfg.max_guidance_image_bytes:
            raise PayloadTooLargeError(
                f"Guidance image too large ({len(guidance_image)} bytes, max {cfg.max_guidance_image_bytes})"
            )
        free, usages = _collect(prompt, text, segments)
        if not free.strip() and not usages:
            raise ValueError("Provide a prompt, text or segments")
    except Exception as exc:
        return make_tool_error(exc)

    hint = duration_hint(len(usages), seconds_per_block or cfg.seconds_per_block)
    resolved_model = model or (cfg.flash_model if fast else cfg.default_model)
    image = _image_part(guidance_image) if guidance_image else None
    message = build_generation_prompt(
        free,
        usages,
        guidance_image="" if image else guidance_image,
        image_attached=image is not None,
        duration_hint_sec=hint,
        fps=cfg.default_fps,
    )
    contents = [types.Part(text=message), image] if image else message

    try:
        raw = await GeminiClient.generate_json(
            contents,
            model=resolved_model,
            thinking_level=thinking_level,
            system_instruction=REMOTION_SYSTEM,
        )
        try:
            project = RemotionProject.model_validate(raw)
        except ValidationError as exc:
            raise ModelOutputError(f"Model returned an unexpected project format: {exc.error_count()} error(s)") from exc
        return {
            "project": project.model_dump(mode="json", by_alias=True),
            "model": resolved_model,
            "duration_hint_sec": hint,
            "block_count": len(usages),
            "fallback": False,
        }
    except Exception as exc:
        if not cfg.dev_fallback:
            return make_tool_error(exc)
        logger.warning("Generation failed, serving fallback project: %s", exc)
        return {
            "project": FALLBACK_PROJECT.model_dump(mode="json", by_alias=True),
            "model": resolved_model,
            "duration_hint_sec": hint,
            "block_count": len(usages),
            "fallback": True,
            "error": str(exc),
        }
