"""Block library tools — 4 tools on a FastMCP sub-server."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..client import GeminiClient
from ..config import get_config
from ..errors import make_tool_error
from ..library import get_library
from ..models.blocks import BlockDraft, ParamDef, StoredBlock, definition_from_draft, fallback_draft
from ..models.project import RemotionProject
from ..prompts.generation import PARAM_EXTRACTION_SYSTEM
from ..tracing import trace
from ..types import BlockIdParam, ParamTypeName, coerce_json_param

logger = logging.getLogger(__name__)
blocks_server = FastMCP("blocks")


def _block_dict(block: StoredBlock, *, include_project: bool = False) -> dict:
    exclude = None if include_project else {"project"}
    return block.model_dump(mode="json", by_alias=True, exclude=exclude)


async def _extract_draft(project: RemotionProject) -> tuple[BlockDraft, str]:
    """Ask the fast model for three params; fall back to the fixed draft on any failure."""
    cfg = get_config()
    payload = project.model_dump(by_alias=True)
    if not cfg.gemini_api_key:
        logger.info("No Gemini API key; using fallback block params")
        return fallback_draft(payload), "fallback"
    source = json.dumps({"files": project.files}, ensure_ascii=False)[: cfg.max_param_source_chars]
    try:
        raw = await GeminiClient.generate_json(
            source,
            model=cfg.flash_model,
            thinking_level="low",
            system_instruction=PARAM_EXTRACTION_SYSTEM,
        )
        return BlockDraft.model_validate(raw), "model"
    except Exception as exc:
        logger.warning("Param extraction failed, using fallback: %s", exc)
        return fallback_draft(payload), "fallback"


@blocks_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="blocks_list", span_type="TOOL")
async def blocks_list(
    include_project: Annotated[bool, Field(description="Include each block's stored project files")] = False,
) -> dict:
    """List block definitions, newest first.

    Returns:
        Dict with blocks (``{def, project?}`` records) and count.
    """
    try:
        library = get_library()
        return {
            "blocks": [_block_dict(b, include_project=include_project) for b in library],
            "count": len(library),
        }
    except Exception as exc:
        return make_tool_error(exc)


@blocks_server.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
@trace(name="blocks_create", span_type="TOOL")
async def blocks_create(
    project: Annotated[dict, Field(description="Remotion project ({kind, files, ...}) to save as a block")],
    name: Annotated[str | None, Field(description="Display name; defaults to the extracted name")] = None,
) -> dict:
    """Save a generated project as a reusable block.

    The fast model picks three user-facing params with explain templates.
    Without an API key, or if the model misbehaves, a fixed
    colorPrimary/title/speed draft is used instead.

    Returns:
        Dict with the stored block and ``params_source`` ("model" or "fallback").
    """
    project = coerce_json_param(project, dict)
    try:
        validated = RemotionProject.model_validate(project)
        draft, source = await _extract_draft(validated)
        if name:
            draft = draft.model_copy(update={"name": name})
        definition = definition_from_draft(draft)
        block = get_library().add(StoredBlock(definition=definition, project=project))
        logger.info("Created block %s (%s, %d params)", block.id, source, len(definition.params))
        return {"block": _block_dict(block), "params_source": source}
    except Exception as exc:
        return make_tool_error(exc)


@blocks_server.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, idempotentHint=True))
@trace(name="blocks_delete", span_type="TOOL")
async def blocks_delete(block_id: BlockIdParam) -> dict:
    """Remove a block definition.

    Prompts that still reference it keep their tokens; those render with a
    fallback label and are skipped when flattening.

    Returns:
        Dict with ``deleted`` and the remaining count.
    """
    try:
        library = get_library()
        deleted = library.remove(block_id)
        return {"deleted": deleted, "block_id": block_id, "count": len(library)}
    except Exception as exc:
        return make_tool_error(exc)


@blocks_server.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False))
@trace(name="blocks_add_param", span_type="TOOL")
async def blocks_add_param(
    block_id: BlockIdParam,
    key: Annotated[str, Field(min_length=1, description="New param key (no whitespace, '=' or ']')")],
    type: ParamTypeName = "text",
    default: Annotated[Any, Field(description="Default value (any JSON value)")] = None,
    explain: Annotated[str | None, Field(description="Sentence template with a {value} placeholder")] = None,
    label: Annotated[str | None, Field(description="Display label; defaults to the key")] = None,
) -> dict:
    """Append a custom param to a block. Existing params are never changed.

    Returns:
        Dict with the updated definition.
    """
    try:
        param = ParamDef(key=key, label=label or "", type=type, default=default, explain=explain)
        definition = get_library().append_param(block_id, param)
        return {"definition": definition.model_dump(mode="json")}
    except Exception as exc:
        return make_tool_error(exc)
