"""Prompt composition tools — 7 tools on a FastMCP sub-server.

Each call rebuilds its working state from the arguments: text tools run a
headless ``NodeBuffer`` + ``PromptSync`` pair, segment tools run a
``SegmentComposer``. Block definitions come from the shared library.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..composer import DragPayload, SegmentComposer
from ..editor import NodeBuffer
from ..errors import BlockNotFoundError, TokenNotFoundError, make_tool_error
from ..flatten import flatten_segments, flatten_text, prompt_text
from ..library import get_library
from ..render import DisplayNode, TextRun, render_html, render_nodes, text_from_html
from ..segments import SegmentList, from_string, to_string
from ..sync import PromptSync
from ..tokens import find_token_by_index, parse_tokens
from ..tracing import trace
from ..types import (
    BlockIdParam,
    CaretOffset,
    ParamValues,
    PromptText,
    RenderFormat,
    SegmentsParam,
    TokenIndex,
    coerce_json_param,
)

logger = logging.getLogger(__name__)
prompt_server = FastMCP("prompt")


def _node_dict(node: DisplayNode) -> dict:
    if isinstance(node, TextRun):
        return {"kind": "text", "text": node.text}
    return {"kind": "block", **asdict(node)}


def _dump_segments(segments: list) -> list[dict]:
    return SegmentList.dump_python(segments, mode="json")


def _load_segments(segments: list | str | None) -> list:
    return SegmentList.validate_python(coerce_json_param(segments, list) or [])


def _open_sync(text: str, caret: int | None = None) -> tuple[NodeBuffer, PromptSync]:
    """Headless surface synced to *text*, with the caret at *caret* (None = unfocused)."""
    buffer = NodeBuffer()
    sync = PromptSync(buffer, get_library().definitions, text=text)
    buffer.on_input(sync.handle_input)
    buffer.set_cursor(caret)
    return buffer, sync


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_parse", span_type="TOOL")
async def prompt_parse(text: PromptText) -> dict:
    """Parse block tokens and split the prompt into text/block segments.

    Args:
        text: Prompt text with ``[[Block:<id> key=value ...]]`` tokens.

    Returns:
        Dict with tokens (index, span, block id, decoded params, known flag),
        normalised segments and the canonical string rebuilt from them.
    """
    try:
        definitions = get_library().definitions()
        tokens = [
            {
                "index": i,
                "start": t.start,
                "end": t.end,
                "block_id": t.block_id,
                "params": t.params,
                "source": t.source,
                "known": t.block_id in definitions,
            }
            for i, t in enumerate(parse_tokens(text))
        ]
        segments = from_string(text, definitions)
        return {
            "tokens": tokens,
            "segments": _dump_segments(segments),
            "canonical": to_string(segments, definitions),
        }
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_render", span_type="TOOL")
async def prompt_render(
    text: PromptText,
    view: RenderFormat = "nodes",
) -> dict:
    """Render the prompt as the rich editing view.

    Args:
        text: Prompt text.
        view: "nodes" for text runs and token widgets, "html" for
            contenteditable markup.

    Returns:
        Dict with ``nodes`` or ``html``, plus the token count.
    """
    try:
        definitions = get_library().definitions()
        if view == "html":
            return {"html": render_html(text, definitions), "token_count": len(parse_tokens(text))}
        nodes = render_nodes(text, definitions)
        return {
            "nodes": [_node_dict(n) for n in nodes],
            "token_count": sum(1 for n in nodes if not isinstance(n, TextRun)),
        }
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_read_surface", span_type="TOOL")
async def prompt_read_surface(
    html: Annotated[str, Field(description="Edited contenteditable markup, as produced by prompt_render view='html'")],
) -> dict:
    """Read an edited HTML surface back into the canonical prompt string.

    Block widgets contribute their embedded token, never their label, so
    tokens survive any edit around them.

    Returns:
        Dict with the prompt text and its block ids in order.
    """
    try:
        text = text_from_html(html)
        return {"text": text, "block_ids": [t.block_id for t in parse_tokens(text)]}
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_flatten", span_type="TOOL")
async def prompt_flatten(
    text: Annotated[str | None, Field(description="Token-annotated prompt text")] = None,
    segments: SegmentsParam = None,
) -> dict:
    """Resolve every block reference into a usage record for generation.

    Provide either ``text`` or ``segments``. Tokens for unknown blocks are
    skipped; missing params take their defaults.

    Returns:
        Dict with usages (``{id, name, def, params, project, context}``),
        the free prompt text and the usage count.
    """
    try:
        library = get_library()
        if segments is not None:
            segs = _load_segments(segments)
            usages = flatten_segments(segs, library.blocks())
            free_text = prompt_text(segs)
        elif text is not None:
            usages = flatten_text(text, library.blocks())
            free_text = prompt_text(from_string(text, library.definitions()))
        else:
            raise ValueError("Provide text or segments")
        return {
            "usages": [u.model_dump(mode="json", by_alias=True) for u in usages],
            "prompt": free_text,
            "count": len(usages),
        }
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_insert_block", span_type="TOOL")
async def prompt_insert_block(
    text: PromptText,
    block_id: BlockIdParam,
    caret: CaretOffset = None,
    values: ParamValues = None,
) -> dict:
    """Insert a block token at the caret, as dropping a block on the editor does.

    Args:
        text: Current prompt text.
        block_id: Library block to insert.
        caret: Caret offset; omitted or out of range inserts at the end.
        values: Param values; the definition defaults fill the rest.

    Returns:
        Dict with the new text, the inserted token and the caret after it.
    """
    values = coerce_json_param(values, dict)
    try:
        block = get_library().require(block_id)
        buffer, sync = _open_sync(text, caret)
        token = sync.insert_block_at_caret(block_id, {**block.definition.defaults(), **(values or {})})
        return {"text": sync.text, "token": token, "caret": buffer.get_cursor()}
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="prompt_edit_token", span_type="TOOL")
async def prompt_edit_token(
    text: PromptText,
    index: TokenIndex,
    values: ParamValues = None,
) -> dict:
    """Open the *index*-th token, apply new param values and write it back.

    Every declared param is written out: given values first, then the
    token's current values, then definition defaults.

    Returns:
        Dict with the new text and the rewritten token.
    """
    values = coerce_json_param(values, dict)
    try:
        _, sync = _open_sync(text)
        edit = sync.open_token(index)
        if edit is None:
            match = find_token_by_index(text, index)
            if match is None:
                raise TokenNotFoundError(f"No token at index {index}")
            raise BlockNotFoundError(match.block_id)
        token = sync.save_token(edit, values)
        return {"text": sync.text, "token": token}
    except Exception as exc:
        return make_tool_error(exc)


@prompt_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="segments_move", span_type="TOOL")
async def segments_move(
    target: Annotated[int, Field(ge=0, description="Drop zone index: 0 = before the first segment, len = after the last")],
    segments: SegmentsParam = None,
    text: Annotated[str | None, Field(description="Prompt text, used when segments are not given")] = None,
    segment_id: Annotated[str | None, Field(description="Existing segment to move")] = None,
    block_id: Annotated[str | None, Field(description="Library block to insert with its defaults")] = None,
) -> dict:
    """Drop a segment (reorder) or a library block (insert) on a drop zone.

    Unknown segment ids and unknown blocks leave the list unchanged.

    Returns:
        Dict with ``changed``, the resulting segments and their canonical text.
    """
    try:
        if segment_id is None and block_id is None:
            raise ValueError("Provide segment_id or block_id")
        composer = SegmentComposer(get_library())
        if segments is not None:
            composer.load_segments(_load_segments(segments))
        else:
            composer.load_text(text or "")
        changed = composer.drop(DragPayload(segment_id=segment_id, block_id=block_id), target)
        return {
            "changed": changed,
            "segments": _dump_segments(composer.segments),
            "text": composer.to_string(),
        }
    except Exception as exc:
        return make_tool_error(exc)
