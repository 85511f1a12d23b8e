"""Segment model — the structural form of a composed prompt.

A prompt is a list of ``TextSegment`` and ``BlockSegment`` entries. A normalised
list is never empty and never holds two text segments in a row. Parsing a
string and inserting a block also keep text (possibly empty) on both sides of
the blocks they add, so the caret has somewhere to land.

All operations are pure: they return a new, normalised list.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .models.blocks import BlockDefinition
from .tokens import parse_tokens, serialize_token

logger = logging.getLogger(__name__)


def new_segment_id() -> str:
    return "id_" + uuid.uuid4().hex[:7]


class TextSegment(BaseModel):
    """Free prompt text."""

    type: Literal["text"] = "text"
    id: str = Field(default_factory=new_segment_id)
    value: str = ""


class BlockSegment(BaseModel):
    """Reference to a block definition with explicit parameter values."""

    type: Literal["block"] = "block"
    id: str = Field(default_factory=new_segment_id)
    block_id: str
    values: dict[str, Any] = Field(default_factory=dict)
    context_url: str | None = None
    context_data: str | None = Field(default=None, description="Attached file as a data URL")
    source: str | None = Field(
        default=None,
        description="Original token text, kept for blocks with no known definition",
    )


Segment = Annotated[Union[TextSegment, BlockSegment], Field(discriminator="type")]
SegmentList = TypeAdapter(list[Segment])

DefinitionLookup = Mapping[str, BlockDefinition]


def normalize(segments: Sequence[TextSegment | BlockSegment]) -> list[TextSegment | BlockSegment]:
    """Merge adjacent text segments; an empty list becomes one empty text segment.

    Blocks are left where they are, adjacent or at either end. The first
    segment of a merged run keeps its id. Input segments are not mutated.
    Idempotent.
    """
    out: list[TextSegment | BlockSegment] = []
    for seg in segments:
        prev = out[-1] if out else None
        if isinstance(seg, TextSegment) and isinstance(prev, TextSegment):
            out[-1] = prev.model_copy(update={"value": prev.value + seg.value})
        else:
            out.append(seg)
    return out or [TextSegment()]


def from_string(text: str, definitions: DefinitionLookup | None = None) -> list[TextSegment | BlockSegment]:
    """Split *text* into segments: interstitial text and one block per token.

    Tokens whose id is unknown keep their exact ``source`` so they survive a
    round trip verbatim.
    """
    definitions = definitions or {}
    segments: list[TextSegment | BlockSegment] = []
    last = 0
    for token in parse_tokens(text):
        segments.append(TextSegment(value=text[last : token.start]))
        known = token.block_id in definitions
        segments.append(
            BlockSegment(
                block_id=token.block_id,
                values=dict(token.params),
                source=None if known else token.source,
            )
        )
        last = token.end
    segments.append(TextSegment(value=text[last:]))
    return normalize(segments)


def block_to_token(segment: BlockSegment, definitions: DefinitionLookup | None = None) -> str:
    definition = (definitions or {}).get(segment.block_id)
    if definition is None and segment.source is not None:
        return segment.source
    return serialize_token(segment.block_id, segment.values, definition)


def to_string(segments: Sequence[TextSegment | BlockSegment], definitions: DefinitionLookup | None = None) -> str:
    """Serialise segments back into the canonical token-annotated string."""
    return "".join(
        seg.value if isinstance(seg, TextSegment) else block_to_token(seg, definitions)
        for seg in segments
    )


def insert_block(
    segments: Sequence[TextSegment | BlockSegment],
    index: int,
    block_id: str,
    values: Mapping[str, Any] | None = None,
) -> list[TextSegment | BlockSegment]:
    """Splice a new block at *index* (clamped), with text guaranteed on both sides."""
    out = list(segments)
    at = max(0, min(index, len(out)))
    out.insert(at, BlockSegment(block_id=block_id, values=dict(values or {})))
    if at == 0 or not isinstance(out[at - 1], TextSegment):
        out.insert(at, TextSegment())
        at += 1
    if at + 1 >= len(out) or not isinstance(out[at + 1], TextSegment):
        out.insert(at + 1, TextSegment())
    return normalize(out)


def remove_segment(segments: Sequence[TextSegment | BlockSegment], segment_id: str) -> list[TextSegment | BlockSegment]:
    """Delete *segment_id*; neighbours re-merge and the list never becomes empty."""
    remaining = [s for s in segments if s.id != segment_id]
    if len(remaining) == len(segments):
        logger.debug("remove_segment: %s not present", segment_id)
    return normalize(remaining)


def move_index(from_index: int, target: int) -> int:
    """Splice position for a segment taken out at *from_index* and dropped at *target*.

    Removing the source first shifts every later slot down by one.
    """
    return max(0, target - 1) if from_index < target else target


def move_segment(
    segments: Sequence[TextSegment | BlockSegment],
    segment_id: str,
    target: int,
) -> list[TextSegment | BlockSegment]:
    """Move *segment_id* to drop slot *target* (0..len). Unknown ids leave the list as is."""
    out = list(segments)
    from_index = next((i for i, s in enumerate(out) if s.id == segment_id), -1)
    if from_index == -1:
        return normalize(out)
    seg = out.pop(from_index)
    out.insert(move_index(from_index, target), seg)
    return normalize(out)


def update_text(segments: Sequence[TextSegment | BlockSegment], segment_id: str, value: str) -> list[TextSegment | BlockSegment]:
    return normalize([
        s.model_copy(update={"value": value}) if s.id == segment_id and isinstance(s, TextSegment) else s
        for s in segments
    ])


def update_block(
    segments: Sequence[TextSegment | BlockSegment],
    segment_id: str,
    *,
    values: Mapping[str, Any] | None = None,
    context_url: str | None = None,
    context_data: str | None = None,
) -> list[TextSegment | BlockSegment]:
    """Replace a block segment's values and per-block context (as the block editor saves them)."""
    out: list[TextSegment | BlockSegment] = []
    for s in segments:
        if s.id == segment_id and isinstance(s, BlockSegment):
            update: dict[str, Any] = {"context_url": context_url, "context_data": context_data}
            if values is not None:
                update["values"] = dict(values)
                update["source"] = None
            s = s.model_copy(update=update)
        out.append(s)
    return normalize(out)


def _shape(seg: TextSegment | BlockSegment) -> tuple:
    if isinstance(seg, TextSegment):
        return ("text", seg.value)
    return ("block", seg.block_id, seg.values, seg.context_url, seg.context_data)


def segments_equal(a: Sequence[TextSegment | BlockSegment], b: Sequence[TextSegment | BlockSegment]) -> bool:
    """Structural equality that ignores generated segment ids."""
    return len(a) == len(b) and all(_shape(x) == _shape(y) for x, y in zip(a, b))
