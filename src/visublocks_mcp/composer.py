"""Segmented composer — drag/drop editing of the segment model.

Drop zones sit before, between and after segments (indices ``0..len``). The
drop target is the zone last hovered rather than the zone that received the
drop event, which keeps fast pointer movement between zones from landing a
block in the wrong slot.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from . import segments as seg_ops
from .flatten import flatten_segments, prompt_text
from .library import BlockLibrary
from .models.usage import BlockUsage
from .segments import BlockSegment, TextSegment

logger = logging.getLogger(__name__)

SEGMENT_MIME = "application/x-seg-id"
BLOCK_MIME = "application/x-block-id"


@dataclass(frozen=True)
class DragPayload:
    """What is being dragged: an existing segment, or a block definition from the library."""

    segment_id: str | None = None
    block_id: str | None = None

    @classmethod
    def from_transfer(cls, data: Mapping[str, str]) -> DragPayload:
        return cls(segment_id=data.get(SEGMENT_MIME) or None, block_id=data.get(BLOCK_MIME) or None)


class SegmentComposer:
    def __init__(self, library: BlockLibrary, text: str = "") -> None:
        self._library = library
        self._segments = seg_ops.from_string(text, library.definitions())
        self.hovered_index: int | None = None

    @property
    def segments(self) -> list[TextSegment | BlockSegment]:
        return list(self._segments)

    def load_text(self, text: str) -> None:
        self._segments = seg_ops.from_string(text, self._library.definitions())

    def load_segments(self, segments: list[TextSegment | BlockSegment]) -> None:
        self._segments = seg_ops.normalize(segments)

    def to_string(self) -> str:
        return seg_ops.to_string(self._segments, self._library.definitions())

    # ── drag & drop ──────────────────────────────────────────────────────

    def drag_enter(self, index: int) -> None:
        self.hovered_index = index

    def drag_over(self, index: int) -> None:
        self.hovered_index = index

    def drag_leave(self, index: int) -> None:
        if self.hovered_index == index:
            self.hovered_index = None

    def drop(self, payload: DragPayload, index: int) -> bool:
        """Apply a drop on zone *index*. Returns False when the payload is not usable."""
        target = self.hovered_index if self.hovered_index is not None else index
        self.hovered_index = None
        if payload.segment_id:
            if not any(s.id == payload.segment_id for s in self._segments):
                logger.debug("Drop of unknown segment %s ignored", payload.segment_id)
                return False
            self.move(payload.segment_id, target)
            return True
        if payload.block_id and payload.block_id in self._library:
            self.insert(payload.block_id, target)
            return True
        return False

    # ── edits ────────────────────────────────────────────────────────────

    def move(self, segment_id: str, index: int) -> None:
        self._segments = seg_ops.move_segment(self._segments, segment_id, index)

    def insert(self, block_id: str, index: int) -> BlockSegment:
        """Insert *block_id* with its definition defaults at drop slot *index*."""
        block = self._library.require(block_id)
        before = {s.id for s in self._segments}
        self._segments = seg_ops.insert_block(self._segments, index, block_id, block.definition.defaults())
        return next(s for s in self._segments if isinstance(s, BlockSegment) and s.id not in before)

    def remove(self, segment_id: str) -> None:
        self._segments = seg_ops.remove_segment(self._segments, segment_id)

    def update_text(self, segment_id: str, value: str) -> None:
        self._segments = seg_ops.update_text(self._segments, segment_id, value)

    def update_block(
        self,
        segment_id: str,
        values: Mapping[str, Any],
        *,
        context_url: str | None = None,
        context_data: str | None = None,
    ) -> None:
        self._segments = seg_ops.update_block(
            self._segments,
            segment_id,
            values=values,
            context_url=context_url,
            context_data=context_data,
        )

    # ── output ───────────────────────────────────────────────────────────

    def flatten(self) -> list[BlockUsage]:
        return flatten_segments(self._segments, self._library.blocks())

    def prompt_text(self) -> str:
        return prompt_text(self._segments)
