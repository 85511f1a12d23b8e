"""Headless editable surface over display nodes.

``NodeBuffer`` behaves like a contenteditable element holding text runs and
opaque token widgets: typing goes into text runs, a widget is deleted as one
unit, and the caret never rests inside a widget. Every mutation, programmatic
or not, notifies input listeners the way DOM mutations fire input events.

Caret offsets are measured in the plain representation, where a widget spans
the length of its source token.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .render import DisplayNode, TextRun, TokenWidget, nodes_to_text


def _merge_runs(nodes: list[DisplayNode]) -> list[DisplayNode]:
    merged: list[DisplayNode] = []
    for node in nodes:
        if isinstance(node, TextRun):
            if not node.text:
                continue
            if merged and isinstance(merged[-1], TextRun):
                merged[-1] = TextRun(merged[-1].text + node.text)
                continue
        merged.append(node)
    return merged


class NodeBuffer:
    """In-memory implementation of the ``EditableBuffer`` capability."""

    def __init__(self, nodes: Sequence[DisplayNode] = ()) -> None:
        self._nodes: list[DisplayNode] = _merge_runs(list(nodes))
        self._cursor: int | None = None
        self._listeners: list[Callable[[], None]] = []

    # ── events ───────────────────────────────────────────────────────────

    def on_input(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ── EditableBuffer ───────────────────────────────────────────────────

    @property
    def nodes(self) -> list[DisplayNode]:
        return list(self._nodes)

    def get_plain_representation(self) -> str:
        return nodes_to_text(self._nodes)

    def replace_content(self, nodes: Sequence[DisplayNode]) -> None:
        self._nodes = _merge_runs(list(nodes))
        if self._cursor is not None:
            self._cursor = self._snap(self._cursor)
        self._emit()

    def get_cursor(self) -> int | None:
        return self._cursor

    def set_cursor(self, offset: int | None) -> None:
        """Place the caret; ``None`` moves focus out of the surface."""
        self._cursor = None if offset is None else self._snap(offset)

    def insert_at_cursor(self, text: str) -> None:
        if self._cursor is None:
            self._cursor = len(self.get_plain_representation())
        at = self._cursor
        out: list[DisplayNode] = []
        pos = 0
        done = False
        for node in self._nodes:
            length = len(node.plain)
            if not done and isinstance(node, TextRun) and pos <= at <= pos + length:
                k = at - pos
                out.append(TextRun(node.text[:k] + text + node.text[k:]))
                done = True
            else:
                if not done and at == pos:
                    out.append(TextRun(text))
                    done = True
                out.append(node)
            pos += length
        if not done:
            out.append(TextRun(text))
        self._nodes = _merge_runs(out)
        self._cursor = at + len(text)
        self._emit()

    # ── user editing ─────────────────────────────────────────────────────

    def type(self, text: str) -> None:
        self.insert_at_cursor(text)

    def delete_backward(self) -> None:
        """Backspace: one character, or a whole widget ending at the caret."""
        if not self._cursor:
            return
        at = self._cursor
        out: list[DisplayNode] = []
        pos = 0
        removed = 0
        for node in self._nodes:
            length = len(node.plain)
            end = pos + length
            if not removed and pos < at <= end:
                if isinstance(node, TokenWidget):
                    removed = length
                    pos = end
                    continue
                k = at - pos
                out.append(TextRun(node.text[: k - 1] + node.text[k:]))
                removed = 1
            else:
                out.append(node)
            pos = end
        self._nodes = _merge_runs(out)
        self._cursor = at - removed
        self._emit()

    def _snap(self, offset: int) -> int:
        """Clamp to the content and push offsets inside a widget to its end."""
        offset = max(0, min(offset, len(self.get_plain_representation())))
        pos = 0
        for node in self._nodes:
            end = pos + len(node.plain)
            if isinstance(node, TokenWidget) and pos < offset < end:
                return end
            pos = end
        return offset
