"""Bidirectional sync between an editable rich surface and the canonical string.

Forward sync (surface → string) runs on every raw input event and rebuilds the
string from the surface, where widgets contribute their embedded token text.
Backward sync (string → surface) re-renders the surface whenever the string
changes from anywhere else.

One ``SyncState`` variable replaces a pair of suppression flags:

* while ``SYNCING_FORWARD`` a backward re-render of the text the surface
  already shows is skipped; new input is still published;
* while ``SYNCING_BACKWARD`` input events are ignored, since they are echoes of
  the engine's own re-render.

A state is set before the dependent step runs and released on the next event
loop tick (immediately when no loop is running). If a step raises, the state
is released at once and the exception propagates.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .errors import BlockNotFoundError, TokenNotFoundError
from .render import DisplayNode, render_nodes
from .segments import DefinitionLookup
from .tokens import effective_values, find_token_by_index, parse_tokens, replace_token, serialize_token

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING_FORWARD = "syncing_forward"
    SYNCING_BACKWARD = "syncing_backward"


class EditableBuffer(Protocol):
    """What the engine needs from a concrete rich-text widget."""

    def get_plain_representation(self) -> str: ...

    def insert_at_cursor(self, text: str) -> None: ...

    def replace_content(self, nodes: Sequence[DisplayNode]) -> None: ...

    def get_cursor(self) -> int | None: ...

    def set_cursor(self, offset: int) -> None: ...


@dataclass(frozen=True)
class TokenEdit:
    """A token opened for parameter editing, located by index and span."""

    index: int
    start: int
    end: int
    block_id: str
    source: str
    values: dict[str, Any] = field(default_factory=dict)


def call_next_tick(callback: Callable[[], None]) -> None:
    """Run *callback* on the next loop iteration, or now when no loop is running."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return
    loop.call_soon(callback)


class PromptSync:
    """Keeps one ``EditableBuffer`` and the canonical prompt string consistent."""

    def __init__(
        self,
        buffer: EditableBuffer,
        definitions: DefinitionLookup | Callable[[], DefinitionLookup] | None = None,
        *,
        text: str = "",
        schedule: Callable[[Callable[[], None]], None] = call_next_tick,
    ) -> None:
        self._buffer = buffer
        if callable(definitions):
            self._lookup = definitions
        else:
            fixed = definitions or {}
            self._lookup = lambda: fixed
        self._schedule = schedule
        self._text = text
        self._state = SyncState.IDLE
        self._epoch = 0
        self._listeners: list[Callable[[str], None]] = []
        if text:
            self._apply(text)

    @property
    def text(self) -> str:
        return self._text

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is not SyncState.IDLE

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """Call *listener* with every newly published string. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def is_consistent(self) -> bool:
        return self._buffer.get_plain_representation() == self._text

    # ── guard ────────────────────────────────────────────────────────────

    @contextmanager
    def _entered(self, state: SyncState) -> Iterator[None]:
        self._state = state
        self._epoch += 1
        epoch = self._epoch
        try:
            yield
        except BaseException:
            self._state = SyncState.IDLE
            raise
        self._schedule(lambda: self._release(epoch))

    def _release(self, epoch: int) -> None:
        if epoch == self._epoch:
            self._state = SyncState.IDLE

    # ── internals ────────────────────────────────────────────────────────

    def _publish(self, text: str) -> None:
        if text == self._text:
            return
        self._text = text
        for listener in list(self._listeners):
            listener(text)

    def _render(self) -> None:
        cursor = self._buffer.get_cursor()
        self._buffer.replace_content(render_nodes(self._text, self._lookup()))
        if cursor is not None:
            self._buffer.set_cursor(min(cursor, len(self._text)))

    def _apply(self, text: str) -> None:
        with self._entered(SyncState.SYNCING_BACKWARD):
            self._publish(text)
            self._render()

    # ── forward ──────────────────────────────────────────────────────────

    def handle_input(self) -> None:
        """Raw input event from the surface.

        Only echoes of a backward re-render are dropped; every other event is
        published, including a second edit before the previous one is released.
        """
        if self._state is SyncState.SYNCING_BACKWARD:
            logger.debug("Input ignored while %s", self._state.value)
            return
        with self._entered(SyncState.SYNCING_FORWARD):
            self._publish(self._buffer.get_plain_representation())

    # ── backward ─────────────────────────────────────────────────────────

    def set_text(self, text: str) -> None:
        """Canonical string changed outside the surface (load, programmatic edit)."""
        if self._state is SyncState.SYNCING_FORWARD and text == self._buffer.get_plain_representation():
            logger.debug("Re-render suppressed; surface already shows the published text")
            self._publish(text)
            return
        if text == self._text and self.is_consistent():
            return
        self._apply(text)

    def refresh(self) -> None:
        """Re-render after definitions changed (labels, colours, editability)."""
        with self._entered(SyncState.SYNCING_BACKWARD):
            self._render()

    # ── programmatic insertion ───────────────────────────────────────────

    def insert_block_at_caret(self, block_id: str, values: Mapping[str, Any] | None = None) -> str:
        """Insert a token at the caret (or at the end when the caret is elsewhere).

        A unique marker goes in first, the surface text is read back, and the
        marker is swapped for the real token; the caret ends up after it.
        Returns the inserted token.
        """
        token = serialize_token(block_id, values or {}, self._lookup().get(block_id))
        marker = f"§§MARKER-{uuid.uuid4().hex[:8]}§§"
        with self._entered(SyncState.SYNCING_BACKWARD):
            if self._buffer.get_cursor() is None:
                self._buffer.set_cursor(len(self._buffer.get_plain_representation()))
            self._buffer.insert_at_cursor(marker)
            with_marker = self._buffer.get_plain_representation()
            at = with_marker.find(marker)
            if at == -1:
                logger.warning("Insertion marker lost; appending %s at end", block_id)
                at = len(self._text)
                text = self._text + token
            else:
                text = with_marker.replace(marker, token, 1)
            self._publish(text)
            self._render()
            self._buffer.set_cursor(at + len(token))
        return token

    # ── token editing ────────────────────────────────────────────────────

    def open_token(self, index: int) -> TokenEdit | None:
        """Open the *index*-th token for editing; None if missing or its block is unknown."""
        token = find_token_by_index(self._text, index)
        if token is None or token.block_id not in self._lookup():
            return None
        return TokenEdit(
            index=index,
            start=token.start,
            end=token.end,
            block_id=token.block_id,
            source=token.source,
            values=dict(token.params),
        )

    def save_token(self, edit: TokenEdit, values: Mapping[str, Any] | None = None) -> str:
        """Rewrite the edited token with every declared param, then re-render.

        If the text shifted since the token was opened, it is found again by index.
        """
        definition = self._lookup().get(edit.block_id)
        if definition is None:
            raise BlockNotFoundError(edit.block_id)
        token = next(
            (t for t in parse_tokens(self._text) if t.start == edit.start and t.source == edit.source),
            None,
        )
        if token is None:
            token = find_token_by_index(self._text, edit.index)
        if token is None or token.block_id != edit.block_id:
            raise TokenNotFoundError(f"Token {edit.index} for {edit.block_id} is gone")
        merged = {**edit.values, **(values or {})}
        new_token = serialize_token(definition.id, effective_values(definition, merged), definition)
        self._apply(replace_token(self._text, token, new_token))
        return new_token
