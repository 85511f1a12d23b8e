"""Rich view projection of a token-annotated prompt.

``render_nodes`` turns the canonical string into plain text runs and opaque
token widgets; ``render_html`` emits the same thing as contenteditable markup.
Each widget embeds its exact source token (base64) so the surface can be read
back into the canonical string without ever looking at display labels.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from .segments import DefinitionLookup
from .tokens import parse_tokens

FOREGROUND = "#e9eef5"


@dataclass(frozen=True)
class TokenColor:
    hue: float
    background: str
    border: str
    foreground: str = FOREGROUND


def token_hue(block_id: str) -> int:
    """Stable hue in [0, 360) from a 31-multiplier rolling hash of the id."""
    h = 0
    for ch in block_id:
        h = (h * 31 + ord(ch)) % 360
    return h


def token_color(block_id: str, hue: float | None = None) -> TokenColor:
    h = hue if hue is not None else token_hue(block_id)
    return TokenColor(
        hue=h,
        background=f"hsla({h:g}, 70%, 28%, 0.40)",
        border=f"hsla({h:g}, 85%, 62%, 0.60)",
    )


def fallback_label(block_id: str) -> str:
    return "Block " + block_id[-4:]


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def encode_attr(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_attr(encoded: str) -> str:
    """Inverse of :func:`encode_attr`; undecodable input is returned unchanged."""
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return encoded


@dataclass(frozen=True)
class TextRun:
    """Editable plain text."""

    text: str

    @property
    def plain(self) -> str:
        return self.text


@dataclass(frozen=True)
class TokenWidget:
    """Non-editable block chip."""

    index: int
    block_id: str
    label: str
    color: TokenColor
    token: str
    editable: bool

    @property
    def plain(self) -> str:
        return decode_attr(self.token)


DisplayNode = Union[TextRun, TokenWidget]


def render_nodes(text: str, definitions: DefinitionLookup | None = None) -> list[DisplayNode]:
    """Project *text* into display nodes. Empty text between tokens produces no run."""
    definitions = definitions or {}
    nodes: list[DisplayNode] = []
    last = 0
    for index, token in enumerate(parse_tokens(text)):
        if token.start > last:
            nodes.append(TextRun(text[last : token.start]))
        definition = definitions.get(token.block_id)
        nodes.append(
            TokenWidget(
                index=index,
                block_id=token.block_id,
                label=definition.name if definition else fallback_label(token.block_id),
                color=token_color(token.block_id, definition.hue if definition else None),
                token=encode_attr(token.source),
                editable=definition is not None,
            )
        )
        last = token.end
    if last < len(text):
        nodes.append(TextRun(text[last:]))
    return nodes


def nodes_to_text(nodes: Sequence[DisplayNode]) -> str:
    return "".join(node.plain for node in nodes)


def _widget_html(node: TokenWidget) -> str:
    c = node.color
    style = (
        "cursor:pointer;display:inline-flex;align-items:center;gap:8px;padding:4px 10px;"
        f"border-radius:999px;background:{c.background};color:{c.foreground};border:1px solid {c.border};"
    )
    return (
        f'<span class="block-token" role="button" tabindex="0" data-token-index="{node.index}" '
        f'data-token="{node.token}" data-block-id="{encode_attr(node.block_id)}" '
        f'contenteditable="false" style="{style}">'
        f'<span style="font-weight:700;">{escape_html(node.label)}</span>'
        "</span>"
    )


def render_html(text: str, definitions: DefinitionLookup | None = None) -> str:
    """Markup for a contenteditable surface."""
    return "".join(
        escape_html(node.text) if isinstance(node, TextRun) else _widget_html(node)
        for node in render_nodes(text, definitions)
    )


def _surface_parts(node: Tag) -> Iterator[str]:
    for child in node.children:
        if isinstance(child, Tag):
            if "block-token" in (child.get("class") or []):
                yield decode_attr(child.get("data-token") or "")
            else:
                yield from _surface_parts(child)
        elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
            yield str(child)


def text_from_html(markup: str) -> str:
    """Reconstruct the canonical string from (possibly user-edited) surface markup.

    Text nodes are taken verbatim; a widget contributes its decoded
    ``data-token`` and nothing below it is read.
    """
    soup = BeautifulSoup(markup, "html.parser")
    return "".join(_surface_parts(soup))
