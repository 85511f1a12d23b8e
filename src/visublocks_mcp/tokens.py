"""Inline block-token grammar: ``[[Block:<id> <key>=<json> ...]]``.

Tokens are found with a single non-overlapping scan; anything that does not
match stays literal text. Parameter values decode one pair at a time, so a bad
literal never spoils its neighbours.

Known limitation: pairs are split on whitespace before decoding, so an
unquoted ``title=Hello World`` yields ``{"title": "Hello"}`` and the stray
``World`` is dropped. Quoted strings containing whitespace are cut the same
way. This matches the wire format already stored in saved prompts.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models.blocks import BlockDefinition

TOKEN_PATTERN = re.compile(r"\[\[Block:([A-Za-z0-9_-]+)([^\]]*)\]\]")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def decode_literal(raw: str) -> Any:
    """Decode one JSON literal, returning *raw* unchanged when it is not valid JSON."""
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        return raw


def encode_literal(value: Any) -> str:
    """Compact JSON rendering used both in tokens and in explain sentences."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def decode_params(raw_params: str) -> dict[str, Any]:
    """Decode the ``key=value`` pairs of a token body.

    Pairs without ``=`` or with an empty key are ignored. Later duplicates win.
    """
    values: dict[str, Any] = {}
    for pair in raw_params.split():
        key, sep, literal = pair.partition("=")
        if not sep or not key:
            continue
        values[key] = decode_literal(literal)
    return values


@dataclass(frozen=True)
class TokenMatch:
    """A token occurrence; ``end`` is exclusive and ``source`` is the exact substring."""

    start: int
    end: int
    block_id: str
    raw_params: str
    source: str
    params: dict[str, Any] = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", decode_params(self.raw_params))


def parse_tokens(text: str) -> list[TokenMatch]:
    """Return every block token in *text*, leftmost first. Never raises."""
    return [
        TokenMatch(
            start=m.start(),
            end=m.end(),
            block_id=m.group(1),
            raw_params=m.group(2),
            source=m.group(0),
        )
        for m in TOKEN_PATTERN.finditer(text)
    ]


def effective_values(definition: BlockDefinition, values: Mapping[str, Any]) -> dict[str, Any]:
    """Pair each declared param with its explicit value, or the default when missing/None."""
    resolved: dict[str, Any] = {}
    for p in definition.params:
        value = values.get(p.key)
        resolved[p.key] = p.default if value is None else value
    return resolved


def serialize_token(
    block_id: str,
    values: Mapping[str, Any] | None = None,
    definition: BlockDefinition | None = None,
) -> str:
    """Build the token text for *block_id*.

    With a definition, declared params present in *values* come first in
    declaration order, followed by any undeclared keys in mapping order.
    """
    values = values or {}
    if definition is not None:
        declared = [p.key for p in definition.params if p.key in values]
        extra = [k for k in values if definition.param(k) is None]
        keys = declared + extra
    else:
        keys = list(values)
    pairs = " ".join(f"{k}={encode_literal(values[k])}" for k in keys)
    return f"[[Block:{block_id} {pairs}]]" if pairs else f"[[Block:{block_id}]]"


def find_token_by_index(text: str, index: int) -> TokenMatch | None:
    """Return the *index*-th token (0-based), or None when out of range."""
    tokens = parse_tokens(text)
    return tokens[index] if 0 <= index < len(tokens) else None


def replace_token(text: str, token: TokenMatch, replacement: str) -> str:
    return text[: token.start] + replacement + text[token.end :]
