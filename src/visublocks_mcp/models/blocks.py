"""Block definition models — reusable animation presets and their parameter schemas.

A ``BlockDefinition`` is referenced from prompt text by id; the library stores
each one as a ``StoredBlock`` alongside the project it was extracted from.
"""

from __future__ import annotations

import random
import re
import time
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ParamType = Literal["color", "text", "number", "select"]

BLOCK_ID_PATTERN = r"^[A-Za-z0-9_-]+$"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class ParamDef(BaseModel):
    """One tunable parameter of a block."""

    key: str = Field(min_length=1, pattern=r"^[^\s=\]]+$")
    label: str = ""
    type: ParamType = "text"
    default: Any = None
    explain: str | None = Field(
        default=None,
        description="Sentence template describing the effect; '{value}' is replaced by the JSON value",
    )

    @model_validator(mode="after")
    def _label_defaults_to_key(self) -> ParamDef:
        if not self.label:
            self.label = self.key
        return self


class BlockDefinition(BaseModel):
    """Reusable preset: stable id, display name and ordered parameter schema."""

    id: str = Field(pattern=BLOCK_ID_PATTERN)
    name: str
    params: list[ParamDef] = Field(default_factory=list)
    hue: float | None = Field(default=None, description="Explicit display hue; hashed from id when unset")

    @field_validator("params")
    @classmethod
    def _unique_keys(cls, params: list[ParamDef]) -> list[ParamDef]:
        seen: set[str] = set()
        for p in params:
            if p.key in seen:
                raise ValueError(f"Duplicate param key '{p.key}'")
            seen.add(p.key)
        return params

    def param(self, key: str) -> ParamDef | None:
        return next((p for p in self.params if p.key == key), None)

    def defaults(self) -> dict[str, Any]:
        return {p.key: p.default for p in self.params}

    def with_param(self, param: ParamDef) -> BlockDefinition:
        """Return a copy with *param* appended. Existing params are never altered."""
        if self.param(param.key) is not None:
            raise ValueError(f"Duplicate param key '{param.key}' on block {self.id}")
        return self.model_copy(update={"params": [*self.params, param]})


class StoredBlock(BaseModel):
    """Persisted library record: ``{"def": BlockDefinition, "project": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    definition: BlockDefinition = Field(alias="def")
    project: Any = None

    @property
    def id(self) -> str:
        return self.definition.id


# ── Drafts from parameter extraction ─────────────────────────────────────────


class DraftParam(BaseModel):
    """Parameter as returned by the extraction model (``name`` doubles as key)."""

    name: str
    type: ParamType = "text"
    default: Any = None
    explain: str | None = None


class BlockDraft(BaseModel):
    """Raw extraction output, normalised by :func:`definition_from_draft`."""

    id: str = ""
    name: str = "Quick Block"
    params: list[DraftParam] = Field(default_factory=list)


def new_block_id() -> str:
    """Unique library id: ``blk_<ms since epoch, base36>_<4 chars>``."""
    ms = int(time.time() * 1000)
    digits = ""
    while ms:
        ms, rem = divmod(ms, 36)
        digits = _BASE36[rem] + digits
    return f"blk_{digits or '0'}_{uuid.uuid4().hex[:4]}"


def definition_from_draft(draft: BlockDraft, hue: float | None = None) -> BlockDefinition:
    """Normalise a draft into a definition with a fresh id and display hue.

    Keys and labels both come from the draft's param names; later duplicates
    of a name are dropped.
    """
    params: list[ParamDef] = []
    seen: set[str] = set()
    for p in draft.params:
        key = re.sub(r"[\s=\]]+", "_", p.name.strip())
        if not key or key in seen:
            continue
        seen.add(key)
        params.append(ParamDef(key=key, label=p.name, type=p.type, default=p.default, explain=p.explain))
    return BlockDefinition(
        id=new_block_id(),
        name=draft.name or "Quick Block",
        params=params,
        hue=hue if hue is not None else random.randrange(360),
    )


_TITLE_PATTERN = re.compile(r">([^<]{3,40})</")


def fallback_draft(project: Any) -> BlockDraft:
    """Deterministic draft used when parameter extraction is unavailable.

    The name is scraped from the first short text node in ``src/MyComp.tsx``.
    """
    files = project.get("files", {}) if isinstance(project, dict) else getattr(project, "files", {})
    code = files.get("src/MyComp.tsx", "") or ""
    match = _TITLE_PATTERN.search(code)
    name = f"Block: {match.group(1).strip()}" if match else "Quick Block"
    return BlockDraft(
        id=f"blk_{uuid.uuid4().hex[:8]}",
        name=name,
        params=[
            DraftParam(name="colorPrimary", type="color", default="#6ea8fe", explain="make the primary color {value}"),
            DraftParam(name="title", type="text", default="Hello", explain="set the title text to {value}"),
            DraftParam(name="speed", type="number", default=1, explain="set the animation speed to {value}"),
        ],
    )
