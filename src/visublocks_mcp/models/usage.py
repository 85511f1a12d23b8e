"""Flattened block usage records — the per-block payload of a generation request."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .blocks import ParamType


class UsageParamDef(BaseModel):
    key: str
    label: str
    type: ParamType
    default: Any = None
    explain: str | None = None


class UsageDef(BaseModel):
    params: list[UsageParamDef] = Field(default_factory=list)


class ResolvedParam(BaseModel):
    """A declared param with its effective value (explicit, else default)."""

    key: str
    default: Any = None
    value: Any = None


class UsageContext(BaseModel):
    url: str = ""
    data: str = ""


class BlockUsage(BaseModel):
    """One resolved block reference, in prompt order.

    Serialises with the ``def`` key expected by the generation request.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    definition: UsageDef = Field(alias="def")
    params: list[ResolvedParam] = Field(default_factory=list)
    project: Any = None
    context: UsageContext | None = None

    def value_of(self, key: str) -> Any:
        return next((p.value for p in self.params if p.key == key), None)
