"""Pydantic records shared by the engine, the library and the tools."""

from .blocks import BlockDefinition, BlockDraft, DraftParam, ParamDef, StoredBlock
from .project import FALLBACK_PROJECT, RemotionProject
from .usage import BlockUsage, ResolvedParam, UsageContext

__all__ = [
    "BlockDefinition",
    "BlockDraft",
    "BlockUsage",
    "DraftParam",
    "FALLBACK_PROJECT",
    "ParamDef",
    "RemotionProject",
    "ResolvedParam",
    "StoredBlock",
    "UsageContext",
]
