"""Context flattening: composed prompt → ordered, fully resolved block usages.

Usages whose block id is missing from the library are skipped; a definition
may have been deleted while prompts still reference it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .models.blocks import BlockDefinition, StoredBlock
from .models.usage import BlockUsage, ResolvedParam, UsageContext, UsageDef, UsageParamDef
from .segments import BlockSegment, TextSegment
from .tokens import effective_values, encode_literal, parse_tokens

logger = logging.getLogger(__name__)

FALLBACK_EXPLAIN = "set {key} to {{value}}"


def render_explain(template: str, value: Any) -> str:
    """Substitute the first ``{value}`` with the compact JSON rendering of *value*."""
    return template.replace("{value}", encode_literal(value), 1)


def explain_sentences(usage: BlockUsage, *, fallback: bool = False) -> list[str]:
    """Effect sentences for a usage, in declared param order.

    Params without a template are skipped unless *fallback* is set, in which
    case they read ``set <key> to <value>``.
    """
    sentences: list[str] = []
    for pdef, resolved in zip(usage.definition.params, usage.params):
        template = pdef.explain or (FALLBACK_EXPLAIN.format(key=pdef.key) if fallback else None)
        if template:
            sentences.append(render_explain(template, resolved.value))
    return sentences


def build_usage(
    block: StoredBlock,
    values: Mapping[str, Any],
    *,
    context_url: str | None = None,
    context_data: str | None = None,
) -> BlockUsage:
    definition: BlockDefinition = block.definition
    resolved = effective_values(definition, values)
    context = None
    if context_url or context_data:
        context = UsageContext(url=context_url or "", data=context_data or "")
    return BlockUsage(
        id=definition.id,
        name=definition.name,
        definition=UsageDef(
            params=[
                UsageParamDef(key=p.key, label=p.label, type=p.type, default=p.default, explain=p.explain)
                for p in definition.params
            ]
        ),
        params=[ResolvedParam(key=p.key, default=p.default, value=resolved[p.key]) for p in definition.params],
        project=block.project,
        context=context,
    )


def _index(blocks: Mapping[str, StoredBlock] | Iterable[StoredBlock]) -> Mapping[str, StoredBlock]:
    if isinstance(blocks, Mapping):
        return blocks
    return {b.id: b for b in blocks}


def flatten_segments(
    segments: Sequence[TextSegment | BlockSegment],
    blocks: Mapping[str, StoredBlock] | Iterable[StoredBlock],
) -> list[BlockUsage]:
    lookup = _index(blocks)
    usages: list[BlockUsage] = []
    for seg in segments:
        if not isinstance(seg, BlockSegment):
            continue
        block = lookup.get(seg.block_id)
        if block is None:
            logger.debug("Skipping usage of unknown block %s", seg.block_id)
            continue
        usages.append(
            build_usage(block, seg.values, context_url=seg.context_url, context_data=seg.context_data)
        )
    return usages


def flatten_text(text: str, blocks: Mapping[str, StoredBlock] | Iterable[StoredBlock]) -> list[BlockUsage]:
    lookup = _index(blocks)
    usages: list[BlockUsage] = []
    for token in parse_tokens(text):
        block = lookup.get(token.block_id)
        if block is None:
            logger.debug("Skipping token for unknown block %s", token.block_id)
            continue
        usages.append(build_usage(block, token.params))
    return usages


def prompt_text(segments: Sequence[TextSegment | BlockSegment]) -> str:
    """Free text of a segmented prompt: non-blank text segments joined by blank lines."""
    return "\n\n".join(seg.value for seg in segments if isinstance(seg, TextSegment) and seg.value.strip())
