"""Tests for context flattening."""

from __future__ import annotations

from tests.conftest import make_definition
from visublocks_mcp.flatten import (
    build_usage,
    explain_sentences,
    flatten_segments,
    flatten_text,
    prompt_text,
    render_explain,
)
from visublocks_mcp.models.blocks import ParamDef, StoredBlock
from visublocks_mcp.segments import from_string


class TestRenderExplain:
    def test_number(self):
        assert render_explain("set the animation speed to {value}", 2) == "set the animation speed to 2"

    def test_string_is_json_quoted(self):
        assert render_explain("make it {value}", "#fff") == 'make it "#fff"'

    def test_only_first_placeholder(self):
        assert render_explain("{value} and {value}", 1) == "1 and {value}"


class TestBuildUsage:
    def test_effective_values_and_shape(self):
        block = StoredBlock(definition=make_definition(), project={"files": {}})
        usage = build_usage(block, {"speed": 2})
        dumped = usage.model_dump(by_alias=True)
        assert set(dumped) == {"id", "name", "def", "params", "project", "context"}
        assert dumped["params"] == [
            {"key": "color", "default": "#000", "value": "#000"},
            {"key": "speed", "default": 1, "value": 2},
        ]
        assert dumped["context"] is None

    def test_explain_sentence_example(self):
        definition = make_definition(params=[
            ParamDef(key="speed", type="number", default=1, explain="set the animation speed to {value}"),
        ])
        usage = build_usage(StoredBlock(definition=definition), {"speed": 2})
        assert explain_sentences(usage) == ["set the animation speed to 2"]

    def test_fallback_template(self):
        definition = make_definition(params=[ParamDef(key="size", type="number", default=3)])
        usage = build_usage(StoredBlock(definition=definition), {})
        assert explain_sentences(usage) == []
        assert explain_sentences(usage, fallback=True) == ["set size to 3"]


class TestFlatten:
    def test_flatten_text_in_order_skipping_unknown(self, library):
        text = "[[Block:blk_b]] x [[Block:ghost]] [[Block:blk_a speed=5]]"
        usages = flatten_text(text, library.blocks())
        assert [u.id for u in usages] == ["blk_b", "blk_a"]
        assert usages[1].value_of("speed") == 5
        assert usages[1].value_of("color") == "#000"

    def test_flatten_segments_accepts_iterable(self, library):
        segments = from_string("a [[Block:blk_a]] b", library.definitions())
        usages = flatten_segments(segments, list(library))
        assert [u.name for u in usages] == ["Bouncing Boxes"]
        assert usages[0].project["kind"] == "remotion-project"

    def test_text_and_segments_agree(self, library):
        text = 'x [[Block:blk_a color="#abc"]] y [[Block:blk_b]]'
        from_text = flatten_text(text, library.blocks())
        from_segments = flatten_segments(from_string(text, library.definitions()), library.blocks())
        assert [u.model_dump() for u in from_text] == [u.model_dump() for u in from_segments]

    def test_prompt_text_skips_blank(self, library):
        segments = from_string("[[Block:blk_a]]  [[Block:blk_b]]tail", library.definitions())
        assert prompt_text(segments) == "tail"
