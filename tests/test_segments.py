"""Tests for the segment model and its normal form."""

from __future__ import annotations

import pytest

from visublocks_mcp.segments import (
    BlockSegment,
    SegmentList,
    TextSegment,
    from_string,
    insert_block,
    move_index,
    move_segment,
    normalize,
    remove_segment,
    segments_equal,
    to_string,
    update_block,
    update_text,
)


def _shape(segments):
    return [(s.type, s.value) if isinstance(s, TextSegment) else (s.type, s.block_id) for s in segments]


def _is_normal(segments) -> bool:
    """Parsed form: text first and last, strictly alternating."""
    if not segments or not isinstance(segments[0], TextSegment) or not isinstance(segments[-1], TextSegment):
        return False
    return all(type(a) is not type(b) for a, b in zip(segments, segments[1:]))


def _no_adjacent_text(segments) -> bool:
    return all(not (isinstance(a, TextSegment) and isinstance(b, TextSegment)) for a, b in zip(segments, segments[1:]))


class TestFromString:
    def test_basic_parse(self, definitions):
        segments = from_string('Intro [[Block:blk_a color="#fff"]] outro', definitions)
        assert _shape(segments) == [("text", "Intro "), ("block", "blk_a"), ("text", " outro")]
        assert segments[1].values == {"color": "#fff"}
        assert segments[1].source is None

    def test_empty_string_is_one_empty_text(self):
        segments = from_string("")
        assert _shape(segments) == [("text", "")]

    def test_adjacent_tokens_get_empty_text_between(self, definitions):
        segments = from_string("[[Block:blk_a]][[Block:blk_b]]", definitions)
        assert _shape(segments) == [
            ("text", ""), ("block", "blk_a"), ("text", ""), ("block", "blk_b"), ("text", ""),
        ]

    def test_unknown_block_keeps_source(self, definitions):
        text = "x [[Block:ghost  a=1]] y"
        segments = from_string(text, definitions)
        assert segments[1].source == "[[Block:ghost  a=1]]"
        assert to_string(segments, definitions) == text


class TestRoundTrip:
    @pytest.mark.parametrize("text", [
        'Intro [[Block:blk_a color="#fff" speed=2]] outro',
        "[[Block:blk_b]]",
        "plain text only",
        "",
        'a [[Block:blk_b]][[Block:blk_a speed=3]] b',
    ])
    def test_string_segments_string(self, text, definitions):
        assert to_string(from_string(text, definitions), definitions) == text

    def test_segments_string_segments(self, definitions):
        segments = [
            TextSegment(value="Make "),
            BlockSegment(block_id="blk_a", values={"color": "#f00"}),
            TextSegment(value=""),
            BlockSegment(block_id="blk_b"),
            TextSegment(value="a"),
            TextSegment(value="b"),
        ]
        again = from_string(to_string(segments, definitions), definitions)
        assert segments_equal(again, normalize(segments))


class TestNormalize:
    def test_merges_adjacent_text_keeping_first_id(self):
        first = TextSegment(value="a")
        result = normalize([first, TextSegment(value="b")])
        assert _shape(result) == [("text", "ab")]
        assert result[0].id == first.id

    def test_empty_list_becomes_single_text(self):
        assert _shape(normalize([])) == [("text", "")]

    def test_idempotent(self):
        segments = [TextSegment(value="a"), TextSegment(value="b"), BlockSegment(block_id="x"), TextSegment(value="t")]
        once = normalize(segments)
        assert _no_adjacent_text(once)
        assert normalize(once) == once

    def test_blocks_are_not_padded(self):
        segments = [BlockSegment(block_id="x"), BlockSegment(block_id="y")]
        assert _shape(normalize(segments)) == [("block", "x"), ("block", "y")]

    def test_does_not_mutate_input(self):
        a, b = TextSegment(value="a"), TextSegment(value="b")
        normalize([a, b])
        assert a.value == "a"


class TestInsertBlock:
    def test_insert_at_start(self):
        result = insert_block([TextSegment(value="hello")], 0, "blk_b")
        assert _shape(result) == [("text", ""), ("block", "blk_b"), ("text", "hello")]

    def test_insert_at_end_and_clamped(self):
        result = insert_block([TextSegment(value="hello")], 99, "blk_b", {"a": 1})
        assert _shape(result) == [("text", "hello"), ("block", "blk_b"), ("text", "")]
        assert result[1].values == {"a": 1}

    def test_insert_between_blocks(self, definitions):
        segments = from_string("[[Block:blk_a]][[Block:blk_b]]", definitions)
        result = insert_block(segments, 2, "blk_c")
        assert _is_normal(result)
        assert [s.block_id for s in result if isinstance(s, BlockSegment)] == ["blk_a", "blk_c", "blk_b"]


class TestRemoveSegment:
    def test_remove_block_merges_neighbours(self, definitions):
        segments = from_string("a [[Block:blk_a]] b", definitions)
        result = remove_segment(segments, segments[1].id)
        assert _shape(result) == [("text", "a  b")]

    def test_remove_last_text_never_empty(self):
        only = TextSegment(value="x")
        assert _shape(remove_segment([only], only.id)) == [("text", "")]

    def test_remove_unknown_id_is_noop(self):
        segments = [TextSegment(value="x")]
        assert segments_equal(remove_segment(segments, "nope"), segments)


class TestMove:
    @pytest.mark.parametrize("from_index,target,expected", [
        (3, 1, 1),
        (1, 3, 2),
        (0, 0, 0),
        (0, 1, 0),
        (2, 2, 2),
    ])
    def test_move_index(self, from_index, target, expected):
        assert move_index(from_index, target) == expected

    def test_move_later_segment_before_earlier(self):
        segments = [
            TextSegment(value="t0"),
            BlockSegment(block_id="b1"),
            TextSegment(value="t2"),
            BlockSegment(block_id="b3"),
            TextSegment(value="t4"),
        ]
        result = move_segment(segments, segments[3].id, 1)
        assert _shape(result) == [("text", "t0"), ("block", "b3"), ("block", "b1"), ("text", "t2t4")]
        assert result[1].id == segments[3].id
        assert result[2].id == segments[1].id

    def test_move_unknown_id_keeps_list(self):
        segments = [TextSegment(value="x")]
        assert segments_equal(move_segment(segments, "nope", 0), segments)


class TestUpdates:
    def test_update_text(self):
        seg = TextSegment(value="a")
        assert _shape(update_text([seg], seg.id, "b")) == [("text", "b")]

    def test_update_block_values_and_context(self, definitions):
        segments = from_string("[[Block:ghost]]", definitions)
        block = segments[1]
        result = update_block(segments, block.id, values={"a": 1}, context_url="https://example.com")
        assert result[1].values == {"a": 1}
        assert result[1].context_url == "https://example.com"
        assert result[1].source is None

    def test_segments_equal_ignores_ids_but_not_context(self):
        a = [TextSegment(value=""), BlockSegment(block_id="x", context_url="u"), TextSegment(value="")]
        b = [TextSegment(value=""), BlockSegment(block_id="x"), TextSegment(value="")]
        assert not segments_equal(a, b)
        assert segments_equal(a, normalize(a))


class TestSegmentList:
    def test_validates_discriminated_union(self):
        parsed = SegmentList.validate_python([
            {"type": "text", "value": "hi"},
            {"type": "block", "block_id": "blk_a", "values": {"speed": 2}},
        ])
        assert isinstance(parsed[0], TextSegment)
        assert isinstance(parsed[1], BlockSegment)
        assert parsed[1].values == {"speed": 2}
