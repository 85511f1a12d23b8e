"""Tests for the block library and its repositories."""

from __future__ import annotations

import pytest

import visublocks_mcp.library as library_mod
from tests.conftest import make_definition
from visublocks_mcp.errors import BlockNotFoundError
from visublocks_mcp.library import BlockLibrary, MemoryBlockRepository, get_library, set_library
from visublocks_mcp.models.blocks import ParamDef, StoredBlock
from visublocks_mcp.persistence import BlockDB


class TestBlockLibrary:
    def test_add_prepends(self, library):
        library.add(StoredBlock(definition=make_definition("blk_new", "New")))
        assert [b.id for b in library] == ["blk_new", "blk_a", "blk_b"]

    def test_add_replaces_same_id(self, library):
        library.add(StoredBlock(definition=make_definition("blk_b", "Renamed")))
        assert len(library) == 2
        assert library.require("blk_b").definition.name == "Renamed"

    def test_require_unknown(self, library):
        with pytest.raises(BlockNotFoundError, match="Block not found: nope"):
            library.require("nope")

    def test_remove(self, library):
        assert library.remove("blk_a") is True
        assert library.remove("blk_a") is False
        assert "blk_a" not in library

    def test_append_param_is_append_only(self, library):
        definition = library.append_param("blk_a", ParamDef(key="size", type="number", default=10))
        assert [p.key for p in definition.params] == ["color", "speed", "size"]
        assert library.definitions()["blk_a"].param("size").label == "size"
        with pytest.raises(ValueError, match="Duplicate"):
            library.append_param("blk_a", ParamDef(key="speed"))

    def test_writes_through_to_repository(self):
        repo = MemoryBlockRepository()
        lib = BlockLibrary(repo)
        lib.add(StoredBlock(definition=make_definition()))
        assert [b.id for b in repo.load()] == ["blk_a"]
        lib.remove("blk_a")
        assert repo.load() == []


class TestDefaultLibrary:
    def test_memory_when_no_db_configured(self):
        set_library(None)
        lib = get_library()
        assert len(lib) == 0
        assert get_library() is lib

    def test_sqlite_when_db_configured(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VISUBLOCKS_BLOCKS_DB", str(tmp_path / "blocks.db"))
        set_library(None)
        lib = get_library()
        assert isinstance(lib._repository, BlockDB)
        lib.close()
        set_library(None)
        assert library_mod._library is None


class TestBlockDB:
    @pytest.fixture()
    def db(self, tmp_path):
        d = BlockDB(str(tmp_path / "nested" / "blocks.db"))
        yield d
        d.close()

    def test_empty_load(self, db):
        assert db.load() == []

    def test_roundtrip_preserves_order_and_project(self, db):
        blocks = [
            StoredBlock(definition=make_definition("blk_2", "Two"), project={"files": {"a": "b"}}),
            StoredBlock(definition=make_definition("blk_1", "One", hue=42)),
        ]
        db.save(blocks)
        loaded = db.load()
        assert [b.id for b in loaded] == ["blk_2", "blk_1"]
        assert loaded[0].project == {"files": {"a": "b"}}
        assert loaded[1].definition.hue == 42

    def test_save_replaces_everything(self, db):
        db.save([StoredBlock(definition=make_definition("blk_x"))])
        db.save([StoredBlock(definition=make_definition("blk_y"))])
        assert [b.id for b in db.load()] == ["blk_y"]

    def test_payload_uses_def_key(self, db):
        db.save([StoredBlock(definition=make_definition())])
        (payload,) = db._conn.execute("SELECT payload FROM blocks").fetchone()
        assert payload.startswith('{"def":')

    def test_unreadable_row_skipped(self, db):
        db.save([StoredBlock(definition=make_definition())])
        db._conn.execute("INSERT INTO blocks VALUES (5, 'bad', 'bad', 'not json')")
        db._conn.commit()
        assert [b.id for b in db.load()] == ["blk_a"]

    def test_library_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "blocks.db")
        first = BlockLibrary(BlockDB(path))
        first.add(StoredBlock(definition=make_definition()))
        first.append_param("blk_a", ParamDef(key="size", default=1))
        first.close()
        second = BlockLibrary(BlockDB(path))
        assert [p.key for p in second.require("blk_a").definition.params] == ["color", "speed", "size"]
        second.close()
