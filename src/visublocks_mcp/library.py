"""Block library — definitions looked up by id, persisted through a repository."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol

from .config import get_config
from .errors import BlockNotFoundError
from .models.blocks import BlockDefinition, ParamDef, StoredBlock

logger = logging.getLogger(__name__)


class BlockRepository(Protocol):
    """Load/save boundary of the external definition store."""

    def load(self) -> list[StoredBlock]: ...

    def save(self, blocks: list[StoredBlock]) -> None: ...


class MemoryBlockRepository:
    """Process-local repository; contents vanish with the process."""

    def __init__(self, blocks: list[StoredBlock] | None = None) -> None:
        self._blocks = list(blocks or [])

    def load(self) -> list[StoredBlock]:
        return list(self._blocks)

    def save(self, blocks: list[StoredBlock]) -> None:
        self._blocks = list(blocks)


class BlockLibrary:
    """Ordered collection of stored blocks (newest first) with write-through saves."""

    def __init__(self, repository: BlockRepository) -> None:
        self._repository = repository
        self._blocks: list[StoredBlock] = repository.load()
        logger.info("Loaded %d block definition(s)", len(self._blocks))

    def __iter__(self) -> Iterator[StoredBlock]:
        return iter(list(self._blocks))

    def __len__(self) -> int:
        return len(self._blocks)

    def __contains__(self, block_id: object) -> bool:
        return any(b.id == block_id for b in self._blocks)

    def get(self, block_id: str) -> StoredBlock | None:
        return next((b for b in self._blocks if b.id == block_id), None)

    def require(self, block_id: str) -> StoredBlock:
        block = self.get(block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        return block

    def blocks(self) -> dict[str, StoredBlock]:
        return {b.id: b for b in self._blocks}

    def definitions(self) -> dict[str, BlockDefinition]:
        return {b.id: b.definition for b in self._blocks}

    def add(self, block: StoredBlock) -> StoredBlock:
        """Prepend *block*; an existing entry with the same id is replaced."""
        self._blocks = [block, *(b for b in self._blocks if b.id != block.id)]
        self._save()
        return block

    def remove(self, block_id: str) -> bool:
        before = len(self._blocks)
        self._blocks = [b for b in self._blocks if b.id != block_id]
        if len(self._blocks) == before:
            return False
        self._save()
        return True

    def append_param(self, block_id: str, param: ParamDef) -> BlockDefinition:
        """Extend a definition with one more param (definitions are append-only)."""
        block = self.require(block_id)
        definition = block.definition.with_param(param)
        updated = block.model_copy(update={"definition": definition})
        self._blocks = [updated if b.id == block_id else b for b in self._blocks]
        self._save()
        return definition

    def _save(self) -> None:
        self._repository.save(list(self._blocks))
        logger.debug("Saved %d block definition(s)", len(self._blocks))

    def close(self) -> None:
        """Release the repository's resources, if it holds any."""
        close = getattr(self._repository, "close", None)
        if close is not None:
            close()


def _make_default_library() -> BlockLibrary:
    """Build the library from config: SQLite when a path is set, memory otherwise."""
    cfg = get_config()
    if cfg.blocks_db_path:
        from .persistence import BlockDB

        return BlockLibrary(BlockDB(cfg.blocks_db_path))
    return BlockLibrary(MemoryBlockRepository())


_library: BlockLibrary | None = None


def get_library() -> BlockLibrary:
    """Return the process-wide library, creating it on first access."""
    global _library
    if _library is None:
        _library = _make_default_library()
    return _library


def set_library(library: BlockLibrary | None) -> None:
    """Swap the process-wide library (``None`` rebuilds it from config on next access)."""
    global _library
    _library = library
