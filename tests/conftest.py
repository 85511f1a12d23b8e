"""Shared test fixtures for visublocks-mcp."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from visublocks_mcp.library import BlockLibrary, MemoryBlockRepository, set_library
from visublocks_mcp.models.blocks import BlockDefinition, ParamDef, StoredBlock


def unwrap_tool(tool: Any) -> Any:
    """Return the plain coroutine function behind a registered tool.

    Depending on the FastMCP release, ``@server.tool`` returns either the
    function itself or a non-callable FunctionTool holding it in ``fn``.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Replace FunctionTool objects in the tool modules with their functions.

    Lets tests ``await blocks_list(...)`` regardless of FastMCP version.
    """
    import importlib
    import pkgutil

    import visublocks_mcp.tools as tools_pkg

    for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + "."):
        mod = importlib.import_module(info.name)
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, unwrap_tool(obj))


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """A fake key so code paths that require one run; the client is always mocked."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")


@pytest.fixture(autouse=True)
def _disable_tracing(monkeypatch):
    """Keep MLflow out of tests; ``test_tracing.py`` patches the module directly."""
    monkeypatch.setenv("GEMINI_TRACING_ENABLED", "false")


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/visublocks-mcp/.env."""
    monkeypatch.setattr(
        "visublocks_mcp.dotenv.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Reset the config singleton and store settings between tests."""
    import visublocks_mcp.config as cfg_mod

    monkeypatch.delenv("VISUBLOCKS_BLOCKS_DB", raising=False)
    monkeypatch.delenv("DEV_FALLBACK", raising=False)
    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture(autouse=True)
def _memory_library():
    """Give every test a fresh, empty in-memory block library."""
    set_library(BlockLibrary(MemoryBlockRepository()))
    yield
    set_library(None)


def make_definition(block_id: str = "blk_a", name: str = "Bouncing Boxes", **kwargs: Any) -> BlockDefinition:
    params = kwargs.pop(
        "params",
        [
            ParamDef(key="color", type="color", default="#000", explain="make the boxes {value}"),
            ParamDef(key="speed", type="number", default=1, explain="set the animation speed to {value}"),
        ],
    )
    return BlockDefinition(id=block_id, name=name, params=params, **kwargs)


SAMPLE_PROJECT = {
    "kind": "remotion-project",
    "files": {
        "src/index.ts": "import {registerRoot} from 'remotion';\nimport {Root} from './Root';\nregisterRoot(Root);\n",
        "src/Root.tsx": "export const Root = () => null;\n",
        "src/MyComp.tsx": "export const MyComp = () => <div>Spinning Logo</div>;\n",
    },
    "compositionId": "MyComp",
    "width": 1920,
    "height": 1080,
    "fps": 30,
    "durationInFrames": 90,
}


@pytest.fixture()
def library():
    """Library preloaded with blk_a (color, speed) and blk_b (no params)."""
    lib = BlockLibrary(
        MemoryBlockRepository(
            [
                StoredBlock(definition=make_definition(), project=SAMPLE_PROJECT),
                StoredBlock(definition=BlockDefinition(id="blk_b", name="Title Card", hue=200)),
            ]
        )
    )
    set_library(lib)
    return lib


@pytest.fixture()
def definitions(library):
    return library.definitions()


@pytest.fixture()
def mock_gemini_client():
    """Patch GeminiClient.get(), .generate() and .generate_json() for unit tests."""
    with (
        patch("visublocks_mcp.client.GeminiClient.get") as mock_get,
        patch("visublocks_mcp.client.GeminiClient.generate", new_callable=AsyncMock) as mock_gen,
        patch("visublocks_mcp.client.GeminiClient.generate_json", new_callable=AsyncMock) as mock_json,
    ):
        client = MagicMock()
        mock_get.return_value = client
        yield {
            "get": mock_get,
            "generate": mock_gen,
            "generate_json": mock_json,
            "client": client,
        }
