"""VisuBlocks MCP server: the root FastMCP app with the prompt, blocks, generate and infra tools."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .client import GeminiClient
from .library import get_library, set_library
from .tools.blocks import blocks_server
from .tools.generate import generate_server
from .tools.infra import infra_server
from .tools.prompt import prompt_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook — tracing, block store and Gemini clients."""
    tracing.setup()
    library = get_library()
    logger.info("Block library ready (%d definition(s))", len(library))
    yield {}
    library.close()
    set_library(None)
    closed = await GeminiClient.close_all()
    tracing.shutdown()
    logger.info("Shutdown complete (%d Gemini client(s) closed)", closed)


app = FastMCP(
    "visublocks",
    instructions=(
        "Compose video prompts from reusable animation blocks. Prompts embed "
        "[[Block:<id> key=value ...]] tokens; parse, render, edit and reorder "
        "them, then generate a Remotion project with Gemini."
    ),
    lifespan=_lifespan,
)

app.mount(prompt_server)
app.mount(blocks_server)
app.mount(generate_server)
app.mount(infra_server)


def main() -> None:
    """Entry-point for the ``visublocks-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
