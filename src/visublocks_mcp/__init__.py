"""VisuBlocks MCP — block-token prompt composition for Remotion video generation."""

__version__ = "0.1.0"
