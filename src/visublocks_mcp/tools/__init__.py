"""FastMCP sub-servers mounted by :mod:`visublocks_mcp.server`."""
