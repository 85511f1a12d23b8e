"""Load environment variables from the shared VisuBlocks config file.

Values in ``~/.config/visublocks-mcp/.env`` fill in variables the process
environment leaves unset, so the server behaves the same whichever MCP host
launches it. No external dependencies.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ENV_PATH = Path.home() / ".config" / "visublocks-mcp" / ".env"

_QUOTES = ('"', "'")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def _needs_value(key: str, current: str | None) -> bool:
    """Return True when *current* is missing, blank, or a placeholder for *key*.

    Some hosts forward ``VAR="${VAR}"`` verbatim when the variable is not
    defined in the user's shell; those count as unset.
    """
    if current is None:
        return True
    value = _strip_quotes(current.strip()).strip()
    if not value:
        return True
    if value in (f"${key}", f"${{{key}}}"):
        return True
    return value.startswith(f"${{{key}:-") and value.endswith("}")


def parse_dotenv(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines (optionally quoted or ``export``-prefixed).

    Blank lines and ``#`` comments are skipped; there is no variable expansion.
    A missing file yields an empty dict.
    """
    if not path.is_file():
        return {}

    entries: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        line = line.removeprefix("export ")
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        entries[key] = _strip_quotes(value.strip())
    return entries


def load_dotenv(path: Path | None = None) -> dict[str, str]:
    """Inject values from *path* into ``os.environ`` where they are unset.

    Args:
        path: ``.env`` file to read. Defaults to :data:`DEFAULT_ENV_PATH`.

    Returns:
        The variables that were actually injected.
    """
    entries = parse_dotenv(path or DEFAULT_ENV_PATH)
    injected = {k: v for k, v in entries.items() if _needs_value(k, os.environ.get(k))}
    os.environ.update(injected)
    return injected
