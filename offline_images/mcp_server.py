"""MCP server exposing note and vault image localisation tools."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from .config import SETTINGS_FILENAME, load_settings
from .processor import process_all_files, process_file
from .storage import FileSystemVault

logger = logging.getLogger("offline_images.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="offline-images")


def _settings_path(vault: Path, settings: Optional[str]) -> Path:
    if settings:
        return Path(settings).expanduser()
    return vault / SETTINGS_FILENAME


@mcp.tool()
async def localize_file(path: str, vault: str = ".", settings: Optional[str] = None) -> str:
    """Download the remote images of one Markdown note and link the local copies."""

    root = Path(vault).expanduser()
    note = Path(path).expanduser()
    if not note.exists():
        raise FileNotFoundError(f"Note does not exist: {note}")

    storage = FileSystemVault(root)
    messages: List[str] = []
    result = await process_file(
        storage,
        storage.relative(note),
        load_settings(_settings_path(root, settings)),
        notify=messages.append,
    )
    if result is None:
        raise ValueError(f"Not a Markdown note: {note}")
    if result.error:
        raise RuntimeError(f"Failed to process {note}: {result.error}")
    return "\n".join(messages) or result.stats.summary()


@mcp.tool()
async def localize_vault(vault: str, settings: Optional[str] = None) -> str:
    """Download the remote images of every Markdown note in a vault."""

    root = Path(vault).expanduser()
    if not root.is_dir():
        raise FileNotFoundError(f"Vault directory does not exist: {root}")

    storage = FileSystemVault(root)
    batch = await process_all_files(storage, load_settings(_settings_path(root, settings)))
    lines = [batch.summary()]
    lines.extend(f"Error in {doc.path}: {doc.error}" for doc in batch.errors)
    return "\n".join(lines)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
