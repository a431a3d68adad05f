"""Storage layer for the Bear Notes MCP server."""

from bear_mcp.storage.base import NoteRepository
from bear_mcp.storage.note_repository import BearNoteRepository

__all__ = [
    "NoteRepository",
    "BearNoteRepository",
]
