"""
Bear Notes MCP - search and discovery for a Bear notes library as an MCP server.
This package implements a Model Context Protocol (MCP) server that lets an
assistant run ranked full-text searches, autocomplete queries and find similar
or related notes in a local Bear database.

The Bear database is opened read-only.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bear-notes-mcp")
except PackageNotFoundError:
    __version__ = "0.3.0"
