"""gdrive-mcp: MCP server for Google Docs and Drive."""

from gdrive_mcp.__version__ import __version__

__all__ = ["__version__"]
