"""MCP server implementation for Google Docs and Drive.

Docs Tools (11):
- Read content with exact document indices
- Search text and report index ranges
- Create, replace, append and insert content
- Delete ranges and replace all occurrences
- Style index ranges or matched text
- List document tabs

Drive Tools (2):
- Search files
- List folder contents

Transport: Stdio
Authentication: OAuth 2.0 with automatic token refresh
"""

from gdrive_mcp.server.api_client import GoogleApiClient
from gdrive_mcp.server.google_drive_server import GoogleDriveServer, main


def create_server(client: GoogleApiClient | None = None) -> GoogleDriveServer:
    """Create and configure a Google Drive MCP server.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return GoogleDriveServer(client=client)


__all__ = ["create_server", "GoogleApiClient", "GoogleDriveServer", "main"]
