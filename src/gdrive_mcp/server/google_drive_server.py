"""Google Drive / Docs MCP server.

Exposes Docs reading and editing tools, plus Drive search and folder
listing, over the MCP stdio transport. Reads go through the content
extractor so every index returned to the caller is the one the Docs
service itself assigned, and can be fed back into insert, delete and
style requests unchanged.
"""

import asyncio
import json
import logging
import os
import re
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import BaseModel, ValidationError

from gdrive_mcp.docs.content import extract_body_content, locate_text
from gdrive_mcp.docs.requests import (
    body_end_index,
    build_text_style,
    delete_content_range_request,
    insert_text_request,
    replace_all_text_request,
    update_text_style_request,
)
from gdrive_mcp.server.api_client import DOCS_API_BASE, DRIVE_API_BASE, GoogleApiClient
from gdrive_mcp.server.schemas import (
    AppendToDocumentArgs,
    CreateDocumentArgs,
    DeleteContentRangeArgs,
    FormatMatchingTextArgs,
    FormatTextArgs,
    GetDocumentContentArgs,
    InsertTextArgs,
    ListDocumentTabsArgs,
    ListFolderArgs,
    ReplaceAllTextArgs,
    SearchDocumentTextArgs,
    SearchDriveFilesArgs,
    UpdateDocumentArgs,
    input_schema,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "gdrive-mcp"

DRIVE_FILE_FIELDS = "files(id,name,mimeType,modifiedTime,size,webViewLink,owners)"

# A Drive query term: `field op value`, or `'value' in collection`.
DRIVE_QUERY_TERM = re.compile(
    r"(?:^|[\s(])(?:not\s+)?(?:"
    r"(?:name|fullText|mimeType|modifiedTime|viewedByMeTime|createdTime|trashed|starred"
    r"|sharedWithMe|visibility|parents|owners|writers|readers|properties|appProperties)"
    r"\s*(?:contains|!=|<=|>=|=|<|>|has)\s*(?:'|\d|true\b|false\b|\{)"
    r"|'(?:[^'\\]|\\.)*'\s+in\s+(?:parents|owners|writers|readers)\b"
    r")"
)

# name -> (description, argument model)
TOOL_DEFINITIONS: dict[str, tuple[str, type[BaseModel]]] = {
    "get_document_content": (
        "Read a Google Doc as plain text plus text segments. Each segment carries the "
        "document's own start_index/end_index, which can be passed unchanged to "
        "insert_text, delete_content_range and format_text.",
        GetDocumentContentArgs,
    ),
    "search_document_text": (
        "Find literal text in a Google Doc and return the start_index/end_index of each "
        "occurrence.",
        SearchDocumentTextArgs,
    ),
    "create_document": (
        "Create a new Google Doc, optionally with initial text and inside a Drive folder.",
        CreateDocumentArgs,
    ),
    "update_document": (
        "Replace the entire body of a Google Doc with new text.",
        UpdateDocumentArgs,
    ),
    "append_to_document": (
        "Append text to the end of a Google Doc.",
        AppendToDocumentArgs,
    ),
    "insert_text": (
        "Insert text at a document index.",
        InsertTextArgs,
    ),
    "delete_content_range": (
        "Delete the content between start_index (inclusive) and end_index (exclusive).",
        DeleteContentRangeArgs,
    ),
    "replace_all_text": (
        "Replace every occurrence of a text in a Google Doc.",
        ReplaceAllTextArgs,
    ),
    "format_text": (
        "Apply text styling (bold, italic, colors, font, link...) to an index range.",
        FormatTextArgs,
    ),
    "format_matching_text": (
        "Find literal text in a Google Doc and apply text styling to the range(s) where it "
        "occurs. Fails if the text is not found.",
        FormatMatchingTextArgs,
    ),
    "list_document_tabs": (
        "List the tabs of a Google Doc with their IDs, titles and nesting.",
        ListDocumentTabsArgs,
    ),
    "search_drive_files": (
        "Search Google Drive files. Bare search terms are wrapped in 'fullText contains'; "
        "Drive API query syntax (e.g. name contains 'report') is passed through.",
        SearchDriveFilesArgs,
    ),
    "list_folder": (
        "List the files in a Google Drive folder (default: My Drive root).",
        ListFolderArgs,
    ),
}


class GoogleDriveServer:
    """MCP server for Google Docs and Drive.

    Attributes:
        server: MCP Server instance.
        client: Authenticated Google API client used by every tool.
    """

    def __init__(self, client: GoogleApiClient | None = None) -> None:
        """Initialize the server.

        Args:
            client: API client to use. A default one backed by the project's
                token storage is created when omitted.
        """
        self.server = Server(SERVER_NAME)
        self.client = client or GoogleApiClient()
        self._handlers: dict[str, Callable[[Any], Awaitable[dict[str, Any]]]] = {
            "get_document_content": self._get_document_content,
            "search_document_text": self._search_document_text,
            "create_document": self._create_document,
            "update_document": self._update_document,
            "append_to_document": self._append_to_document,
            "insert_text": self._insert_text,
            "delete_content_range": self._delete_content_range,
            "replace_all_text": self._replace_all_text,
            "format_text": self._format_text,
            "format_matching_text": self._format_matching_text,
            "list_document_tabs": self._list_document_tabs,
            "search_drive_files": self._search_drive_files,
            "list_folder": self._list_folder,
        }
        self._setup_handlers()

    def list_tool_definitions(self) -> list[Tool]:
        """Build the MCP tool list from the argument models."""
        return [
            Tool(name=name, description=description, inputSchema=input_schema(model))
            for name, (description, model) in TOOL_DEFINITIONS.items()
        ]

    def _setup_handlers(self) -> None:
        """Register MCP tool handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            return self.list_tool_definitions()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            return await self.call_tool(name, arguments)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Run a tool and wrap its result (or error) as JSON text."""
        try:
            result = await self._dispatch_tool(name, arguments or {})
        except Exception as e:
            logger.exception(f"Error calling tool {name}")
            result = self._format_error(name, e)
        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    def _format_error(self, name: str, error: Exception) -> dict[str, Any]:
        """Turn a handler exception into the tool error payload."""
        if isinstance(error, ValidationError):
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
                for err in error.errors()
            )
            return {"error": f"Invalid arguments for {name}: {details}"}

        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            try:
                message = error.response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = error.response.text or str(error)
            return {
                "error": f"Google API error ({status_code}): {message}",
                "status_code": status_code,
            }

        return {"error": str(error)}

    async def _dispatch_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate arguments and dispatch to the tool handler.

        Raises:
            ValueError: If the tool name is not recognized.
            ValidationError: If the arguments do not match the tool schema.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")

        _, model = TOOL_DEFINITIONS[name]
        args = model.model_validate(arguments)
        return await handler(args)

    # =========================================================================
    # Docs Read Operations
    # =========================================================================

    async def _fetch_document(
        self, document_id: str, include_tabs: bool = False
    ) -> dict[str, Any]:
        url = f"{DOCS_API_BASE}/documents/{document_id}"
        params = {"includeTabsContent": "true"} if include_tabs else None
        return await self.client.request("GET", url, params=params)

    def _find_tab(self, tabs: list[dict[str, Any]], tab_id: str) -> dict[str, Any] | None:
        """Depth-first search for a tab, including nested child tabs."""
        for tab in tabs:
            if tab.get("tabProperties", {}).get("tabId") == tab_id:
                return tab
            found = self._find_tab(tab.get("childTabs", []), tab_id)
            if found is not None:
                return found
        return None

    async def _get_document_content(self, args: GetDocumentContentArgs) -> dict[str, Any]:
        """Read a document (or one of its tabs) as content plus segments.

        Returns:
            Document metadata, the flattened text, and the segments with the
            service's own index ranges.
        """
        document = await self._fetch_document(args.document_id, include_tabs=bool(args.tab_id))

        if args.tab_id:
            tab = self._find_tab(document.get("tabs", []), args.tab_id)
            if tab is None:
                raise ValueError(
                    f"Tab '{args.tab_id}' not found in document {args.document_id}"
                )
            body = tab.get("documentTab", {}).get("body")
        else:
            body = document.get("body")

        extracted = extract_body_content(body)

        result: dict[str, Any] = {
            "document_id": document.get("documentId", args.document_id),
            "title": document.get("title"),
            "revision_id": document.get("revisionId"),
            "content": extracted.content,
            "segments": [segment.model_dump() for segment in extracted.segments],
            "segment_count": len(extracted.segments),
        }
        if args.tab_id:
            result["tab_id"] = args.tab_id
        return result

    async def _search_document_text(self, args: SearchDocumentTextArgs) -> dict[str, Any]:
        """Locate every occurrence of a text and report its index range."""
        document = await self._fetch_document(args.document_id)
        extracted = extract_body_content(document.get("body"))
        matches = locate_text(extracted, args.query, match_case=args.match_case)

        return {
            "document_id": args.document_id,
            "query": args.query,
            "match_case": args.match_case,
            "matches": [match.model_dump() for match in matches],
            "count": len(matches),
        }

    def _format_tabs(
        self, tabs: list[dict[str, Any]], parent_tab_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Flatten the tab tree into a list of tab metadata."""
        formatted_tabs = []
        for tab in tabs:
            tab_props = tab.get("tabProperties", {})
            formatted_tab: dict[str, Any] = {
                "tab_id": tab_props.get("tabId"),
                "title": tab_props.get("title", ""),
                "index": tab_props.get("index", 0),
                "nesting_level": tab_props.get("nestingLevel", 0),
            }
            parent = tab_props.get("parentTabId", parent_tab_id)
            if parent:
                formatted_tab["parent_tab_id"] = parent
            if "iconEmoji" in tab_props:
                formatted_tab["icon_emoji"] = tab_props["iconEmoji"]

            formatted_tabs.append(formatted_tab)
            formatted_tabs.extend(
                self._format_tabs(tab.get("childTabs", []), formatted_tab["tab_id"])
            )

        return formatted_tabs

    async def _list_document_tabs(self, args: ListDocumentTabsArgs) -> dict[str, Any]:
        """List all tabs in a document."""
        document = await self._fetch_document(args.document_id, include_tabs=True)
        tabs = self._format_tabs(document.get("tabs", []))

        return {
            "document_id": args.document_id,
            "tabs": tabs,
            "count": len(tabs),
        }

    # =========================================================================
    # Docs Write Operations
    # =========================================================================

    async def _create_document(self, args: CreateDocumentArgs) -> dict[str, Any]:
        """Create a document, then fill it and file it if asked to."""
        url = f"{DOCS_API_BASE}/documents"
        response = await self.client.request("POST", url, json_data={"title": args.title})
        document_id = response.get("documentId", "")

        if args.content:
            await self.client.batch_update_document(
                document_id, [insert_text_request(1, args.content)]
            )

        result: dict[str, Any] = {
            "status": "created",
            "document_id": document_id,
            "title": response.get("title", args.title),
            "url": f"https://docs.google.com/document/d/{document_id}/edit",
        }

        if args.folder_id:
            result["parents"] = await self._move_to_folder(document_id, args.folder_id)

        return result

    async def _move_to_folder(self, file_id: str, folder_id: str) -> list[str]:
        """Re-parent a Drive file into a single folder."""
        file_url = f"{DRIVE_API_BASE}/files/{file_id}"
        file_info = await self.client.request("GET", file_url, params={"fields": "parents"})
        current_parents = file_info.get("parents", [])

        params = {
            "addParents": folder_id,
            "removeParents": ",".join(current_parents),
            "fields": "id,parents",
        }
        response = await self.client.request("PATCH", file_url, params=params, json_data={})
        parents: list[str] = response.get("parents", [folder_id])
        return parents

    async def _update_document(self, args: UpdateDocumentArgs) -> dict[str, Any]:
        """Replace the document body with new text.

        The body's final newline cannot be deleted, so the deleted range
        stops one short of the body's end index.
        """
        document = await self._fetch_document(args.document_id)
        end_index = body_end_index(document.get("body"))

        requests: list[dict[str, Any]] = []
        deleted_range = None
        if end_index - 1 > 1:
            deleted_range = {"start_index": 1, "end_index": end_index - 1}
            requests.append(delete_content_range_request(1, end_index - 1))
        if args.content:
            requests.append(insert_text_request(1, args.content))

        if requests:
            await self.client.batch_update_document(
                args.document_id, requests, document.get("revisionId")
            )

        return {
            "status": "updated",
            "document_id": args.document_id,
            "deleted_range": deleted_range,
            "text_length": len(args.content),
        }

    async def _append_to_document(self, args: AppendToDocumentArgs) -> dict[str, Any]:
        """Append text before the body's final newline."""
        document = await self._fetch_document(args.document_id)
        insert_index = max(1, body_end_index(document.get("body")) - 1)

        await self.client.batch_update_document(
            args.document_id, [insert_text_request(insert_index, args.text)]
        )

        return {
            "status": "appended",
            "document_id": args.document_id,
            "index": insert_index,
            "text_length": len(args.text),
        }

    async def _insert_text(self, args: InsertTextArgs) -> dict[str, Any]:
        await self.client.batch_update_document(
            args.document_id, [insert_text_request(args.index, args.text)]
        )

        return {
            "status": "inserted",
            "document_id": args.document_id,
            "index": args.index,
            "text_length": len(args.text),
        }

    async def _delete_content_range(self, args: DeleteContentRangeArgs) -> dict[str, Any]:
        await self.client.batch_update_document(
            args.document_id,
            [delete_content_range_request(args.start_index, args.end_index)],
        )

        return {
            "status": "deleted",
            "document_id": args.document_id,
            "start_index": args.start_index,
            "end_index": args.end_index,
        }

    async def _replace_all_text(self, args: ReplaceAllTextArgs) -> dict[str, Any]:
        """Replace all occurrences and report how many were changed."""
        response = await self.client.batch_update_document(
            args.document_id,
            [
                replace_all_text_request(
                    args.contains_text, args.replace_text, bool(args.match_case)
                )
            ],
        )

        replies = response.get("replies") or [{}]
        occurrences = replies[0].get("replaceAllText", {}).get("occurrencesChanged", 0)

        return {
            "status": "replaced",
            "document_id": args.document_id,
            "contains_text": args.contains_text,
            "replace_text": args.replace_text,
            "occurrences_changed": occurrences,
        }

    async def _format_text(self, args: FormatTextArgs) -> dict[str, Any]:
        text_style, fields = build_text_style(args.style())

        await self.client.batch_update_document(
            args.document_id,
            [update_text_style_request(args.start_index, args.end_index, text_style, fields)],
        )

        return {
            "status": "formatted",
            "document_id": args.document_id,
            "start_index": args.start_index,
            "end_index": args.end_index,
            "fields": fields.split(","),
        }

    async def _format_matching_text(self, args: FormatMatchingTextArgs) -> dict[str, Any]:
        """Style the range(s) where a text occurs.

        The ranges come straight from the extracted segments, and the update
        is pinned to the revision that was read so a concurrent edit cannot
        shift it onto other text.
        """
        text_style, fields = build_text_style(args.style())

        document = await self._fetch_document(args.document_id)
        extracted = extract_body_content(document.get("body"))
        matches = locate_text(extracted, args.text, match_case=args.match_case)

        if not matches:
            raise ValueError(f"Text '{args.text}' not found in document {args.document_id}")

        if args.occurrence is not None:
            if args.occurrence > len(matches):
                raise ValueError(
                    f"Occurrence {args.occurrence} requested but '{args.text}' "
                    f"occurs {len(matches)} time(s)"
                )
            matches = [matches[args.occurrence - 1]]

        requests = [
            update_text_style_request(match.start_index, match.end_index, text_style, fields)
            for match in matches
        ]
        await self.client.batch_update_document(
            args.document_id, requests, document.get("revisionId")
        )

        return {
            "status": "formatted",
            "document_id": args.document_id,
            "text": args.text,
            "ranges": [
                {"start_index": match.start_index, "end_index": match.end_index}
                for match in matches
            ],
            "count": len(matches),
            "fields": fields.split(","),
        }

    # =========================================================================
    # Drive Operations
    # =========================================================================

    def _normalize_drive_query(self, query: str) -> str:
        """Wrap bare search terms in a fullText query.

        Queries containing a Drive query term (``name contains 'x'``,
        ``'id' in parents``) are passed through. Plain text that merely
        contains an operator word, such as "plans in 2024", is wrapped.
        """
        if DRIVE_QUERY_TERM.search(query):
            return query

        return f"fullText contains '{_escape_query_value(query)}'"

    def _format_file(self, item: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": item.get("id"),
            "name": item.get("name"),
            "mimeType": item.get("mimeType"),
            "modifiedTime": item.get("modifiedTime"),
            "size": item.get("size"),
            "webViewLink": item.get("webViewLink"),
            "owners": [o.get("emailAddress") for o in item.get("owners", [])],
        }

    async def _search_drive_files(self, args: SearchDriveFilesArgs) -> dict[str, Any]:
        url = f"{DRIVE_API_BASE}/files"
        params = {
            "q": self._normalize_drive_query(args.query),
            "pageSize": args.max_results,
            "fields": DRIVE_FILE_FIELDS,
        }

        response = await self.client.request("GET", url, params=params)
        files = [self._format_file(item) for item in response.get("files", [])]

        return {"files": files, "count": len(files)}

    async def _list_folder(self, args: ListFolderArgs) -> dict[str, Any]:
        folder_id = _escape_query_value(args.folder_id)
        url = f"{DRIVE_API_BASE}/files"
        params = {
            "q": f"'{folder_id}' in parents and trashed = false",
            "pageSize": args.max_results,
            "orderBy": "folder,name",
            "fields": DRIVE_FILE_FIELDS,
        }

        response = await self.client.request("GET", url, params=params)
        files = [self._format_file(item) for item in response.get("files", [])]

        return {"folder_id": args.folder_id, "files": files, "count": len(files)}

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.client.close()


def _escape_query_value(value: str) -> str:
    """Escape a string for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def configure_logging() -> None:
    """Log to stderr at GDRIVE_MCP_LOG_LEVEL (default INFO).

    stdout carries the MCP stdio transport and must stay clean.
    """
    level_name = os.environ.get("GDRIVE_MCP_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Entry point for the gdrive-mcp server."""
    configure_logging()
    server = GoogleDriveServer()
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
