"""Google Docs content extraction and request building."""

from gdrive_mcp.docs.content import (
    DocumentContent,
    TextMatch,
    TextSegment,
    extract_body_content,
    extract_document_content,
    locate_text,
    utf16_length,
)

__all__ = [
    "DocumentContent",
    "TextMatch",
    "TextSegment",
    "extract_body_content",
    "extract_document_content",
    "locate_text",
    "utf16_length",
]
