"""Argument models for the MCP tools.

Each model validates a tool's ``arguments`` and supplies the JSON schema
advertised as the tool's ``inputSchema``.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from gdrive_mcp.docs.requests import TEXT_STYLE_FIELDS

HEX_COLOR_PATTERN = r"^#?[0-9a-fA-F]{6}$"


class DocumentArgs(BaseModel):
    document_id: str = Field(
        ..., min_length=1, description="Google Doc ID (from the document URL)"
    )


class GetDocumentContentArgs(DocumentArgs):
    tab_id: str | None = Field(
        default=None,
        description="Read this tab instead of the document body (see list_document_tabs)",
    )


class SearchDocumentTextArgs(DocumentArgs):
    query: str = Field(..., min_length=1, description="Literal text to find")
    match_case: bool = Field(default=False, description="Case-sensitive search (default: false)")


class CreateDocumentArgs(BaseModel):
    title: str = Field(..., min_length=1, description="Title of the new document")
    content: str | None = Field(default=None, description="Initial document text (optional)")
    folder_id: str | None = Field(
        default=None, description="Drive folder to place the document in (optional)"
    )


class UpdateDocumentArgs(DocumentArgs):
    content: str = Field(..., description="Text that replaces the whole document body")


class AppendToDocumentArgs(DocumentArgs):
    text: str = Field(..., min_length=1, description="Text to append at the end of the body")


class InsertTextArgs(DocumentArgs):
    index: int = Field(
        ..., ge=1, description="Document index to insert at (as reported by get_document_content)"
    )
    text: str = Field(..., min_length=1, description="Text to insert")


class DeleteContentRangeArgs(DocumentArgs):
    start_index: int = Field(..., ge=1, description="Start of the range (inclusive)")
    end_index: int = Field(..., ge=1, description="End of the range (exclusive)")

    @model_validator(mode="after")
    def _check_order(self) -> "DeleteContentRangeArgs":
        # Equal indices pass here; the Docs API rejects the empty range itself
        if self.end_index < self.start_index:
            raise ValueError("end_index must not be less than start_index")
        return self


class ReplaceAllTextArgs(DocumentArgs):
    contains_text: str = Field(..., min_length=1, description="Text to search for")
    replace_text: str = Field(..., description="Replacement text (may be empty)")
    match_case: bool | None = Field(
        default=None, description="Case-sensitive match (default: false)"
    )


class TextStyleArgs(BaseModel):
    bold: bool | None = Field(default=None, description="Set or clear bold")
    italic: bool | None = Field(default=None, description="Set or clear italic")
    underline: bool | None = Field(default=None, description="Set or clear underline")
    strikethrough: bool | None = Field(default=None, description="Set or clear strikethrough")
    font_size: float | None = Field(default=None, gt=0, description="Font size in points")
    font_family: str | None = Field(default=None, min_length=1, description="Font family name")
    foreground_color: str | None = Field(
        default=None, pattern=HEX_COLOR_PATTERN, description="Text color as #RRGGBB"
    )
    background_color: str | None = Field(
        default=None, pattern=HEX_COLOR_PATTERN, description="Highlight color as #RRGGBB"
    )
    link_url: str | None = Field(default=None, min_length=1, description="Hyperlink URL")

    def style(self) -> dict[str, Any]:
        """Style arguments only, without the None ones."""
        return self.model_dump(include=set(TEXT_STYLE_FIELDS), exclude_none=True)


class FormatTextArgs(TextStyleArgs, DocumentArgs):
    start_index: int = Field(..., ge=1, description="Start of the range (inclusive)")
    end_index: int = Field(..., ge=1, description="End of the range (exclusive)")

    @model_validator(mode="after")
    def _check_range(self) -> "FormatTextArgs":
        if self.end_index <= self.start_index:
            raise ValueError("end_index must be greater than start_index")
        return self


class FormatMatchingTextArgs(TextStyleArgs, DocumentArgs):
    text: str = Field(..., min_length=1, description="Literal text whose range gets styled")
    match_case: bool = Field(default=True, description="Case-sensitive search (default: true)")
    occurrence: int | None = Field(
        default=None, ge=1, description="Style only the Nth match (1-based); all matches if omitted"
    )


class ListDocumentTabsArgs(DocumentArgs):
    pass


class SearchDriveFilesArgs(BaseModel):
    query: str = Field(
        ...,
        min_length=1,
        description="Search terms (wrapped in fullText contains) or Drive API query syntax",
    )
    max_results: int = Field(default=10, ge=1, le=1000, description="Maximum files to return")


class ListFolderArgs(BaseModel):
    folder_id: str = Field(
        default="root", min_length=1, description="Drive folder ID (default: root)"
    )
    max_results: int = Field(default=50, ge=1, le=1000, description="Maximum files to return")


def input_schema(model: type[BaseModel]) -> dict[str, Any]:
    """JSON schema for a tool's ``inputSchema``."""
    schema = model.model_json_schema()
    schema.setdefault("required", [])
    return schema
