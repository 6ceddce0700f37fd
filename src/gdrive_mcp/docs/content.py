"""Text extraction for Google Docs bodies.

A Docs body is a list of structural elements (paragraphs, tables,
tables of contents, section breaks), each carrying the ``startIndex`` and
``endIndex`` the Docs service assigned to it. Every write request
(insertText, deleteContentRange, updateTextStyle) is addressed in that same
index space, so the indices reported here are copied from the text runs
as-is and never derived by summing text lengths. A table of contents or a
table occupies index space without contributing text; summing lengths would
silently drift past it.

Indices count UTF-16 code units, which is why anything that has to point
inside a run goes through :func:`utf16_length`.
"""

import logging
import re
from bisect import bisect_right
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class TextSegment(BaseModel):
    """A text run together with its service-assigned index range."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_index: int
    end_index: int


class DocumentContent(BaseModel):
    """Flattened document text plus the segments it was built from.

    Attributes:
        content: Concatenation of every segment's text, in document order.
        segments: Text runs with their authoritative index ranges. Consecutive
            segments may leave a gap where skipped structural content sits.
    """

    content: str = ""
    segments: list[TextSegment] = Field(default_factory=list)


class TextMatch(BaseModel):
    """An occurrence of searched text, addressed in document indices."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_index: int
    end_index: int


def utf16_length(text: str) -> int:
    """Length of ``text`` in UTF-16 code units, the unit Docs indices use."""
    return len(text.encode("utf-16-le")) // 2


def extract_body_content(body: dict[str, Any] | None) -> DocumentContent:
    """Project a Docs body onto its paragraph text runs.

    Only paragraphs are read. Tables of contents, tables and section breaks
    are skipped without touching the indices of anything after them. Runs
    without both ``startIndex`` and ``endIndex``, or with no text, are
    skipped.

    Args:
        body: A ``body`` object from documents.get (or a tab's
            ``documentTab.body``). None or a body without ``content`` is an
            empty document.

    Returns:
        The flattened content and its segments.
    """
    if not body:
        return DocumentContent()

    parts: list[str] = []
    segments: list[TextSegment] = []

    for element in body.get("content") or []:
        paragraph = element.get("paragraph")
        if paragraph is None:
            continue

        for paragraph_element in paragraph.get("elements") or []:
            text = (paragraph_element.get("textRun") or {}).get("content")
            start_index = paragraph_element.get("startIndex")
            end_index = paragraph_element.get("endIndex")
            if not text or start_index is None or end_index is None:
                continue

            segments.append(
                TextSegment(text=text, start_index=start_index, end_index=end_index)
            )
            parts.append(text)

    return DocumentContent(content="".join(parts), segments=segments)


def extract_document_content(document: dict[str, Any] | None) -> DocumentContent:
    """Extract content and segments from a documents.get response.

    Args:
        document: Deserialized Docs ``Document`` resource.

    Returns:
        DocumentContent for the document body; empty if the body is absent.
    """
    if not document:
        return DocumentContent()
    return extract_body_content(document.get("body"))


def locate_text(
    document_content: DocumentContent,
    text: str,
    match_case: bool = True,
) -> list[TextMatch]:
    """Find every non-overlapping occurrence of ``text`` and its index range.

    A match is positioned relative to the segment that holds it: its start is
    that segment's ``start_index`` plus the UTF-16 length of the segment text
    before the match. A match running across several segments is kept only
    when those segments are adjacent in index space; one that straddles a
    skipped table or table of contents is not addressable as a single range.

    Args:
        document_content: Result of :func:`extract_document_content`.
        text: Literal text to search for.
        match_case: Whether the search is case sensitive.

    Returns:
        Matches in document order.

    Raises:
        ValueError: If ``text`` is empty.
    """
    if not text:
        raise ValueError("Search text must not be empty")

    segments = document_content.segments
    content = document_content.content

    # Position of each segment inside ``content``
    offsets: list[int] = []
    position = 0
    for segment in segments:
        offsets.append(position)
        position += len(segment.text)

    flags = 0 if match_case else re.IGNORECASE
    matches: list[TextMatch] = []

    for found in re.finditer(re.escape(text), content, flags):
        first = bisect_right(offsets, found.start()) - 1
        last = bisect_right(offsets, found.end() - 1) - 1

        if any(
            segments[i].end_index != segments[i + 1].start_index for i in range(first, last)
        ):
            logger.debug(
                f"Skipping match at content offset {found.start()}: "
                "it spans non-adjacent segments"
            )
            continue

        head = segments[first]
        tail = segments[last]
        start_index = head.start_index + utf16_length(head.text[: found.start() - offsets[first]])
        end_index = tail.start_index + utf16_length(tail.text[: found.end() - offsets[last]])

        matches.append(TextMatch(text=found.group(0), start_index=start_index, end_index=end_index))

    return matches
