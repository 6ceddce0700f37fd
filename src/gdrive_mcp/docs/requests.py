"""Builders for Docs API batchUpdate request bodies.

Each builder returns one entry of the ``requests`` list sent to
``documents/{id}:batchUpdate``. Indices are passed through untouched.
"""

import re
from typing import Any

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")

# Tool-level style argument -> Docs TextStyle field name
TEXT_STYLE_FIELDS = {
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "strikethrough": "strikethrough",
    "font_size": "fontSize",
    "font_family": "weightedFontFamily",
    "foreground_color": "foregroundColor",
    "background_color": "backgroundColor",
    "link_url": "link",
}


def parse_hex_color(value: str) -> dict[str, float]:
    """Convert ``#RRGGBB`` into a Docs ``RgbColor`` with 0-1 components.

    Raises:
        ValueError: If the value is not a six-digit hex color.
    """
    match = _HEX_COLOR.match(value.strip())
    if not match:
        raise ValueError(f"Invalid color '{value}'. Expected hex format like #FF0000")

    digits = match.group(1)
    red, green, blue = (int(digits[i : i + 2], 16) / 255 for i in (0, 2, 4))
    return {"red": red, "green": green, "blue": blue}


def build_text_style(style: dict[str, Any]) -> tuple[dict[str, Any], str]:
    """Translate tool style arguments into a TextStyle and its field mask.

    Args:
        style: Mapping of tool style argument names to values. None values
            are treated as "leave unchanged".

    Returns:
        Tuple of (textStyle, fields) for an updateTextStyle request.

    Raises:
        ValueError: If no style value is supplied.
    """
    text_style: dict[str, Any] = {}

    for name, api_field in TEXT_STYLE_FIELDS.items():
        value = style.get(name)
        if value is None:
            continue

        if name == "font_size":
            text_style[api_field] = {"magnitude": value, "unit": "PT"}
        elif name == "font_family":
            text_style[api_field] = {"fontFamily": value}
        elif name in ("foreground_color", "background_color"):
            text_style[api_field] = {"color": {"rgbColor": parse_hex_color(value)}}
        elif name == "link_url":
            text_style[api_field] = {"url": value}
        else:
            text_style[api_field] = value

    if not text_style:
        raise ValueError(
            "At least one style field (bold, italic, underline, strikethrough, "
            "font_size, font_family, foreground_color, background_color, link_url) "
            "must be provided"
        )

    return text_style, ",".join(text_style)


def insert_text_request(index: int, text: str) -> dict[str, Any]:
    return {"insertText": {"location": {"index": index}, "text": text}}


def delete_content_range_request(start_index: int, end_index: int) -> dict[str, Any]:
    return {
        "deleteContentRange": {
            "range": {"startIndex": start_index, "endIndex": end_index},
        }
    }


def update_text_style_request(
    start_index: int,
    end_index: int,
    text_style: dict[str, Any],
    fields: str,
) -> dict[str, Any]:
    return {
        "updateTextStyle": {
            "range": {"startIndex": start_index, "endIndex": end_index},
            "textStyle": text_style,
            "fields": fields,
        }
    }


def replace_all_text_request(
    contains_text: str,
    replace_text: str,
    match_case: bool = False,
) -> dict[str, Any]:
    return {
        "replaceAllText": {
            "containsText": {"text": contains_text, "matchCase": match_case},
            "replaceText": replace_text,
        }
    }


def body_end_index(body: dict[str, Any] | None) -> int:
    """End index of the last structural element in a body.

    An empty body reports 1, the index of the first insertable position.
    """
    content = (body or {}).get("content") or []
    if not content:
        return 1
    return int(content[-1].get("endIndex", 1))
