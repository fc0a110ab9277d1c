from __future__ import annotations

import re
from typing import Any, Mapping

SECTION_PLACEHOLDER = "Not Started"
LINE_ITEM_PLACEHOLDER = "No active task"
UNKNOWN_TASK = "Unknown Task"

# apostrophes do not start a word: "customer's" stays "Customer's"
_WORD_START = re.compile(r"(?<![\w'’])\w")


def format_section_display(section: str | None) -> str:
    """Turn a raw section token such as ``site_inspection`` into ``Site Inspection``."""

    if not section or not str(section).strip():
        return SECTION_PLACEHOLDER
    text = str(section).replace("_", " ").strip()
    return _WORD_START.sub(lambda match: match.group(0).upper(), text)


def format_line_item_display(line_item: Mapping[str, Any] | str | None) -> str:
    if line_item is None:
        return LINE_ITEM_PLACEHOLDER
    if isinstance(line_item, str):
        return line_item.strip() or LINE_ITEM_PLACEHOLDER
    if not line_item:
        return LINE_ITEM_PLACEHOLDER
    for key in ("name", "stepName", "itemName"):
        value = line_item.get(key)
        if value:
            return str(value)
    return UNKNOWN_TASK
