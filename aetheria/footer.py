"""Narrative footer ("bookmark") parsing.

The narrator closes each response with a status block:

    --- NOVEL STATE ---
    **Aldric** | **Condition:** Winded | **Time:** Dusk, day 3
    **Wounds:** ...

Only Time and Condition are read back into game status. Parsing is
best-effort: a missing marker or a mangled line is simply ignored.
"""

from __future__ import annotations

STATUS_MARKER = "--- NOVEL STATE ---"

_FIELDS = (
    ("Time:", "time"),
    ("Condition:", "health"),
)


def split_footer(text: str) -> tuple[str, str | None]:
    """Split text into (narrative, footer). Footer is None without a marker."""
    if STATUS_MARKER not in text:
        return text, None
    narrative, _, footer = text.partition(STATUS_MARKER)
    return narrative, footer


def _clean(value: str) -> str:
    return value.strip().strip("*").strip()


def parse_footer(text: str) -> dict[str, str]:
    """Extract status fields from the footer of a narrative response.

    Returns a partial dict with any of "time" and "health". A later line
    mentioning a field overrides an earlier one; the Condition value stops
    at the next "|".
    """
    if not text or STATUS_MARKER not in text:
        return {}

    footer = text.split(STATUS_MARKER)[-1]
    found: dict[str, str] = {}
    for line in footer.splitlines():
        for label, field in _FIELDS:
            if label not in line:
                continue
            value = line.split(label, 1)[1]
            if field == "health":
                value = value.split("|", 1)[0]
            value = _clean(value)
            if value:
                found[field] = value
    return found
