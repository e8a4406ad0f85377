"""Discord embed safety utilities.

Keeps match lists, rosters and evidence within Discord's embed limits.
"""

from __future__ import annotations

EMBED_LIMITS = {
    "title": 256,
    "field_value": 1024,
    "field_name": 256,
    "description": 4096,
    "footer": 2048,
    "max_fields": 25,
}


def truncate_field(text: str, max_len: int = 1024) -> str:
    """Truncate text to fit a Discord field, marking the cut with '...'."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def join_lines_within(lines: list[str], max_len: int = 1024) -> str:
    """
    Join lines with newlines, dropping whole trailing lines that do not fit.

    A '+N more' marker replaces the dropped lines.
    """
    kept: list[str] = []
    used = 0
    for index, line in enumerate(lines):
        remaining = len(lines) - index
        marker = f"+{remaining} more"
        extra = len(line) + (1 if kept else 0)
        # Leave room for the marker unless this is the last line
        reserve = 0 if remaining == 1 else len(marker) + 1
        if used + extra + reserve > max_len:
            kept.append(marker)
            break
        kept.append(line)
        used += extra
    return truncate_field("\n".join(kept), max_len)
