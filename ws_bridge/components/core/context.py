"""
Log sanitization for client-provided data.

Frames come straight from clients; anything logged from them goes through
sanitize_log_data first.
"""

from __future__ import annotations

# Code points deleted from logged frames: C0/C1 controls, zero-width and
# direction marks, bidi embeddings/overrides, bidi isolates, BOM
_STRIPPED = dict.fromkeys([
    *range(0x00, 0x20),
    *range(0x7F, 0xA0),
    *range(0x200B, 0x2010),
    *range(0x202A, 0x202F),
    *range(0x2066, 0x206A),
    0xFEFF,
])

_ESCAPED = str.maketrans({"\\": "\\\\", '"': '\\"'})


def sanitize_log_data(data: str | bytes, max_length: int = 100) -> str:
    """
    Make a client frame safe to embed in a log line.

    The frame is clipped to max_length before cleaning, so the result never
    ends in half an escape sequence; "..." marks a clipped frame. Bytes are
    decoded as UTF-8 with replacement characters.
    """
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode("utf-8", errors="replace")
    else:
        text = str(data)

    cleaned = text[:max_length].translate(_STRIPPED).translate(_ESCAPED)
    return cleaned + "..." if len(text) > max_length else cleaned
