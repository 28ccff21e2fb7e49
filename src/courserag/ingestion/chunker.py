"""Character-window chunking with sentence-boundary snapping."""

from __future__ import annotations

from typing import List

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200

# A boundary must sit past this fraction of the window to be used.
_MIN_BOUNDARY_FRACTION = 0.5


def _boundary_before(text: str, start: int, end: int) -> int:
    # Nearest "." or newline at or before end; -1 when there is none.
    return max(text.rfind(".", start, end + 1), text.rfind("\n", start, end + 1))


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> List[str]:
    """Split ``text`` into overlapping chunks of about ``chunk_size`` characters.

    Text that fits in one window is returned as a single chunk. Longer text is
    walked with a sliding window; each window end snaps back to the nearest
    period or newline when that boundary lies in the second half of the window.
    A boundary sitting right at the window end is kept, so such a chunk holds
    ``chunk_size + 1`` characters.
    Consecutive chunks share roughly ``overlap`` characters and the window
    always advances by at least one character. Empty or whitespace-only input
    produces no chunks.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    length = len(text)
    if length <= chunk_size:
        return [text] if text.strip() else []

    chunks: List[str] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            boundary = _boundary_before(text, start, end)
            if boundary > start + chunk_size * _MIN_BOUNDARY_FRACTION:
                end = boundary + 1

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)

        if end >= length:
            break
        next_start = max(end - overlap, start + 1)
        if next_start >= length:
            break
        start = next_start

    return chunks


__all__ = ["DEFAULT_CHUNK_OVERLAP", "DEFAULT_CHUNK_SIZE", "chunk_text"]
