from __future__ import annotations

from datetime import datetime, timedelta


def split_window(
    start: datetime, end: datetime, max_span: timedelta
) -> list[tuple[datetime, datetime]]:
    """Partition ``[start, end)`` into contiguous chunks of at most ``max_span``.

    The last chunk is clipped to ``end``; ``start >= end`` gives no chunks.

    Examples:
        >>> from datetime import timezone
        >>> a = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> len(split_window(a, a + timedelta(weeks=10), timedelta(weeks=4)))
        3
    """
    if max_span <= timedelta(0):
        raise ValueError(f"max_span must be positive, got {max_span}")

    chunks = []
    chunk_start = start
    while chunk_start < end:
        chunk_end = min(chunk_start + max_span, end)
        chunks.append((chunk_start, chunk_end))
        chunk_start = chunk_end
    return chunks
