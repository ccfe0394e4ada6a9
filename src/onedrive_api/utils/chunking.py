"""Chunk planning for resumable uploads."""

from __future__ import annotations

from onedrive_api.models.upload import ByteRange

# The service asks for fragments in multiples of 320 KiB. Not enforced here.
FRAGMENT_ALIGNMENT = 320 * 1024


def plan_chunks(ranges: list[ByteRange], chunk_size: int) -> list[ByteRange]:
    """Split closed byte ranges into consecutive chunks of at most ``chunk_size`` bytes.

    Args:
        ranges: Closed ranges still expected by the server, ascending.
        chunk_size: Maximum bytes per chunk.

    Returns:
        Chunks in ascending offset order, jointly covering ``ranges``.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    chunks: list[ByteRange] = []
    for r in ranges:
        if r.end is None:
            raise ValueError(f"Range {r} is open-ended; resolve it against the file size")
        chunks.extend(
            ByteRange(start=start, end=min(start + chunk_size, r.end))
            for start in range(r.start, r.end, chunk_size)
        )
    return chunks


def is_aligned(chunk_size: int) -> bool:
    return chunk_size % FRAGMENT_ALIGNMENT == 0
