"""Assembly buffer for fragmented binary audio."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class AudioAssemblyBuffer:
    """Ordered collection of audio chunks for the current logical stream.

    Chunks are kept strictly in arrival order: no reordering and no
    deduplication. ``finalize()`` concatenates everything collected since the
    previous finalize, empties the buffer and leaves it open for the next
    stream.

    Example:
        >>> buf = AudioAssemblyBuffer()
        >>> buf.append(b"ab")
        >>> buf.append(b"cd")
        >>> buf.finalize()
        b'abcd'
        >>> buf.is_empty
        True
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._byte_count = 0
        self._is_open = True

    @property
    def is_open(self) -> bool:
        """False only while a finalize is in progress."""
        return self._is_open

    @property
    def is_empty(self) -> bool:
        return not self._chunks

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def byte_count(self) -> int:
        return self._byte_count

    def append(self, chunk: bytes) -> None:
        """Append one chunk. Empty chunks are kept so chunk counts stay exact."""
        self._chunks.append(bytes(chunk))
        self._byte_count += len(chunk)

    def finalize(self) -> bytes:
        """Concatenate the collected chunks, clear the buffer and reopen it.

        Returns:
            The assembled bytes (empty when nothing was collected).
        """
        self._is_open = False
        data = b"".join(self._chunks)
        logger.debug(
            "Finalized audio stream: %d chunks, %d bytes", len(self._chunks), self._byte_count
        )
        self.clear()
        return data

    def clear(self) -> None:
        """Drop all collected chunks and reopen the buffer."""
        self._chunks.clear()
        self._byte_count = 0
        self._is_open = True


__all__ = ["AudioAssemblyBuffer"]
