"""Ingest utilities shared by the API, CLI and HTTP entry points.

Currently exposes a reader wrapper that enforces an upload byte limit while
the parser streams, so oversize input is refused without ever being held in
memory as a whole.
"""

from __future__ import annotations

import io
from typing import BinaryIO

from ..errors import PayloadTooLargeError

DEFAULT_MAX_UPLOAD_BYTES = 2 * 1024 * 1024


class _LimitedRaw(io.RawIOBase):
    def __init__(self, source: BinaryIO, limit: int) -> None:
        self._source = source
        self._limit = limit
        self._seen = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        # Ask for one byte past the remaining budget so overflow is detected
        # even when the input ends exactly on a read boundary.
        want = min(len(buffer), self._limit - self._seen + 1)
        chunk = self._source.read(want)
        if not chunk:
            return 0
        self._seen += len(chunk)
        if self._seen > self._limit:
            raise PayloadTooLargeError(self._limit)
        n = len(chunk)
        buffer[:n] = chunk
        return n


def limit_stream(source: BinaryIO, max_bytes: int) -> BinaryIO:
    """Wrap ``source`` so reading more than ``max_bytes`` raises
    :class:`~ledger.errors.PayloadTooLargeError`.

    The returned object does not own ``source``; closing it leaves ``source``
    open.
    """

    if max_bytes < 0:
        raise ValueError("max_bytes must be non-negative")
    return io.BufferedReader(_LimitedRaw(source, max_bytes))


__all__ = ["DEFAULT_MAX_UPLOAD_BYTES", "limit_stream"]
