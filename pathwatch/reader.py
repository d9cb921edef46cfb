"""
Incremental decoding of paths from the control stream.

The control stream delivers newline-delimited paths. Readiness notifications
report how many bytes can be read without blocking, and whether the writer has
gone away. That count is not always accurate once end of stream is reached, so
when EOF has been signaled the stream's own end marker decides when to stop.
"""

import logging
import os
from typing import Iterator

from pathwatch.exceptions import InputReadError

logger = logging.getLogger(__name__)


class StreamLineParser:
    """
    Reads newline-delimited paths from a binary stream as bytes become ready.

    Attributes:
        stream: Binary stream providing ``readline(size)``
        at_eof: True once the stream has returned end of stream
    """

    def __init__(self, stream):
        self.stream = stream
        self.at_eof = False
        # Trailing bytes of a line whose newline has not arrived yet.
        self._residue = b""

    def consume(self, available: int, eof_signaled: bool = False) -> Iterator[str]:
        """
        Read what is ready on the stream and yield each complete path.

        Paths are yielded one at a time so the caller can register each
        before the next is decoded.

        Args:
            available: Number of bytes reported readable
            eof_signaled: Whether the notification flagged end of stream

        Yields:
            Decoded path strings, without the trailing newline

        Raises:
            InputReadError: If reading fails for any reason but end of stream
        """
        consumed = 0
        while consumed < available or (eof_signaled and not self.at_eof):
            limit = available - consumed if consumed < available else -1
            try:
                chunk = self.stream.readline(limit)
            except OSError as e:
                raise InputReadError(f"couldn't read input: {e}") from e

            if not chunk:
                self.at_eof = True
                logger.debug("Control stream reached end of stream")
                if self._residue:
                    path = self._decode(self._residue)
                    self._residue = b""
                    if path:
                        yield path
                break

            consumed += len(chunk)
            if not chunk.endswith(b"\n"):
                self._residue += chunk
                continue

            line = self._residue + chunk[:-1]
            self._residue = b""
            path = self._decode(line)
            if path:
                yield path
            else:
                logger.debug("Skipping empty line on control stream")

    @staticmethod
    def _decode(line: bytes) -> str:
        return os.fsdecode(line)
