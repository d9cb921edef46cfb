"""Append-only registry of watched paths."""

from dataclasses import dataclass
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class WatchedPath:
    """
    One path under observation.

    Attributes:
        path: The path text exactly as it was read from the control stream
        handle: File descriptor backing the watch, owned by the channel
        token: Registration token echoed back by the channel; also the
            entry's index in the registry
    """

    path: str
    handle: int
    token: int


class PathRegistry:
    """
    Ordered collection of watched paths.

    Entries are only ever appended, never removed or replaced, so an entry's
    token stays a valid index for the lifetime of the process.
    """

    def __init__(self):
        self._entries: List[WatchedPath] = []

    def next_token(self) -> int:
        """Return the token the next appended entry will receive."""
        return len(self._entries)

    def append(self, path: str, handle: int) -> WatchedPath:
        entry = WatchedPath(path=path, handle=handle, token=len(self._entries))
        self._entries.append(entry)
        return entry

    def get(self, token: int) -> Optional[WatchedPath]:
        if 0 <= token < len(self._entries):
            return self._entries[token]
        return None

    def iterate(self) -> Iterator[str]:
        """Yield registered paths, oldest first."""
        # Bound the walk up front so an append during iteration is not visited.
        for index in range(len(self._entries)):
            yield self._entries[index].path

    def __iter__(self) -> Iterator[WatchedPath]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
