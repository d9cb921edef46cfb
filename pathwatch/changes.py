"""
Change kinds and their rendering.

A change notification carries a bitmask of ``ChangeKind`` members. Rendering
walks a fixed table so the same mask always produces the same label string,
however the operating system happened to pack the bits.
"""

import enum
import os
from dataclasses import dataclass


class ChangeKind(enum.IntFlag):
    """Kinds of change a watched path can report."""

    NONE = 0
    DELETE = 0x01
    WRITE = 0x02
    EXTEND = 0x04
    ATTRIB = 0x08
    LINK = 0x10
    RENAME = 0x20
    REVOKE = 0x40


ALL_CHANGES = (
    ChangeKind.DELETE
    | ChangeKind.WRITE
    | ChangeKind.EXTEND
    | ChangeKind.ATTRIB
    | ChangeKind.LINK
    | ChangeKind.RENAME
    | ChangeKind.REVOKE
)

# Output order of the labels. Not bit order.
CHANGE_LABELS = (
    (ChangeKind.DELETE, "DELETE"),
    (ChangeKind.WRITE, "WRITE"),
    (ChangeKind.EXTEND, "EXTEND"),
    (ChangeKind.ATTRIB, "ATTRIB"),
    (ChangeKind.LINK, "LINK"),
    (ChangeKind.RENAME, "RENAME"),
    (ChangeKind.REVOKE, "REVOKE"),
)


def render_changes(mask: int) -> str:
    """
    Render a change bitmask as a comma separated list of labels.

    Args:
        mask: Any combination of ChangeKind bits

    Returns:
        Labels of the set bits in table order, e.g. "DELETE,WRITE". An empty
        mask renders as an empty string.
    """
    return ",".join(label for kind, label in CHANGE_LABELS if mask & kind)


@dataclass(frozen=True)
class ChangeEvent:
    """A change observed on one watched path during one wakeup."""

    path: str
    kinds: ChangeKind

    def render(self) -> bytes:
        """Format the event as a report line: ``PATH<TAB>FLAGS<LF>``."""
        return os.fsencode(self.path) + b"\t" + render_changes(self.kinds).encode("ascii") + b"\n"
