"""
Notification channel: the single wait primitive of the watcher.

A channel blends three kinds of readiness into one ordered queue:

- the control stream has bytes to read (``InputReady``),
- a signal arrived and wrote to the wakeup pipe (``Interrupted``),
- a watched path changed (``PathChanged``).

Backends:
- ``KqueueChannel`` on BSD and macOS (``select.kqueue``)
- ``InotifyChannel`` on Linux (``inotify_simple`` with ``selectors``)
"""

import logging
import os
import select
import sys
from dataclasses import dataclass
from typing import Optional, Union

from pathwatch.changes import ChangeKind
from pathwatch.exceptions import ChannelError, PathOpenError

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "kqueue", "inotify")


@dataclass(frozen=True)
class InputReady:
    """The control stream has ``available`` bytes ready; ``eof`` if the writer is gone."""

    available: int
    eof: bool = False


@dataclass(frozen=True)
class PathChanged:
    """The path registered under ``token`` changed."""

    token: int
    kinds: ChangeKind


@dataclass(frozen=True)
class Interrupted:
    """A signal interrupted the wait."""

    signals: tuple = ()


ReadinessEvent = Union[InputReady, PathChanged, Interrupted]


def drain_wakeup_fd(fd: int) -> tuple:
    """Empty a non-blocking wakeup pipe and return the signal numbers it held."""
    received = bytearray()
    while True:
        try:
            data = os.read(fd, 512)
        except (BlockingIOError, InterruptedError):
            break
        if not data:
            break
        received.extend(data)
    return tuple(received)


class NotificationChannel:
    """
    Base class for notification channels.

    Subclasses implement the registration calls and ``wait``; this class
    provides opening watch targets so every backend fails the same way.
    """

    # Flags used to open a path for watching. Must not consume data.
    open_flags = os.O_RDONLY

    def watch_input(self, stream) -> None:
        raise NotImplementedError

    def unwatch_input(self) -> None:
        raise NotImplementedError

    def watch_wakeup(self, fd: int) -> None:
        raise NotImplementedError

    def watch_path(self, path: str, token: int) -> int:
        """
        Open ``path`` and register it for every change kind.

        Args:
            path: Path to watch
            token: Value to echo back in ``PathChanged`` events for this path

        Returns:
            The file descriptor backing the watch

        Raises:
            PathOpenError: If the path cannot be opened
            RegistrationError: If the channel refuses the registration
        """
        raise NotImplementedError

    def wait(self, timeout: Optional[float] = None) -> Optional[ReadinessEvent]:
        """
        Block until exactly one readiness event is available.

        Returns None only when ``timeout`` expires.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass

    def _open_target(self, path: str) -> int:
        try:
            return os.open(path, self.open_flags)
        except OSError as e:
            raise PathOpenError(path, e) from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def open_channel(backend: str = "auto") -> NotificationChannel:
    """
    Create the notification channel for this platform.

    Args:
        backend: "auto", "kqueue" or "inotify"

    Returns:
        A ready to use NotificationChannel

    Raises:
        ChannelError: If the backend is unknown or unsupported here
    """
    if backend not in BACKENDS:
        raise ChannelError(f"unknown notification backend: {backend}")

    if backend in ("auto", "kqueue") and hasattr(select, "kqueue"):
        from pathwatch.kqueue_channel import KqueueChannel

        logger.debug("Using kqueue notification channel")
        return KqueueChannel()

    if backend in ("auto", "inotify") and sys.platform.startswith("linux"):
        from pathwatch.inotify_channel import InotifyChannel

        logger.debug("Using inotify notification channel")
        return InotifyChannel()

    raise ChannelError(
        f"notification backend '{backend}' is not available on {sys.platform}"
    )
