"""
Notification channel backed by inotify (Linux).

inotify reports fewer distinctions than kqueue vnode filters, so each
registration keeps an open descriptor to the watched object and compares
``fstat`` results between events:

- a modification that grew the file also reports EXTEND,
- a link count change reports LINK, or DELETE once the count reaches zero.

Holding the descriptor keeps the inode alive, so an unlinked file shows up as
a link count drop to zero rather than as IN_DELETE_SELF.
"""

import array
import fcntl
import logging
import os
import selectors
import termios
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from inotify_simple import INotify, flags

from pathwatch.changes import ChangeKind
from pathwatch.channel import (InputReady, Interrupted, NotificationChannel,
                               PathChanged, drain_wakeup_fd)
from pathwatch.exceptions import ChannelError, RegistrationError

logger = logging.getLogger(__name__)

# Changes to the entries of a watched directory.
ENTRY_MASK = flags.CREATE | flags.DELETE | flags.MOVED_FROM | flags.MOVED_TO

WATCH_MASK = (
    flags.MODIFY | flags.ATTRIB | flags.DELETE_SELF | flags.MOVE_SELF | ENTRY_MASK
)

_INPUT = "input"
_WAKEUP = "wakeup"
_CHANGES = "changes"


@dataclass
class _Watch:
    token: int
    fd: int
    size: int
    nlink: int


def bytes_ready(fd: int) -> int:
    """Return the number of bytes that can be read from ``fd`` without blocking."""
    buf = array.array("i", [0])
    fcntl.ioctl(fd, termios.FIONREAD, buf, True)
    return buf[0]


class InotifyChannel(NotificationChannel):
    """
    inotify based channel, multiplexed with ``selectors``.

    One inotify read can carry events for many watches; they are queued and
    handed out one per ``wait`` call, in the order the kernel produced them.
    """

    # O_PATH opens the object without read access to its data.
    open_flags = getattr(os, "O_PATH", os.O_RDONLY)

    def __init__(self):
        try:
            self._inotify = INotify()
        except OSError as e:
            raise ChannelError(f"couldn't create inotify instance: {e}") from e
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._inotify.fileno(), selectors.EVENT_READ, _CHANGES)
        self._watches: Dict[int, List[_Watch]] = {}
        self._pending: Deque = deque()
        self._input_fd: Optional[int] = None

    def watch_input(self, stream) -> None:
        fd = stream.fileno()
        try:
            self._selector.register(fd, selectors.EVENT_READ, _INPUT)
        except PermissionError:
            # epoll refuses regular files; all of their content is ready now.
            logger.debug("Control stream cannot be polled, reading it to the end")
            self._pending.append(InputReady(available=0, eof=True))
            return
        except (OSError, ValueError) as e:
            raise ChannelError(f"couldn't set input event: {e}") from e
        self._input_fd = fd

    def unwatch_input(self) -> None:
        if self._input_fd is None:
            return
        fd, self._input_fd = self._input_fd, None
        self._selector.unregister(fd)

    def watch_wakeup(self, fd: int) -> None:
        try:
            self._selector.register(fd, selectors.EVENT_READ, _WAKEUP)
        except (OSError, ValueError) as e:
            raise ChannelError(f"couldn't set wakeup event: {e}") from e

    def watch_path(self, path: str, token: int) -> int:
        fd = self._open_target(path)
        try:
            st = os.fstat(fd)
            wd = self._inotify.add_watch(path, WATCH_MASK)
        except OSError as e:
            os.close(fd)
            raise RegistrationError(f"couldn't monitor {path}: {e}") from e
        self._watches.setdefault(wd, []).append(
            _Watch(token=token, fd=fd, size=st.st_size, nlink=st.st_nlink)
        )
        logger.debug(f"Watching {path} (fd={fd}, wd={wd}, token={token})")
        return fd

    def wait(self, timeout: Optional[float] = None):
        while not self._pending:
            try:
                ready = self._selector.select(timeout)
            except InterruptedError:
                return Interrupted()
            except OSError as e:
                raise ChannelError(f"error waiting for events: {e}") from e

            if not ready and timeout is not None:
                return None

            for key, _ in ready:
                if key.data == _WAKEUP:
                    self._pending.append(Interrupted(drain_wakeup_fd(key.fd)))
                elif key.data == _INPUT:
                    self._pending.append(self._input_event(key.fd))
                else:
                    self._read_changes()

        return self._pending.popleft()

    def _input_event(self, fd: int) -> InputReady:
        try:
            available = bytes_ready(fd)
        except OSError as e:
            raise ChannelError(f"couldn't check input: {e}") from e
        # Readable with nothing to read means the writer has gone away.
        return InputReady(available=available, eof=available == 0)

    def _read_changes(self) -> None:
        try:
            events = self._inotify.read(timeout=0)
        except OSError as e:
            raise ChannelError(f"error reading inotify events: {e}") from e

        for event in events:
            if event.mask & flags.Q_OVERFLOW:
                logger.warning("inotify event queue overflowed, changes were lost")
                continue
            for watch in self._watches.get(event.wd, ()):
                kinds = self._translate(watch, event.mask)
                if kinds:
                    self._pending.append(PathChanged(token=watch.token, kinds=kinds))
            if event.mask & flags.IGNORED:
                logger.debug(f"inotify dropped watch descriptor {event.wd}")
                for watch in self._watches.pop(event.wd, ()):
                    os.close(watch.fd)

    def _translate(self, watch: _Watch, mask: int) -> ChangeKind:
        try:
            st = os.fstat(watch.fd)
        except OSError:
            st = None

        kinds = ChangeKind.NONE
        if mask & (flags.MODIFY | ENTRY_MASK):
            kinds |= ChangeKind.WRITE
            if st is not None and st.st_size > watch.size:
                kinds |= ChangeKind.EXTEND
        if st is not None and st.st_nlink != watch.nlink:
            kinds |= ChangeKind.DELETE if st.st_nlink == 0 else ChangeKind.LINK
        elif mask & flags.ATTRIB:
            kinds |= ChangeKind.ATTRIB
        if mask & flags.DELETE_SELF:
            kinds |= ChangeKind.DELETE
        if mask & flags.MOVE_SELF:
            kinds |= ChangeKind.RENAME
        if mask & flags.UNMOUNT:
            kinds |= ChangeKind.REVOKE

        if st is not None:
            watch.size = st.st_size
            watch.nlink = st.st_nlink
        return kinds

    def close(self) -> None:
        self._selector.close()
        self._inotify.close()
        for watches in self._watches.values():
            for watch in watches:
                os.close(watch.fd)
        self._watches.clear()
