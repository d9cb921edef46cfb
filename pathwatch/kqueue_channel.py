"""Notification channel backed by kqueue (BSD, macOS)."""

import logging
import os
import select
from typing import Optional

from pathwatch.changes import ChangeKind
from pathwatch.channel import (InputReady, Interrupted, NotificationChannel,
                               PathChanged, drain_wakeup_fd)
from pathwatch.exceptions import ChannelError, RegistrationError

logger = logging.getLogger(__name__)


def _note_table():
    return (
        (select.KQ_NOTE_DELETE, ChangeKind.DELETE),
        (select.KQ_NOTE_WRITE, ChangeKind.WRITE),
        (select.KQ_NOTE_EXTEND, ChangeKind.EXTEND),
        (select.KQ_NOTE_ATTRIB, ChangeKind.ATTRIB),
        (select.KQ_NOTE_LINK, ChangeKind.LINK),
        (select.KQ_NOTE_RENAME, ChangeKind.RENAME),
        (select.KQ_NOTE_REVOKE, ChangeKind.REVOKE),
    )


def kinds_from_fflags(fflags: int) -> ChangeKind:
    """Translate EVFILT_VNODE fflags into ChangeKind bits."""
    kinds = ChangeKind.NONE
    for note, kind in _note_table():
        if fflags & note:
            kinds |= kind
    return kinds


def all_notes() -> int:
    notes = 0
    for note, _ in _note_table():
        notes |= note
    return notes


class KqueueChannel(NotificationChannel):
    """
    kqueue based channel.

    Every registration carries its token as the kevent ``udata``, so a vnode
    event leads straight back to its registry entry.
    """

    # O_EVTONLY exists on macOS only.
    open_flags = getattr(os, "O_EVTONLY", os.O_RDONLY)

    def __init__(self):
        try:
            self._kq = select.kqueue()
        except OSError as e:
            raise ChannelError(f"couldn't get kqueue: {e}") from e
        self._input_fd = None
        self._wakeup_fd = None
        self._handles = []

    def _control(self, changes, message):
        try:
            self._kq.control(changes, 0, 0)
        except OSError as e:
            raise ChannelError(f"{message}: {e}") from e

    def watch_input(self, stream) -> None:
        fd = stream.fileno()
        self._control(
            [select.kevent(fd, filter=select.KQ_FILTER_READ,
                           flags=select.KQ_EV_ADD | select.KQ_EV_CLEAR)],
            "couldn't set input event",
        )
        self._input_fd = fd

    def unwatch_input(self) -> None:
        if self._input_fd is None:
            return
        fd, self._input_fd = self._input_fd, None
        try:
            self._kq.control(
                [select.kevent(fd, filter=select.KQ_FILTER_READ,
                               flags=select.KQ_EV_DELETE)], 0, 0)
        except OSError as e:
            # The kernel drops the filter itself once the descriptor is closed.
            logger.debug(f"Removing input event failed: {e}")

    def watch_wakeup(self, fd: int) -> None:
        self._control(
            [select.kevent(fd, filter=select.KQ_FILTER_READ,
                           flags=select.KQ_EV_ADD | select.KQ_EV_CLEAR)],
            "couldn't set wakeup event",
        )
        self._wakeup_fd = fd

    def watch_path(self, path: str, token: int) -> int:
        fd = self._open_target(path)
        event = select.kevent(
            fd,
            filter=select.KQ_FILTER_VNODE,
            flags=select.KQ_EV_ADD | select.KQ_EV_CLEAR,
            fflags=all_notes(),
            udata=token,
        )
        try:
            self._kq.control([event], 0, 0)
        except OSError as e:
            os.close(fd)
            raise RegistrationError(f"couldn't monitor {path}: {e}") from e
        self._handles.append(fd)
        logger.debug(f"Watching {path} (fd={fd}, token={token})")
        return fd

    def wait(self, timeout: Optional[float] = None):
        while True:
            try:
                events = self._kq.control(None, 1, timeout)
            except InterruptedError:
                return Interrupted()
            except OSError as e:
                raise ChannelError(f"error checking kqueue: {e}") from e

            if not events:
                if timeout is not None:
                    return None
                continue

            event = events[0]
            if event.filter == select.KQ_FILTER_READ:
                if event.ident == self._wakeup_fd:
                    return Interrupted(drain_wakeup_fd(event.ident))
                if event.ident == self._input_fd:
                    return InputReady(
                        available=max(event.data, 0),
                        eof=bool(event.flags & select.KQ_EV_EOF),
                    )
                # Stale read event for an input already removed.
                continue

            if event.filter == select.KQ_FILTER_VNODE:
                return PathChanged(token=event.udata, kinds=kinds_from_fflags(event.fflags))

            logger.debug(f"Ignoring unexpected kevent: {event}")

    def close(self) -> None:
        self._kq.close()
        for fd in self._handles:
            os.close(fd)
        self._handles.clear()
