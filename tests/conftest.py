import logging
import os
from collections import deque

import pytest

from pathwatch.channel import NotificationChannel
from pathwatch.exceptions import WatcherError


class ChannelExhausted(WatcherError):
    """Raised by FakeChannel once its scripted events run out."""

    exit_code = 3


class FakeChannel(NotificationChannel):
    """Notification channel replaying scripted readiness events."""

    def __init__(self, events=()):
        self.events = deque(events)
        self.input_stream = None
        self.input_watched = False
        self.wakeup_fd = None
        self.registrations = []

    def push(self, *events):
        self.events.extend(events)

    def watch_input(self, stream):
        self.input_stream = stream
        self.input_watched = True

    def unwatch_input(self):
        self.input_watched = False

    def watch_wakeup(self, fd):
        self.wakeup_fd = fd

    def watch_path(self, path, token):
        fd = self._open_target(path)
        self.registrations.append((path, token, fd))
        return fd

    def wait(self, timeout=None):
        if not self.events:
            if timeout is not None:
                return None
            raise ChannelExhausted("no more scripted events")
        return self.events.popleft()

    def close(self):
        for _, _, fd in self.registrations:
            os.close(fd)
        self.registrations = []


@pytest.fixture
def fake_channel():
    channel = FakeChannel()
    yield channel
    channel.close()


@pytest.fixture
def watched_files(tmp_path):
    """Two existing files to watch."""
    first = tmp_path / "a"
    second = tmp_path / "b"
    first.write_text("first")
    second.write_text("second")
    return str(first), str(second)


@pytest.fixture(autouse=True)
def reset_pathwatch_logger():
    """Drop handlers the CLI attaches to streams that close with each test."""
    yield
    logger = logging.getLogger("pathwatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
