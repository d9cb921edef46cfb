"""
Integration tests for the inotify notification channel (Linux only).
"""

import os
import signal
import sys

import pytest

pytestmark = pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="inotify is Linux only"
)

from pathwatch.changes import ChangeKind  # noqa: E402
from pathwatch.channel import InputReady, Interrupted, PathChanged  # noqa: E402
from pathwatch.exceptions import PathOpenError  # noqa: E402

TIMEOUT = 2.0


@pytest.fixture
def channel():
    from pathwatch.inotify_channel import InotifyChannel

    ch = InotifyChannel()
    yield ch
    ch.close()


@pytest.fixture
def target(tmp_path):
    path = tmp_path / "target.txt"
    path.write_text("initial")
    return path


def next_change(channel):
    event = channel.wait(TIMEOUT)
    assert isinstance(event, PathChanged), f"expected a change, got {event!r}"
    return event


def test_append_reports_write_and_extend(channel, target):
    channel.watch_path(str(target), 0)
    with open(target, "a") as f:
        f.write(" and more")

    event = next_change(channel)
    assert event.token == 0
    assert event.kinds & ChangeKind.WRITE
    assert event.kinds & ChangeKind.EXTEND


def test_chmod_reports_attrib(channel, target):
    channel.watch_path(str(target), 3)
    os.chmod(target, 0o600)

    event = next_change(channel)
    assert event.token == 3
    assert event.kinds == ChangeKind.ATTRIB


def test_hard_link_reports_link(channel, target, tmp_path):
    channel.watch_path(str(target), 0)
    os.link(target, tmp_path / "second-name")

    assert next_change(channel).kinds & ChangeKind.LINK


def test_unlink_reports_delete(channel, target):
    channel.watch_path(str(target), 0)
    os.unlink(target)

    assert next_change(channel).kinds & ChangeKind.DELETE


def test_rename_reports_rename(channel, target, tmp_path):
    channel.watch_path(str(target), 0)
    os.rename(target, tmp_path / "renamed.txt")

    assert next_change(channel).kinds & ChangeKind.RENAME


def test_same_path_twice_reports_each_token(channel, target):
    channel.watch_path(str(target), 0)
    channel.watch_path(str(target), 1)
    os.chmod(target, 0o600)

    tokens = {next_change(channel).token, next_change(channel).token}
    assert tokens == {0, 1}


def test_missing_path_is_open_error(channel, tmp_path):
    with pytest.raises(PathOpenError):
        channel.watch_path(str(tmp_path / "missing"), 0)


def test_timeout_returns_none(channel, target):
    channel.watch_path(str(target), 0)
    assert channel.wait(0.05) is None


def test_input_readiness_and_eof(channel):
    read_fd, write_fd = os.pipe()
    with os.fdopen(read_fd, "rb", buffering=0) as control:
        channel.watch_input(control)
        os.write(write_fd, b"/tmp/a\n")

        event = channel.wait(TIMEOUT)
        assert event == InputReady(available=7, eof=False)
        control.read(7)

        os.close(write_fd)
        event = channel.wait(TIMEOUT)
        assert event == InputReady(available=0, eof=True)
        channel.unwatch_input()


def test_regular_file_input_is_ready_at_eof(channel, tmp_path):
    listing = tmp_path / "paths.txt"
    listing.write_bytes(b"/tmp/a\n")
    with open(listing, "rb", buffering=0) as control:
        channel.watch_input(control)
        assert channel.wait(TIMEOUT) == InputReady(available=0, eof=True)


def test_signal_wakeup_interrupts_wait(channel):
    from pathwatch.diagnostics import DiagnosticDump

    dump = DiagnosticDump(signal.SIGUSR1).install()
    try:
        channel.watch_wakeup(dump.wakeup_fd)
        os.kill(os.getpid(), signal.SIGUSR1)
        event = channel.wait(TIMEOUT)
        assert isinstance(event, Interrupted)
        assert int(signal.SIGUSR1) in event.signals
        assert dump.requested
    finally:
        dump.uninstall()


def test_dropped_watch_closes_its_descriptor(channel, target):
    fd = channel.watch_path(str(target), 0)
    (wd,) = list(channel._watches)

    channel._inotify.rm_watch(wd)

    assert channel.wait(0.2) is None
    assert wd not in channel._watches
    with pytest.raises(OSError):
        os.fstat(fd)


def test_signal_dump_through_watcher_loop(channel, tmp_path):
    import io

    from pathwatch.diagnostics import DiagnosticDump
    from pathwatch.watcher import Watcher

    first = tmp_path / "first"
    second = tmp_path / "second"
    first.write_text("1")
    second.write_text("2")

    read_fd, write_fd = os.pipe()
    dump = DiagnosticDump(signal.SIGUSR1).install()
    try:
        with os.fdopen(read_fd, "rb", buffering=0) as control:
            watcher = Watcher(channel, control, io.BytesIO(), io.BytesIO(), dump=dump)
            watcher.start()
            os.write(write_fd, f"{first}\n{second}\n".encode())
            assert isinstance(watcher.step(TIMEOUT), InputReady)
            assert len(watcher.registry) == 2

            os.kill(os.getpid(), signal.SIGUSR1)
            assert isinstance(watcher.step(TIMEOUT), Interrupted)
            assert watcher.diagnostic.getvalue() == f"{first}\n{second}\n".encode()
            assert watcher.report.getvalue() == b""

            os.chmod(first, 0o600)
            assert isinstance(watcher.step(TIMEOUT), PathChanged)
            assert watcher.report.getvalue() == f"{first}\tATTRIB\n".encode()
            assert watcher.diagnostic.getvalue() == f"{first}\n{second}\n".encode()
    finally:
        dump.uninstall()
        os.close(write_fd)
