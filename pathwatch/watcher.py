"""
Watcher loop for pathwatch.

The loop owns one notification channel and blocks on it for one readiness
event at a time. Each wakeup is one of:

- more path text on the control stream: decode it, then open, register and
  record each path,
- a change on a watched path: render it and write a report line,
- an interruption by a signal: service a pending diagnostic dump and wait
  again.

Everything except the wait itself runs to completion between wakeups.
"""

import enum
import logging
from typing import Iterable, Optional

from pathwatch.changes import ChangeEvent
from pathwatch.channel import InputReady, Interrupted, PathChanged
from pathwatch.exceptions import ReportStreamClosed
from pathwatch.reader import StreamLineParser
from pathwatch.registry import PathRegistry, WatchedPath


class WatcherState(enum.Enum):
    INIT = "init"
    WAITING = "waiting"
    DISPATCH_INPUT = "dispatch_input"
    DISPATCH_CHANGE = "dispatch_change"
    INTERRUPTED = "interrupted"


class Watcher:
    """
    Single-threaded event loop watching paths read from a control stream.

    Attributes:
        channel: Notification channel used for every wait and registration
        control: Binary control stream providing paths, one per line
        report: Binary stream receiving ``PATH<TAB>FLAGS`` lines
        diagnostic: Binary stream receiving diagnostic dumps
        registry: Paths registered so far
        dump: Optional DiagnosticDump servicing dump requests
        state: Current WatcherState
    """

    def __init__(
        self,
        channel,
        control,
        report,
        diagnostic,
        dump=None,
        registry: Optional[PathRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.channel = channel
        self.control = control
        self.report = report
        self.diagnostic = diagnostic
        self.dump = dump
        self.registry = registry if registry is not None else PathRegistry()
        self.parser = StreamLineParser(control)
        self.logger = logger or logging.getLogger(__name__)
        self.state = WatcherState.INIT

    def start(self):
        """Register the control stream and the dump wakeup with the channel."""
        self.channel.watch_input(self.control)
        if self.dump is not None and self.dump.wakeup_fd is not None:
            self.channel.watch_wakeup(self.dump.wakeup_fd)
        self.state = WatcherState.WAITING
        self.logger.debug("Watcher started")

    def add_path(self, path: str) -> WatchedPath:
        """
        Open and register ``path``, then record it in the registry.

        The registry only gains the entry once the channel accepted it, so
        every recorded path has exactly one live registration.
        """
        handle = self.channel.watch_path(path, self.registry.next_token())
        entry = self.registry.append(path, handle)
        self.logger.debug(f"Registered {path} as token {entry.token}")
        return entry

    def preload(self, paths: Iterable[str]):
        """Register paths known before the control stream is read."""
        for path in paths:
            self.add_path(path)

    def step(self, timeout: Optional[float] = None):
        """
        Wait for one readiness event and dispatch it.

        Args:
            timeout: Seconds to wait; None blocks until an event arrives

        Returns:
            The dispatched event, or None if the wait timed out
        """
        self.state = WatcherState.WAITING
        event = self.channel.wait(timeout)

        if isinstance(event, Interrupted):
            self.state = WatcherState.INTERRUPTED
            self.logger.debug(f"Wait interrupted by signals {event.signals}")
        elif isinstance(event, InputReady):
            self.state = WatcherState.DISPATCH_INPUT
            self._dispatch_input(event)
        elif isinstance(event, PathChanged):
            self.state = WatcherState.DISPATCH_CHANGE
            self._dispatch_change(event)

        if self.dump is not None:
            self.dump.service(self.registry, self.diagnostic)
        self.state = WatcherState.WAITING
        return event

    def run(self):
        """Start the watcher and dispatch events until a fatal error."""
        self.start()
        while True:
            self.step()

    def _dispatch_input(self, event: InputReady):
        self.logger.debug(f"Input ready: {event.available} bytes, eof={event.eof}")
        for path in self.parser.consume(event.available, event.eof):
            self.add_path(path)
        if self.parser.at_eof:
            self.logger.info(f"Control stream closed, watching {len(self.registry)} paths")
            self.channel.unwatch_input()

    def _dispatch_change(self, event: PathChanged):
        entry = self.registry.get(event.token)
        if entry is None:
            self.logger.warning(f"Change for unknown token {event.token} ignored")
            return
        self.write_report(ChangeEvent(path=entry.path, kinds=event.kinds))

    def write_report(self, change: ChangeEvent):
        """
        Write one report line and flush it.

        Write failures are logged and otherwise ignored, except a closed
        pipe, which means nobody is reading the report any more.
        """
        try:
            self.report.write(change.render())
            self.report.flush()
        except BrokenPipeError as e:
            raise ReportStreamClosed(f"report stream closed: {e}") from e
        except OSError as e:
            self.logger.warning(f"Error writing report for {change.path}: {e}")
