"""
Diagnostic dump of the watched paths.

A signal (SIGUSR1 by default) asks the watcher to print every registered
path to the diagnostic stream. The handler only records the request; the
dump itself happens in the watcher loop once its wait returns. A self-pipe
registered with ``signal.set_wakeup_fd`` makes a blocked wait return as soon
as the signal arrives.
"""

import logging
import os
import signal
import time

import psutil

logger = logging.getLogger(__name__)

UNCATCHABLE_SIGNALS = frozenset(
    getattr(signal, name) for name in ("SIGKILL", "SIGSTOP") if hasattr(signal, name)
)


def resolve_signal(name):
    """
    Resolve a signal given by name ("SIGUSR1", "USR1") or number.

    Raises:
        ValueError: If the signal is unknown or cannot be caught
    """
    if isinstance(name, int):
        signum = signal.Signals(name)
    else:
        key = str(name).upper()
        if not key.startswith("SIG"):
            key = "SIG" + key
        try:
            signum = signal.Signals[key]
        except KeyError:
            raise ValueError(f"Unknown signal: {name}")
    if signum in UNCATCHABLE_SIGNALS:
        raise ValueError(f"Signal {signum.name} cannot be caught")
    return signum


def log_process_status(watched_count):
    """
    Log process status information alongside a dump.

    Args:
        watched_count (int): Number of registered paths
    """
    try:
        proc = psutil.Process(os.getpid())
        status_info = {
            "PID": proc.pid,
            "Memory RSS": proc.memory_info().rss,
            "Open FDs": proc.num_fds() if hasattr(proc, "num_fds") else "n/a",
            "Started At": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())
            ),
            "Watched Paths": watched_count,
        }
        logger.info(
            "Watcher Status: " + ", ".join(f"{k}: {v}" for k, v in status_info.items())
        )
    except psutil.Error as e:
        logger.error(f"Error logging watcher status: {e}")


class DiagnosticDump:
    """
    Deferred, signal triggered dump of the path registry.

    Attributes:
        signum: Signal that requests a dump
        requested: Set by the signal handler, cleared once the dump is written
        wakeup_fd: Read end of the wakeup pipe, or None when not installed
    """

    def __init__(self, signum=signal.SIGUSR1):
        self.signum = resolve_signal(signum)
        self.requested = False
        self.wakeup_fd = None
        self._write_fd = None
        self._previous_handler = None
        self._previous_wakeup_fd = -1

    def _handle(self, signum, frame):
        self.requested = True

    def install(self):
        """
        Install the signal handler and the wakeup pipe.

        Must be called from the main thread. On failure the previous wakeup
        fd is restored and the pipe is closed before the error propagates.
        """
        read_fd, write_fd = os.pipe()
        os.set_blocking(read_fd, False)
        os.set_blocking(write_fd, False)
        previous_wakeup_fd = signal.set_wakeup_fd(write_fd)
        try:
            self._previous_handler = signal.signal(self.signum, self._handle)
        except (OSError, ValueError):
            signal.set_wakeup_fd(previous_wakeup_fd)
            os.close(read_fd)
            os.close(write_fd)
            raise
        self._previous_wakeup_fd = previous_wakeup_fd
        self.wakeup_fd, self._write_fd = read_fd, write_fd
        logger.debug(f"Diagnostic dump installed for {self.signum.name}")
        return self

    def uninstall(self):
        """Restore the previous signal handler and wakeup fd."""
        if self.wakeup_fd is None:
            return
        signal.signal(self.signum, self._previous_handler or signal.SIG_DFL)
        signal.set_wakeup_fd(self._previous_wakeup_fd)
        os.close(self.wakeup_fd)
        os.close(self._write_fd)
        self.wakeup_fd = self._write_fd = None

    def service(self, registry, stream):
        """
        Write the registry to ``stream`` if a dump was requested.

        Args:
            registry (PathRegistry): Registry to dump, oldest entry first
            stream: Binary diagnostic stream

        Returns:
            bool: True if a dump was written
        """
        if not self.requested:
            return False
        self.requested = False

        stream.write(b"".join(os.fsencode(path) + b"\n" for path in registry.iterate()))
        stream.flush()
        log_process_status(len(registry))
        return True
