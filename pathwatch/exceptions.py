"""Custom exceptions for pathwatch."""


class WatcherError(Exception):
    """Base exception for all fatal watcher errors."""

    exit_code = 1


class ChannelError(WatcherError):
    """The notification channel could not be created or waited on."""
    pass


class RegistrationError(WatcherError):
    """A path could not be registered with the notification channel."""
    pass


class PathOpenError(WatcherError):
    """A path could not be opened for watching."""

    def __init__(self, path, error):
        super().__init__(f"couldn't open {path}: {error.strerror or error}")
        self.path = path
        self.exit_code = error.errno or 1


class InputReadError(WatcherError):
    """Reading the control stream failed for a reason other than end of stream."""
    pass


class ReportStreamClosed(WatcherError):
    """The consumer of the report stream went away."""
    pass


class ConfigError(Exception):
    """Configuration could not be loaded."""
    pass
