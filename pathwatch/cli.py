import io
import logging
import os
import sys

import click

from pathwatch import config
from pathwatch.channel import open_channel
from pathwatch.diagnostics import DiagnosticDump
from pathwatch.exceptions import ConfigError, WatcherError
from pathwatch.logger import parse_level, setup_logger
from pathwatch.watcher import Watcher

PROG_NAME = "pathwatch"


class UsageOnErrorCommand(click.Command):
    """Command that answers any command line error with its usage and status 0."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError:
            click.echo(ctx.get_help())
            ctx.exit(0)


def open_control_stream(stream):
    """
    Reopen the control stream without a userspace buffer.

    Readiness notifications count bytes still held by the kernel. A buffered
    reader could pull more than was counted and leave whole lines behind
    with no further notification for them.
    """
    try:
        fd = stream.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return stream
    return os.fdopen(fd, "rb", buffering=0, closefd=False)


def binary_stream(stream):
    """Return the byte stream underneath a text stream such as sys.stdout."""
    return getattr(stream, "buffer", stream)


def fail(ctx, message, exit_code=1):
    click.echo(f"{PROG_NAME}: {message}", err=True)
    ctx.exit(exit_code)


@click.command(cls=UsageOnErrorCommand, context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, config_path, debug):
    """
    Take newline delimited filenames to watch on stdin and report changes
    on stdout, one "PATH<TAB>FLAGS" line per change.

    Send SIGUSR1 to print the watched paths on stderr.
    """
    try:
        cfg = config.load_config(config_path)
    except ConfigError as e:
        fail(ctx, f"error loading configuration: {e}")

    log_cfg = cfg["logging"]
    level = logging.DEBUG if debug else parse_level(log_cfg.get("level"))
    logger = setup_logger(PROG_NAME, log_cfg.get("log_dir"), log_cfg.get("log_filename"), level=level)
    if "__config_path__" in cfg:
        logger.info(f"Using config from: {cfg['__config_path__']}")

    watcher_cfg = cfg["watcher"]
    try:
        preload = config.load_watch_lists(watcher_cfg["preload"]) if watcher_cfg.get("preload") else []
        dump = DiagnosticDump(watcher_cfg.get("dump_signal", "SIGUSR1"))
    except (ConfigError, ValueError) as e:
        fail(ctx, f"error loading configuration: {e}")

    control = open_control_stream(binary_stream(sys.stdin))
    report = binary_stream(sys.stdout)
    diagnostic = binary_stream(sys.stderr)

    try:
        with open_channel(watcher_cfg.get("backend", "auto")) as channel:
            try:
                dump.install()
            except (OSError, ValueError) as e:
                fail(ctx, f"error installing {dump.signum.name} handler: {e}")
            try:
                watcher = Watcher(channel, control, report, diagnostic, dump=dump)
                watcher.preload(preload)
                watcher.run()
            finally:
                dump.uninstall()
    except WatcherError as e:
        logger.debug("Fatal watcher error", exc_info=True)
        fail(ctx, str(e), e.exit_code)
    except KeyboardInterrupt:
        ctx.exit(130)


if __name__ == "__main__":
    main()
