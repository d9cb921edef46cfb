import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name, log_dir=None, log_filename="pathwatch.log", level=logging.WARNING, console=True):
    """
    Set up and return a logger with optional file and console handlers.

    The console handler writes to stderr; stdout carries the report stream
    and must never receive log records.

    Args:
        name (str): The logger name.
        log_dir (str): Directory where the log file will be stored. No file
            handler is added when empty.
        log_filename (str): Log file name.
        level (int): Logging level.
        console (bool): Whether to add a console handler.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear out any existing handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def parse_level(level):
    """Translate a level name such as "debug" into its logging constant."""
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.WARNING)
