"""Console and log file output for the mock server."""
import logging
import sys

from colorama import Fore, Style, init as colorama_init

colorama_init()

LOGGER_NAME = "mockhttp"

LEVEL_COLORS = {
    logging.DEBUG: Fore.WHITE,
    logging.INFO: Fore.CYAN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED,
}


def ctext(text, color=None):
    """Apply color to text"""
    if color:
        return color + text + Style.RESET_ALL
    return text


def format_file_size(size_bytes):
    """Format file size in human-readable format"""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(size_bytes)

    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    if i == 0:  # Bytes
        return f"{int(size)} {size_names[i]}"
    else:
        return f"{size:.2f} {size_names[i]}"


class ColorFormatter(logging.Formatter):
    """Colors the whole line by level unless the record picked its own color."""

    def format(self, record):
        message = super().format(record)
        color = getattr(record, "color", None) or LEVEL_COLORS.get(record.levelno)
        return ctext(message, color)


def setup_logging(log_file, level=logging.INFO):
    """Send the server log to stdout and to ``log_file``.

    The file is truncated on every start so it only holds the current run.
    Returns the configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = "%(asctime)s %(levelname)s %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(ColorFormatter(fmt, datefmt))
    logger.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(fmt, datefmt))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
