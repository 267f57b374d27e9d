"""Logging setup for scripts built on the client. Library modules only call `get_logger()`."""

import logging
import sys


def setup_logging(level=logging.INFO, log_file="storefront_client.log"):
    """
    Configures the global logging system.

    Args:
        level (int): Root log level, INFO by default.
        log_file (str | None): Path of the persistent log file. ``None`` logs to stdout only.
    """
    log_format = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=log_format, handlers=handlers)

    # Request lines from httpx are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
