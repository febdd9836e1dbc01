"""Logging setup."""

import logging

logging.basicConfig(level=logging.INFO)


def get_logger(name):
    """Return a module logger."""
    logger = logging.getLogger(name)
    return logger
