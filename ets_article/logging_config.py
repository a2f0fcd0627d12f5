"""
Logging setup for the ets_article command line
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None, format_string: Optional[str] = None) -> logging.Logger:
    """Configure the package logger with a single stream handler.

    Calling it again replaces the handler instead of stacking a second one.
    """
    level = (level or 'INFO').upper()
    logger = logging.getLogger('ets_article')
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
