"""
Logging configuration for Attendance Service.

Every record carries the recognition session it came from, so logs of
several sessions sharing one process can be told apart.
"""

import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = '%(asctime)s [%(levelname)s] [session=%(session_id)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers, kept at WARNING unless debugging
NOISY_LOGGERS = ('werkzeug', 'urllib3')


class SessionContextFilter(logging.Filter):
    """Stamp records with the session id unless they already have one."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'session_id'):
            record.session_id = self.session_id
        return True


def setup_logging(
    session_id: str,
    debug: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Route all service logs to one console handler.

    Calling it again replaces the previous handler.

    Args:
        session_id: Session identifier for log context
        debug: Enable debug level logging
        stream: Output stream (stdout by default)

    Returns:
        The installed handler
    """
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(SessionContextFilter(session_id))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
