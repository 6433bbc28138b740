"""
Logging configuration for LocalPerks.

Configures the root logger once per process. Every record carries the
current request ID (or '-' outside a request) so ledger writes can be
traced back to the HTTP call that made them.

Environment Variables:
    LOG_LEVEL: Root log level (default INFO)
"""
import os
import logging
import sys

from flask import g, has_request_context

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] [req:%(request_id)s] %(message)s'

_configured = False


class RequestIdFilter(logging.Filter):
    """Attach the current request ID to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = '-'
        if has_request_context():
            request_id = getattr(g, 'request_id', None) or '-'
        record.request_id = request_id
        return True


def setup_logging(level: str = None) -> None:
    """Configure root logging. Safe to call more than once."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)

    # SQL echo is noisy; opt in with LOG_LEVEL=DEBUG only
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
