"""
Structured logging for the messaging core.

Emits one JSON document per record so push failures and dedup hits can be
picked out of the stream by field.
"""

import logging
import sys
from datetime import datetime
import json

from messenger.config import LOG_LEVEL


class StructuredLogger:
    """JSON logger wrapping a stdlib logger."""

    def __init__(self, name: str, level: int = logging.getLevelName(LOG_LEVEL)):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Prevent adding handlers multiple times
        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        self.logger.addHandler(console_handler)

    def _log_structured(self, level: int, message: str, exc_info: bool = False, **kwargs):
        if self.logger.isEnabledFor(level):
            log_data = {
                "timestamp": datetime.utcnow().isoformat(),
                "level": logging.getLevelName(level),
                "message": message,
                "service": self.logger.name
            }
            log_data.update(kwargs)
            self.logger.log(level, json.dumps(log_data, default=str), exc_info=exc_info)

    def debug(self, message: str, **kwargs):
        self._log_structured(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_structured(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_structured(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_structured(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log at error level with the active traceback."""
        self._log_structured(logging.ERROR, message, exc_info=True, exception=True, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
