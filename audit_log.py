#!/usr/bin/env python3
"""
Audit Log Module

Optional append-only, human-readable record of a cleanup run. Every module
writes its audit lines to the "kenosis.audit" logger; while an AuditLog is
open those lines are appended to the log file with a timestamp prefix:

    2024-01-31 14:25:01 - Proceeding with cleanup: Trash
"""

import logging
import pathlib
from typing import Optional

AUDIT_LOGGER = "kenosis.audit"
LOG_FORMAT = "%(asctime)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuditLog:
    """File sink for the kenosis.audit logger, usable as a context manager"""

    def __init__(self, path: Optional[pathlib.Path] = None):
        self.path = path
        self.logger = logging.getLogger(AUDIT_LOGGER)
        self._handler: Optional[logging.FileHandler] = None
        self._previous_level = self.logger.level

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def open(self) -> "AuditLog":
        if self.path is None or self._handler is not None:
            return self
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        self._previous_level = self.logger.level
        self.logger.setLevel(logging.INFO)
        self.logger.addHandler(handler)
        self._handler = handler
        return self

    def write(self, message: str, *args):
        self.logger.info(message, *args)

    def close(self):
        """Flush and detach the file handler; safe to call more than once"""
        if self._handler is None:
            return
        self._handler.flush()
        self.logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None
        self.logger.setLevel(self._previous_level)

    def __enter__(self) -> "AuditLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
