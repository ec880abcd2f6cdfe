"""
Performance collector hooks around secured handlers.
"""

import logging
import time
from typing import Optional

from authguard.core.models import APIRequest


class OperationTracker:
    """Handle for one in-flight operation."""

    def success(self) -> None:
        pass

    def error(self) -> None:
        pass


class PerformanceCollector:
    """Interface for timing secured operations; aggregation lives elsewhere."""

    def start_operation(self, name: str, request: APIRequest) -> OperationTracker:
        raise NotImplementedError


class _LoggedOperation(OperationTracker):

    def __init__(self, logger: logging.Logger, name: str, request: APIRequest):
        self.logger = logger
        self.name = name
        self.path = request.path
        self.started = time.perf_counter()
        self.finished = False

    def _finish(self, outcome: str) -> None:
        if self.finished:
            return
        self.finished = True
        duration_ms = (time.perf_counter() - self.started) * 1000
        self.logger.debug("%s %s %s in %.1fms", self.name, self.path, outcome, duration_ms,
                          extra={"operation": self.name, "outcome": outcome, "duration_ms": duration_ms})

    def success(self) -> None:
        self._finish("succeeded")

    def error(self) -> None:
        self._finish("failed")


class LoggingPerformanceCollector(PerformanceCollector):
    """Logs each operation's duration at DEBUG level."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("authguard.performance")

    def start_operation(self, name: str, request: APIRequest) -> OperationTracker:
        return _LoggedOperation(self.logger, name, request)
