"""
Base service class for Sivic services.

This module provides a base class for the outbound gateways, with common
functionality for timeouts and timing logs.
"""

import logging
import time
from typing import Any, Optional

# Configure logger
logger = logging.getLogger(__name__)


class BaseService:
    """
    Base service class with common functionality.

    This class provides:
    - Default timeout
    - Logging
    - Performance tracking
    """

    def __init__(self, timeout: float = 10.0, logger: Optional[logging.Logger] = None):
        """
        Initialize the base service.

        Args:
            timeout: Default timeout for service operations in seconds
            logger: Optional logger instance
        """
        self.timeout = timeout
        self.logger = logger or logging.getLogger(f"sivic.{self.__class__.__name__}")

    def log_timing(self, operation_name: str) -> "TimingContextManager":
        """
        Create a context manager to log timing information.

        Args:
            operation_name: Name of the operation

        Returns:
            Timing context manager
        """
        return TimingContextManager(operation_name, self.logger)


class TimingContextManager:
    """Context manager to log timing information."""

    def __init__(self, operation_name: str, logger: logging.Logger):
        self.operation_name = operation_name
        self.logger = logger
        self.start_time = 0.0
        self.elapsed = 0.0

    async def __aenter__(self) -> "TimingContextManager":
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._finish(exc_val)

    def __enter__(self) -> "TimingContextManager":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._finish(exc_val)

    def _finish(self, exc_val: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        if exc_val is not None:
            self.logger.warning(
                f"{self.operation_name} failed after {self.elapsed:.2f}s: {str(exc_val)}"
            )
        else:
            self.logger.debug(f"{self.operation_name} completed in {self.elapsed:.2f}s")
