"""
Logging utility with console and file output.

Implements ILogger interface for dependency injection.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from perf_solver.core.interfaces import ILogger


class Logger(ILogger):
    """
    Concrete implementation of logging functionality.

    Provides both console and file logging with configurable levels.
    Safe to share between worker threads (the logging module locks
    around each handler).
    """

    def __init__(
        self,
        name: str = "PerfSolver",
        level: str = "INFO",
        log_file: Optional[str] = None,
        console: bool = True
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional file path for log output
            console: Whether to log to console (off in quiet mode)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.propagate = False

        self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if console:
            # Probes may contain control characters; never let them crash a handler
            utf8_stdout = open(
                sys.stdout.fileno(),
                'w',
                encoding='utf-8',
                errors='replace',
                buffering=1,
                closefd=False
            )
            console_handler = logging.StreamHandler(utf8_stdout)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def debug(self, message: str) -> None:
        """Log debug message."""
        self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log error message."""
        self.logger.error(message)
