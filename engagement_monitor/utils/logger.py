"""
Logging utilities for the engagement monitoring pipeline.

Every module logs through an EngagementLogger obtained from get_logger(__name__).
Console output defaults to errors only; a timestamped log file under the
configured directory is added when file logging is enabled.
"""

import functools
import logging
import sys
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import config

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


def _level(name: str, fallback: int) -> int:
    return getattr(logging, name.upper(), fallback)


class EngagementLogger:
    """Logger wrapper with pipeline-specific helpers."""

    def __init__(self, name: str = "engagement_monitor", log_file: Optional[str] = None):
        """
        Initialize the logger.

        Args:
            name: Logger name, usually the calling module's __name__
            log_file: Explicit log file; enables file logging when given
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        # Each wrapper owns its handlers, so records must not reach the parents too
        self.logger.propagate = False

        # Already configured by an earlier get_logger call
        if self.logger.handlers:
            return

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(_level(config.logging.console_level, logging.ERROR))
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        self.logger.addHandler(console_handler)

        if log_file is None and config.logging.enable_file_logging:
            log_dir = Path(config.logging.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"engagement_monitor_{datetime.now():%Y%m%d_%H%M%S}.log"

        if log_file is not None:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(_level(config.logging.log_level, logging.INFO))
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            self.logger.addHandler(file_handler)

    def debug(self, message: str, *args) -> None:
        self.logger.debug(message, *args)

    def info(self, message: str, *args) -> None:
        self.logger.info(message, *args)

    def warning(self, message: str, *args) -> None:
        self.logger.warning(message, *args)

    def error(self, message: str, *args) -> None:
        self.logger.error(message, *args)

    def critical(self, message: str, *args) -> None:
        self.logger.critical(message, *args)

    def is_debug_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def log_performance(self, avg_ms: float, actual_fps: int, target_fps: int,
                        skip_percentage: float, processed: int, total: int) -> None:
        """Log frame governance metrics."""
        self.debug(f"Performance: AvgTime={avg_ms:.1f}ms, ActualFPS={actual_fps}/{target_fps}, "
                   f"Skip={skip_percentage:.1f}% ({processed}/{total})")

    def log_head_pose(self, yaw: float, pitch: float, roll: float,
                      yaw_threshold: float, pitch_threshold: float) -> None:
        """Log head pose angles with the thresholds they were judged against."""
        self.debug(f"Head Pose: Pitch={pitch:.2f}, Yaw={yaw:.2f}, Roll={roll:.2f} "
                   f"(thresholds: Yaw={yaw_threshold:.2f}, Pitch={pitch_threshold:.2f})")

    def log_ear(self, left: float, right: float, average: float, threshold: float) -> None:
        self.debug(f"EAR - Left: {left:.4f}, Right: {right:.4f}, Avg: {average:.4f} "
                   f"(threshold: {threshold:.4f})")

    def log_attention(self, raw_state: str, smoothed_state: str, confidence: float,
                      stability: int) -> None:
        """Log raw and smoothed attention verdicts."""
        self.info(f"Attention: raw={raw_state}, smoothed={smoothed_state} "
                  f"(confidence: {confidence:.2f}, stable for {stability} frames)")

    def log_expression(self, expression: str, intensity: float, engagement: float) -> None:
        self.info(f"Expression: {expression} (intensity: {intensity:.2f}), engagement: {engagement:.2f}")

    def log_calibration(self, event: str, samples: int, success: Optional[bool] = None) -> None:
        """Log calibration lifecycle events."""
        message = f"Calibration {event} - samples: {samples}"
        if success is not None:
            message += f", {'succeeded' if success else 'failed'}"
        self.info(message)

    def log_error_with_context(self, error: Exception, context: str) -> None:
        """Log an error at ERROR and its traceback at DEBUG."""
        self.error(f"{context} failed: {type(error).__name__}: {error}")
        if self.is_debug_enabled():
            trace = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
            self.debug(f"Traceback:\n{trace}")


# Package-level logger
logger = EngagementLogger()


def get_logger(name: str = "engagement_monitor") -> EngagementLogger:
    return EngagementLogger(name)


def log_function_call(func):
    """Decorator logging entry, exit and failures of a call."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f"-> {func.__qualname__}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.log_error_with_context(e, func.__qualname__)
            raise
        logger.debug(f"<- {func.__qualname__}")
        return result
    return wrapper


def log_performance_metrics(func):
    """Decorator logging the wall time of a call in milliseconds."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.log_error_with_context(e, func.__qualname__)
            raise
        finally:
            logger.debug(f"{func.__qualname__} took {(time.perf_counter() - start) * 1000:.2f}ms")
    return wrapper
