"""
Thread-safe rate-limited logging.

The scheduler fires every few seconds; while a slow cycle is running each skipped
tick would otherwise log the same line. Messages are suppressed for
``interval`` seconds after they were last emitted.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)


class RateLimitedLogger:
    """Logs each distinct (level, message) pair at most once per interval"""

    def __init__(
        self,
        logger_instance: Optional[logging.Logger] = None,
        interval: int = 60,
        maxsize: int = 100,
    ):
        self.logger = logger_instance or logger
        self.interval = interval
        self._cache = TTLCache(maxsize=maxsize, ttl=interval)
        self._lock = threading.RLock()

    def log(self, message: str, level: str = "warning") -> bool:
        """
        Log ``message`` unless it was logged within the interval.

        Args:
            message: Message to log
            level: Log level name (debug, info, warning, error, critical)

        Returns:
            True if the message was emitted, False if it was suppressed
        """
        log_method = getattr(self.logger, level.lower(), self.logger.warning)
        key = f"{level}:{message}"

        with self._lock:
            if key in self._cache:
                return False
            log_method(message)
            self._cache[key] = True
        return True

    def reset(self) -> None:
        """Forget all suppressed messages"""
        with self._lock:
            self._cache.clear()
