"""
Append-only plaintext log of batch failures.

Each line is ``[ISO-8601 timestamp] message``. Appends take a file lock so
that several bundler processes can share one log.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

import portalocker

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FailureLog:
    """Persistent failure log"""

    def __init__(
        self,
        path: Union[str, Path],
        clock: Optional[Callable[[], str]] = None,
        lock_timeout: int = 10,
    ):
        """
        Initialize the failure log.

        Args:
            path: Log file location; parent directories are created on first write
            clock: Callable returning the timestamp text (defaults to UTC now)
            lock_timeout: Seconds to wait for the file lock
        """
        self.path = Path(path)
        self.clock = clock or utc_timestamp
        self.lock_timeout = lock_timeout

    def _get_lock_path(self) -> str:
        return str(self.path) + ".lock"

    def append(self, message: str) -> str:
        """
        Append one timestamped line.

        Newlines inside ``message`` are flattened so each record stays on one line.

        Returns:
            The line written, without the trailing newline
        """
        line = f"[{self.clock()}] {' '.join(message.splitlines())}"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with portalocker.Lock(self._get_lock_path(), timeout=self.lock_timeout):
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug(f"Recorded failure in {self.path}")
        return line

    def read_lines(self) -> List[str]:
        """Return all recorded lines (empty if the log does not exist yet)"""
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f]
