"""
Fixed-interval scheduling of bundling cycles.
"""
import logging
import threading
from typing import Callable, List, Optional

from .engine import BundlerEngine, CycleReport

logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Fires ``engine.tick`` every ``interval`` seconds until cancelled.

    Each tick runs on its own worker thread so a slow cycle does not delay
    the timer; the engine drops ticks that arrive while a cycle is active.
    Tests drive cycles with ``fire`` instead of waiting on real time.
    """

    def __init__(
        self,
        engine: BundlerEngine,
        interval: float = 3.0,
        thread_factory: Optional[Callable[..., threading.Thread]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.engine = engine
        self.interval = interval
        self._thread_factory = thread_factory or threading.Thread
        self._stopped = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._workers: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return self._timer_thread is not None and not self._stopped.is_set()

    def start(self) -> "BatchScheduler":
        """Start the timer thread. Returns self so the caller can keep the handle."""
        if self._timer_thread is not None:
            raise RuntimeError("scheduler already started")
        self._stopped.clear()
        self._timer_thread = threading.Thread(target=self._run, name="bundler-scheduler", daemon=True)
        self._timer_thread.start()
        logger.info(f"Bundling every {self.interval}s")
        return self

    def cancel(self, timeout: Optional[float] = None) -> None:
        """
        Stop future ticks and wait for started cycles to finish.

        A cycle already running is not interrupted.

        Args:
            timeout: Seconds to wait for the timer thread and for each cycle worker
        """
        self._stopped.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)
            self._timer_thread = None
        for worker in list(self._workers):
            worker.join(timeout)
            if worker.is_alive():
                logger.warning("Bundling cycle still running after scheduler cancel")
        self._workers = [worker for worker in self._workers if worker.is_alive()]

    def fire(self) -> Optional[CycleReport]:
        """Run one tick on the calling thread, logging any unexpected error"""
        try:
            return self.engine.tick()
        except Exception:
            logger.exception("Bundling cycle failed unexpectedly")
            return None

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            worker = self._thread_factory(target=self.fire, name="bundler-cycle", daemon=True)
            self._workers = [w for w in self._workers if w.is_alive()] + [worker]
            worker.start()
