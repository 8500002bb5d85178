import logging
import queue
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

_STOP = object()


class FixedDelayPacer:
    """
    Inter-request pacing for the Codeforces rate limit.

    Anything with a ``wait()`` method can stand in for it (e.g. a token bucket).
    """

    def __init__(self, delay_seconds: float = 0.5, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def wait(self) -> None:
        if self.delay_seconds > 0:
            self._sleep(self.delay_seconds)


class SyncQueue:
    """Single background worker that runs queued student syncs one at a time."""

    def __init__(self, handler: Callable[[str], object], pacer: FixedDelayPacer, name: str = "roster-sync"):
        self._handler = handler
        self._pacer = pacer
        self._name = name
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
                self._thread.start()

    def submit(self, student_id: str) -> None:
        self._ensure_worker()
        self._queue.put(student_id)

    def _run(self) -> None:
        while True:
            student_id = self._queue.get()
            if student_id is _STOP:
                self._queue.task_done()
                return
            try:
                self._handler(student_id)
            except Exception:
                logger.exception("Queued sync failed for student_id=%s", student_id)
            finally:
                self._queue.task_done()
            self._pacer.wait()

    def join(self) -> None:
        """Block until every submitted sync has been handled."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            thread = self._thread
        if thread is None or not thread.is_alive():
            return
        self._queue.put(_STOP)
        if wait:
            thread.join()
