"""
Detached usage recording.

Successful authorizations submit the credential id to a bounded queue served
by a small pool of daemon threads. Each job atomically increments
``usage.total_requests`` and stamps ``usage.last_used_at``. Submission never
blocks the request: a full queue drops the job. Worker failures are logged and
never reach the request path.
"""

import queue
import threading
import time
from typing import List, Optional

from ..config import get_config
from ..constants import CollectionName
from ..db.db_base import utc_now
from ..repositories.credential_store import CredentialStore
from ..utils.logger import get_logger

_STOP = object()


class UsageRecorder:
    """Bounded, fire-and-forget usage counter updates."""

    def __init__(
        self,
        store: CredentialStore,
        queue_size: Optional[int] = None,
        workers: Optional[int] = None,
    ):
        """
        Args:
            store: Store holding the ``api_keys`` collection
            queue_size: Maximum pending jobs (default: ``usage.queue_size`` from config)
            workers: Number of worker threads (default: ``usage.workers`` from config)
        """
        usage_config = get_config().usage
        self.store = store
        self.queue_size = queue_size or usage_config.queue_size
        self.worker_count = workers or usage_config.workers
        self.logger = get_logger()

        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=self.queue_size)
        self._lock = threading.Lock()
        self._closed = False
        self.dropped = 0
        self.failed = 0

        self._threads: List[threading.Thread] = []
        for index in range(self.worker_count):
            thread = threading.Thread(
                target=self._run, name=f"usage-recorder-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    @property
    def pending(self) -> int:
        """Jobs submitted but not yet finished."""
        return self._queue.unfinished_tasks

    def record(self, credential_id: str) -> bool:
        """
        Submit one usage update without blocking.

        Returns:
            True if the job was queued, False if it was dropped
        """
        with self._lock:
            # Checked under the lock so nothing lands behind the stop markers
            closed = self._closed
            full = False
            if not closed:
                try:
                    self._queue.put_nowait(credential_id)
                except queue.Full:
                    full = True
                    self.dropped += 1

        if closed:
            self.logger.debug(
                "Usage recorder closed, update skipped", extra={"credential_id": credential_id}
            )
            return False
        if full:
            self.logger.warning(
                "Usage queue full, update dropped",
                extra={"credential_id": credential_id, "queue_size": self.queue_size},
            )
            return False
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._apply(item)
            finally:
                self._queue.task_done()

    def _apply(self, credential_id: str) -> None:
        collection = CollectionName.API_KEYS.value
        try:
            found = self.store.increment_counter(
                collection, credential_id, "usage.total_requests", 1
            )
            if not found:
                self.logger.warning(
                    "Usage update for unknown credential", extra={"credential_id": credential_id}
                )
                return
            # Concurrent stamps may land out of order
            self.store.update_fields(collection, credential_id, {"usage.last_used_at": utc_now()})
        except Exception as e:
            with self._lock:
                self.failed += 1
            self.logger.error(
                "Usage update failed",
                extra={
                    "credential_id": credential_id,
                    "error_type": type(e).__name__,
                    "error_details": str(e),
                },
            )

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every queued job has been applied.

        Returns:
            True if the queue drained, False if ``timeout`` expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting work and stop the workers once the queue is drained."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for _ in self._threads:
            # Blocking put: stop markers must not be dropped
            self._queue.put(_STOP)
        if wait:
            for thread in self._threads:
                thread.join(timeout)
        self.logger.info(
            "Usage recorder stopped",
            extra={"dropped": self.dropped, "failed": self.failed},
        )
