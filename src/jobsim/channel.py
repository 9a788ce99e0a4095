from __future__ import annotations

import queue
import threading

from .models import Job, Terminate


class QueueClosedError(RuntimeError):
    pass


class WorkerQueue:
    """Unbounded FIFO hand-off of jobs from the dispatcher to one worker."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: queue.Queue[Job] = queue.Queue()
        self._closed = threading.Event()
        self._sent = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def sent(self) -> int:
        return self._sent

    def put(self, job: Job) -> None:
        if self._closed.is_set():
            raise QueueClosedError(f"queue {self.name} is closed")
        self._queue.put(job)
        self._sent += 1

    def get(self) -> Job:
        return self._queue.get()

    def close(self) -> None:
        self._closed.set()

    def abort(self) -> None:
        # Wakes the consumer even after close so a failed run can still drain.
        self._closed.set()
        self._queue.put(Terminate())

    def qsize(self) -> int:
        return self._queue.qsize()
