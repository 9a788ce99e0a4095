from __future__ import annotations

import threading
import time


class VirtualClock:
    """Simulated time that advances per thread without blocking.

    Every thread starts at instant zero and moves forward only by its own
    ``sleep`` calls, the way independent actors progress in parallel on a
    discrete-event simulator. ``now`` reports the latest instant any thread
    has reached, which after a run is the simulated makespan.
    """

    def __init__(self) -> None:
        self._local = threading.local()
        self._lock = threading.Lock()
        self._horizon = 0.0

    def local_now(self) -> float:
        return getattr(self._local, "now", 0.0)

    def now(self) -> float:
        with self._lock:
            return self._horizon

    def sleep(self, duration: float) -> None:
        if duration < 0:
            raise ValueError(f"cannot sleep for a negative duration: {duration}")
        self._block(duration)
        reached = self.local_now() + duration
        self._local.now = reached
        with self._lock:
            if reached > self._horizon:
                self._horizon = reached

    def _block(self, duration: float) -> None:
        return None


class WallClock(VirtualClock):
    """Same accounting as VirtualClock, but really sleeps ``duration * time_scale``."""

    def __init__(self, time_scale: float = 1.0) -> None:
        super().__init__()
        if time_scale < 0:
            raise ValueError("time_scale must be >= 0")
        self.time_scale = time_scale

    def _block(self, duration: float) -> None:
        if self.time_scale > 0:
            time.sleep(duration * self.time_scale)


def build_clock(kind: str, time_scale: float = 1.0) -> VirtualClock:
    if kind == "wall":
        return WallClock(time_scale)
    if kind == "virtual":
        return VirtualClock()
    raise ValueError(f"unknown clock kind: {kind}")
