import logging
import threading

logger = logging.getLogger(__name__)


class AdmissionGate:
    """
    A counting semaphore limiting how many instances are checked out at once.

    A capacity of 0 disables the gate: acquire() and release() do nothing
    and concurrency is unbounded. There is no timeout on acquire(); a
    caller that never releases keeps its slot forever.
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("Gate capacity must be non-negative")
        self._cond = threading.Condition()
        self._capacity = capacity
        self._in_use = 0

    def acquire(self) -> None:
        """Block until a slot is available, then take it."""
        if not self._capacity:
            return
        with self._cond:
            while self._in_use >= self._capacity:
                self._cond.wait()
            self._in_use += 1

    def release(self) -> None:
        """Give a slot back. Never blocks."""
        if not self._capacity:
            return
        with self._cond:
            if self._in_use == 0:
                logger.warning("Admission gate released more times than it was acquired")
                return
            self._in_use -= 1
            self._cond.notify()

    @property
    def enabled(self) -> bool:
        return self._capacity > 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        """Number of slots currently held (always 0 when the gate is disabled)."""
        return self._in_use
