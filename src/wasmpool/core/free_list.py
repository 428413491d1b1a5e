import functools
import gc
import logging
import threading
import weakref
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _age_on_full_collection(free_list_ref: "weakref.ref[FreeList[Any]]",
                            phase: str, info: Dict[str, int]) -> None:
    if phase != "stop" or info.get("generation") != 2:
        return
    free_list = free_list_ref()
    if free_list is not None:
        free_list.age()


class FreeList(Generic[T]):
    """
    Thread-safe bag of idle objects that grows lazily through a factory.

    get() hands out an arbitrary idle object, or builds a new one when the
    bag is empty. The bag is unbounded; callers bound it by bounding how
    many objects they take out at once.

    With an *evict* callback, idle objects are reclaimed the way Go's
    sync.Pool reclaims them: every full garbage collection moves the idle
    objects into a victim generation and hands the previous victims to
    *evict*. An object therefore goes only after sitting idle through two
    full collections, and get() rescues victims before building anything.
    """

    def __init__(self, factory: Callable[[], T], evict: Optional[Callable[[T], None]] = None):
        self._factory = factory
        self._evict = evict
        self._idle: List[T] = []
        self._victims: List[T] = []
        self._lock = threading.Lock()
        self._created = 0
        self._age_pending = False

        if evict is not None:
            # The hook only holds a weak reference, so the free list can
            # still be collected; its finalizer unregisters the hook.
            hook = functools.partial(_age_on_full_collection, weakref.ref(self))
            gc.callbacks.append(hook)
            weakref.finalize(self, gc.callbacks.remove, hook)

    def get(self) -> T:
        with self._lock:
            evicted = self._rotate_if_pending()
            if self._idle:
                obj: Optional[T] = self._idle.pop()
            elif self._victims:
                obj = self._victims.pop()
            else:
                obj = None
        self._dispose(evicted)
        if obj is not None:
            return obj

        # Build outside the lock so a slow factory doesn't stall put()
        obj = self._factory()
        with self._lock:
            self._created += 1
            created = self._created
        logger.debug("Free list empty, created object #%d", created)
        return obj

    def put(self, obj: T) -> None:
        with self._lock:
            evicted = self._rotate_if_pending()
            self._idle.append(obj)
        self._dispose(evicted)

    def seed(self, obj: T) -> None:
        """Add an object that was built outside the factory."""
        with self._lock:
            self._created += 1
            self._idle.append(obj)

    def age(self) -> None:
        """
        Start a new idle generation and evict the previous victims.

        Called from the garbage collector, possibly while this thread
        already holds the lock; in that case the rotation is deferred to
        the next get() or put().
        """
        if not self._lock.acquire(blocking=False):
            self._age_pending = True
            return
        try:
            self._age_pending = True
            evicted = self._rotate_if_pending()
        finally:
            self._lock.release()
        self._dispose(evicted)

    def drain(self) -> List[T]:
        """Remove and return every idle object, victims included."""
        with self._lock:
            idle = self._idle + self._victims
            self._idle = []
            self._victims = []
        return idle

    @property
    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle) + len(self._victims)

    @property
    def created(self) -> int:
        """Total number of objects the free list has ever held."""
        with self._lock:
            return self._created

    def _rotate_if_pending(self) -> List[T]:
        # Caller holds the lock
        if not self._age_pending or self._evict is None:
            return []
        self._age_pending = False
        evicted = self._victims
        self._victims = self._idle
        self._idle = []
        return evicted

    def _dispose(self, evicted: List[T]) -> None:
        if not evicted:
            return
        logger.debug("Evicting %d objects idle since the previous full collection", len(evicted))
        for obj in evicted:
            self._evict(obj)  # type: ignore[misc]
