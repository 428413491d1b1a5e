"""
A bounded pool of instances of one compiled WebAssembly module.

Compiling a module is expensive and instantiating it is not free either,
so a pool compiles once and recycles instances between callers:

    runtime = Runtime()
    pool = new(runtime, wasm_bytes, limit=4)

    result = pool.run(lambda mod: mod.call("add", 1, 1))

    mod = pool.get()
    try:
        mod.call("add", 1, 1)
    finally:
        pool.put(mod)

With a limit, get() blocks once that many instances are checked out and
waits for a put(). A handle that is never put back holds its slot for
good, so every get() needs a matching put() on all paths. The instance
behind a dropped handle is still disposed when the handle is collected.
"""
import functools
import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar, Union

import wasmtime

from wasmpool.core.free_list import FreeList
from wasmpool.core.gate import AdmissionGate
from wasmpool.core.guard import PooledModule
from wasmpool.errors import PoolClosedError
from wasmpool.instance import ModuleInstance
from wasmpool.runtime import ModuleConfig, Runtime

logger = logging.getLogger(__name__)

R = TypeVar('R')


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time counters for a pool."""
    limit: int
    in_use: int
    idle: int
    created: int


def _dispose_evicted(instance: ModuleInstance) -> None:
    # Runs from the garbage collector or from whichever caller noticed the
    # eviction; neither has anyone to report a failure to.
    try:
        instance.close()
    except Exception:
        logger.warning("Failed to dispose idle module instance %r", instance, exc_info=True)


def _dispose_idle(free_list: FreeList[ModuleInstance]) -> None:
    # Pool was collected without close(); runs from the garbage collector.
    for instance in free_list.drain():
        _dispose_evicted(instance)


class Pool:
    """Instances of a single compiled module, handed out one caller at a time."""

    def __init__(self, runtime: Runtime, source: Union[bytes, str],
                 module_config: Optional[ModuleConfig] = None, limit: int = 0):
        self._module_config = module_config or ModuleConfig()
        self._compiled = runtime.compile(source)

        # Instantiate once up front so a broken module fails here, not in get()
        seed = runtime.instantiate(self._compiled, self._module_config)

        # The factory must not reference the pool, or the pool's finalizer
        # would keep it alive. Idle instances that sit unused through two
        # full garbage collections are evicted and disposed.
        self._free_list: FreeList[ModuleInstance] = FreeList(
            functools.partial(runtime.instantiate, self._compiled, self._module_config),
            evict=_dispose_evicted,
        )
        self._free_list.seed(seed)

        self._gate = AdmissionGate(max(limit, 0))
        self._lock = threading.Lock()
        self._checked_out = 0
        self._closed = False
        self._finalizer = weakref.finalize(self, _dispose_idle, self._free_list)

        logger.info("Created module pool (limit=%s)", self._gate.capacity or "unbounded")

    @property
    def compiled(self) -> wasmtime.Module:
        """The compiled module every instance is created from."""
        return self._compiled

    @property
    def module_config(self) -> ModuleConfig:
        return self._module_config

    @property
    def limit(self) -> int:
        return self._gate.capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self) -> PooledModule:
        """
        Check out an instance.

        Blocks while the pool is at its limit. Instantiates a new module when
        no idle instance is available.

        Raises:
            PoolClosedError: If the pool is closed
            InstantiationError: If a new instance was needed and failed
        """
        if self._closed:
            raise PoolClosedError("module pool is closed")

        self._gate.acquire()
        try:
            if self._closed:
                raise PoolClosedError("module pool is closed")
            instance = self._free_list.get()
        except BaseException:
            self._gate.release()
            raise

        with self._lock:
            self._checked_out += 1
        return PooledModule(instance)

    def put(self, mod: PooledModule) -> None:
        """
        Return a checked-out instance to the pool.

        Raises:
            ModuleReleasedError: If the handle was already put back
        """
        instance = mod.detach()
        try:
            with self._lock:
                self._checked_out -= 1
                recycle = not self._closed and not instance.closed
                if recycle:
                    self._free_list.put(instance)
            if not recycle:
                instance.close()
        finally:
            self._gate.release()

    def run(self, fn: Callable[[PooledModule], R]) -> R:
        """Call *fn* with a checked-out instance and put it back afterwards."""
        mod = self.get()
        try:
            return fn(mod)
        finally:
            self.put(mod)

    @contextmanager
    def checkout(self) -> Iterator[PooledModule]:
        """Context manager form of get()/put()."""
        mod = self.get()
        try:
            yield mod
        finally:
            self.put(mod)

    def stats(self) -> PoolStats:
        """
        Current counters.

        ``in_use`` counts handles that were never put back, including
        abandoned ones whose instance has since been disposed.
        """
        with self._lock:
            in_use = self._checked_out
        return PoolStats(
            limit=self._gate.capacity,
            in_use=in_use,
            idle=self._free_list.idle_count,
            created=self._free_list.created,
        )

    def close(self) -> None:
        """
        Dispose every idle instance and stop handing out new ones.

        Instances that are checked out stay usable and are disposed when
        they are put back.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle = self._free_list.drain()

        self._finalizer.detach()
        for instance in idle:
            instance.close()
        logger.info("Closed module pool, disposed %d idle instances", len(idle))

    def __enter__(self) -> "Pool":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        stats = self.stats()
        return (f"<Pool limit={stats.limit or 'unbounded'} in_use={stats.in_use} "
                f"idle={stats.idle} closed={self._closed}>")


def new(runtime: Runtime, source: Union[bytes, str],
        module_config: Optional[ModuleConfig] = None, *, limit: int = 0) -> Pool:
    """
    Compile *source* and return a pool of its instances.

    Args:
        runtime: Runtime used to compile and instantiate the module
        source: WebAssembly binary or text
        module_config: Settings applied to every instance
        limit: Maximum number of instances checked out at once; below 1
            means unbounded

    Raises:
        CompileError: If the source is not a valid module
        InstantiationError: If the first instance can't be created
    """
    return Pool(runtime, source, module_config, limit=limit)
