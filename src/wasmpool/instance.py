"""
Instantiated WebAssembly modules.

A :class:`ModuleInstance` owns its own :class:`wasmtime.Store`, so it is a
self-contained, stateful execution context. Exported functions are looked
up once per instance and memoized for the instance's lifetime.
"""
import logging
import threading
from typing import Any, Dict, Optional

import wasmtime

from wasmpool.errors import ExportNotFoundError, ModuleClosedError

logger = logging.getLogger(__name__)


class ExportedFunction:
    """An exported function bound to the store of the instance that owns it."""

    def __init__(self, name: str, func: wasmtime.Func, owner: "ModuleInstance"):
        self.name = name
        self._func = func
        self._owner = owner

    def __call__(self, *args: Any) -> Any:
        # owner.store raises ModuleClosedError once the instance is disposed
        return self._func(self._owner.store, *args)

    @property
    def type(self) -> wasmtime.FuncType:
        return self._func.type(self._owner.store)

    def __repr__(self) -> str:
        return f"ExportedFunction({self.name!r})"


class ModuleInstance:
    """A single instantiated module and its accessor cache."""

    def __init__(self, store: wasmtime.Store, instance: wasmtime.Instance, name: str = ""):
        self.name = name
        self._store: Optional[wasmtime.Store] = store
        self._instance: Optional[wasmtime.Instance] = instance
        self._exports = instance.exports(store)
        self._functions: Dict[str, Optional[ExportedFunction]] = {}
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def store(self) -> wasmtime.Store:
        self._check_open()
        return self._store  # type: ignore[return-value]

    @property
    def instance(self) -> wasmtime.Instance:
        self._check_open()
        return self._instance  # type: ignore[return-value]

    def exported_function(self, name: str) -> Optional[ExportedFunction]:
        """Return the exported function *name*, or None if there is none.

        Misses are memoized as well as hits.
        """
        self._check_open()
        try:
            return self._functions[name]
        except KeyError:
            pass

        extern = self._lookup(name)
        func = ExportedFunction(name, extern, self) if isinstance(extern, wasmtime.Func) else None
        self._functions[name] = func
        return func

    def exported_memory(self, name: str = "memory") -> Optional[wasmtime.Memory]:
        self._check_open()
        extern = self._lookup(name)
        return extern if isinstance(extern, wasmtime.Memory) else None

    def call(self, name: str, *args: Any) -> Any:
        """Call the exported function *name* with *args*."""
        func = self.exported_function(name)
        if func is None:
            raise ExportNotFoundError(name)
        return func(*args)

    def close(self) -> bool:
        """
        Dispose of the instance and its store.

        Safe to call from any thread and any number of times; only the
        first call does any work.

        Returns:
            True if this call disposed the instance, False if it was already closed
        """
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True
            store = self._store
            self._functions.clear()
            self._exports = None
            self._instance = None
            self._store = None

        store.close()
        logger.debug("Disposed module instance %s", self)
        return True

    def _lookup(self, name: str) -> Any:
        try:
            return self._exports[name]
        except KeyError:
            return None

    def _check_open(self) -> None:
        if self._closed:
            raise ModuleClosedError(f"module instance {self.name or hex(id(self))} is closed")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<ModuleInstance {self.name or hex(id(self))} {state}>"
