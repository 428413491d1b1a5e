"""
Leak recovery for checked-out module instances.

Instances themselves can't be collected while the pool might still want
them, so every checkout hands the caller a fresh :class:`PooledModule`
handle instead. Nothing but the caller refers to that handle, which makes
it collectable the moment the caller drops it. A ``weakref.finalize`` hook
on the handle then disposes the instance underneath it.

The hook is best-effort: it runs when the handle is collected, which may
be late (reference cycles) or, at abrupt process exit, never. Always
return handles with ``Pool.put()`` or use ``Pool.run()``.
"""
import logging
import weakref
from typing import Any, Optional

import wasmtime

from wasmpool.errors import ModuleReleasedError
from wasmpool.instance import ExportedFunction, ModuleInstance

logger = logging.getLogger(__name__)


def _dispose_abandoned(instance: ModuleInstance) -> None:
    # Runs from the garbage collector; there is no caller to report to.
    try:
        if instance.close():
            logger.debug("Disposed abandoned module instance %r", instance)
    except Exception:
        logger.warning("Failed to dispose abandoned module instance %r", instance, exc_info=True)


class PooledModule:
    """A checked-out module instance, valid until it is put back."""

    def __init__(self, instance: ModuleInstance):
        self._instance: Optional[ModuleInstance] = instance
        # The callback must not reference self, or the handle never dies.
        self._finalizer = weakref.finalize(self, _dispose_abandoned, instance)

    @property
    def released(self) -> bool:
        return self._instance is None

    @property
    def instance(self) -> ModuleInstance:
        """The underlying instance. Keeping it does not keep the handle alive."""
        if self._instance is None:
            raise ModuleReleasedError("module was already returned to its pool")
        return self._instance

    @property
    def store(self) -> wasmtime.Store:
        return self.instance.store

    def exported_function(self, name: str) -> Optional[ExportedFunction]:
        return self.instance.exported_function(name)

    def exported_memory(self, name: str = "memory") -> Optional[wasmtime.Memory]:
        return self.instance.exported_memory(name)

    def call(self, name: str, *args: Any) -> Any:
        return self.instance.call(name, *args)

    def detach(self) -> ModuleInstance:
        """
        Cancel the abandonment hook and give up the instance.

        Only one caller can ever detach a handle; later calls raise
        ModuleReleasedError.
        """
        # finalize.detach() returns None once the hook is gone, which makes
        # it the atomic claim on the instance.
        if self._finalizer.detach() is None:
            raise ModuleReleasedError("module was already returned to its pool")
        instance = self._instance
        self._instance = None
        return instance  # type: ignore[return-value]

    def __repr__(self) -> str:
        if self._instance is None:
            return "<PooledModule released>"
        return f"<PooledModule {self._instance!r}>"
