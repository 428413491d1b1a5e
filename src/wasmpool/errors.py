"""Exceptions raised by the module pool."""


class WasmPoolError(Exception):
    """Base class for all pool errors."""


class CompileError(WasmPoolError):
    """The template bytes do not describe a valid WebAssembly module."""


class InstantiationError(WasmPoolError):
    """A compiled module could not be instantiated."""


class PoolClosedError(WasmPoolError):
    """The pool has been closed and can no longer hand out instances."""


class ModuleClosedError(WasmPoolError):
    """The module instance has been disposed."""


class ModuleReleasedError(WasmPoolError):
    """The pooled handle was already returned to its pool."""


class ExportNotFoundError(WasmPoolError, KeyError):
    """The module does not export a function with the requested name."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"module has no exported function {self.name!r}"
