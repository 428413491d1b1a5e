"""
wasmpool.

A bounded, thread-safe pool of WebAssembly module instances that share one
compiled module.
"""

from wasmpool.core import Pool, PooledModule, PoolStats, new
from wasmpool.errors import (
    CompileError,
    ExportNotFoundError,
    InstantiationError,
    ModuleClosedError,
    ModuleReleasedError,
    PoolClosedError,
    WasmPoolError,
)
from wasmpool.instance import ExportedFunction, ModuleInstance
from wasmpool.runtime import ModuleConfig, Runtime

__version__ = "0.1.0"

__all__ = [
    'CompileError',
    'ExportNotFoundError',
    'ExportedFunction',
    'InstantiationError',
    'ModuleClosedError',
    'ModuleConfig',
    'ModuleInstance',
    'ModuleReleasedError',
    'Pool',
    'PoolClosedError',
    'PoolStats',
    'PooledModule',
    'Runtime',
    'WasmPoolError',
    'new',
]
