"""Pooling of stateful, expensive-to-instantiate module instances."""

from wasmpool.core.free_list import FreeList
from wasmpool.core.gate import AdmissionGate
from wasmpool.core.guard import PooledModule
from wasmpool.core.pool import Pool, PoolStats, new

__all__ = [
    'AdmissionGate',
    'FreeList',
    'Pool',
    'PoolStats',
    'PooledModule',
    'new',
]
