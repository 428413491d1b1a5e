"""
Compilation and instantiation of WebAssembly modules.

The :class:`Runtime` is the expensive, shared part of the stack: one engine
and one linker that any number of pools can compile against. Compiling a
module is the slow step; instantiating a compiled module is cheaper but
still costly enough to be worth pooling.
"""
import logging
from typing import Dict, Optional, Tuple, Union

import wasmtime
from pydantic import BaseModel, ConfigDict, Field

from wasmpool.config import RuntimeConfig
from wasmpool.errors import CompileError, InstantiationError
from wasmpool.instance import ModuleInstance

logger = logging.getLogger(__name__)

WASM_PAGE_SIZE = 64 * 1024


class ModuleConfig(BaseModel):
    """Per-instance settings, applied identically to every instance in a pool."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    args: Tuple[str, ...] = ()
    env: Dict[str, str] = Field(default_factory=dict)
    inherit_stdio: bool = False
    # Initial fuel for each instance; requires RuntimeConfig.consume_fuel
    fuel: Optional[int] = None


class Runtime:
    """A WebAssembly engine plus the linker used to satisfy module imports."""

    def __init__(self, config: Optional[RuntimeConfig] = None):
        self.config = config or RuntimeConfig()

        engine_config = wasmtime.Config()
        engine_config.consume_fuel = self.config.consume_fuel
        self.engine = wasmtime.Engine(engine_config)

        self.linker = wasmtime.Linker(self.engine)
        if self.config.wasi:
            self.linker.define_wasi()

    def compile(self, source: Union[bytes, str]) -> wasmtime.Module:
        """
        Compile a module.

        Args:
            source: WebAssembly binary, or WebAssembly text

        Raises:
            CompileError: If the source is not a valid module
        """
        try:
            module = wasmtime.Module(self.engine, source)
        except wasmtime.WasmtimeError as e:
            raise CompileError(f"Failed to compile module: {e}") from e

        logger.debug("Compiled module with %d imports and %d exports",
                     len(module.imports), len(module.exports))
        return module

    def instantiate(self, module: wasmtime.Module,
                    module_config: Optional[ModuleConfig] = None) -> ModuleInstance:
        """
        Create a new instance of a compiled module in a fresh store.

        Raises:
            InstantiationError: If an import is unsatisfied, the start
                function traps, or the store cannot be configured
        """
        module_config = module_config or ModuleConfig()
        if module_config.fuel is not None and not self.config.consume_fuel:
            raise InstantiationError("Fuel was requested but the runtime does not consume fuel")

        store = wasmtime.Store(self.engine)
        try:
            if self.config.memory_limit_pages > 0:
                store.set_limits(memory_size=self.config.memory_limit_pages * WASM_PAGE_SIZE)
            if module_config.fuel is not None:
                store.set_fuel(module_config.fuel)
            if self.config.wasi:
                store.set_wasi(self._wasi_config(module_config))
            instance = self.linker.instantiate(store, module)
        except (wasmtime.WasmtimeError, wasmtime.Trap) as e:
            store.close()
            raise InstantiationError(f"Failed to instantiate module: {e}") from e

        logger.debug("Instantiated module %s", module_config.name or "<anonymous>")
        return ModuleInstance(store, instance, name=module_config.name)

    @staticmethod
    def _wasi_config(module_config: ModuleConfig) -> wasmtime.WasiConfig:
        wasi = wasmtime.WasiConfig()
        wasi.argv = [module_config.name or "module", *module_config.args]
        wasi.env = list(module_config.env.items())
        if module_config.inherit_stdio:
            wasi.inherit_stdin()
            wasi.inherit_stdout()
            wasi.inherit_stderr()
        return wasi
