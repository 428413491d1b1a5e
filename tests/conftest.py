import os
import sys
from pathlib import Path

import pytest

# Add the src directory to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set environment variables for testing
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_USE_COLOR"] = "false"
os.environ["LOG_TO_FILE"] = "false"

from wasmpool.config import RuntimeConfig  # noqa: E402
from wasmpool.runtime import Runtime  # noqa: E402

# Two exported functions plus a per-instance counter, so tests can tell
# instances apart.
ADD_WAT = """
(module
  (global $counter (mut i32) (i32.const 0))
  (memory (export "memory") 1)
  (func (export "add") (param i32 i32) (result i64)
    local.get 0
    local.get 1
    i32.add
    i64.extend_i32_u)
  (func (export "bump") (result i32)
    global.get $counter
    i32.const 1
    i32.add
    global.set $counter
    global.get $counter)
  (func (export "spin")
    (loop $forever
      br $forever)))
"""

# Compiles, but can never be instantiated
MISSING_IMPORT_WAT = """
(module
  (import "env" "missing" (func $missing))
  (func (export "run")
    call $missing))
"""

# Compiles, but the start function traps
TRAPPING_START_WAT = """
(module
  (func $start
    unreachable)
  (start $start))
"""


@pytest.fixture
def runtime():
    """Create a runtime with the default engine settings."""
    return Runtime(RuntimeConfig(memory_limit_pages=256, consume_fuel=False, wasi=True))


@pytest.fixture
def fuel_runtime():
    """Create a runtime that meters fuel."""
    return Runtime(RuntimeConfig(memory_limit_pages=256, consume_fuel=True, wasi=False))


@pytest.fixture
def add_wat():
    return ADD_WAT


@pytest.fixture
def missing_import_wat():
    return MISSING_IMPORT_WAT


@pytest.fixture
def trapping_start_wat():
    return TRAPPING_START_WAT
