import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

import typer
import wasmtime
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wasmpool.config import config
from wasmpool.core.pool import Pool, new
from wasmpool.errors import WasmPoolError
from wasmpool.runtime import ModuleConfig, Runtime
from wasmpool.utils.logging import setup_logging

# Create CLI app
app = typer.Typer(
    name="wasmpool",
    help="Run WebAssembly functions from a pool of reusable module instances",
    add_completion=False
)

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_BENCH_LIMITS = [2, 4, 16, 0]


def _parse_arg(value: str) -> Union[int, float]:
    try:
        return int(value, 0)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        raise typer.BadParameter(f"{value!r} is not a number", param_hint="ARGS") from None


def _load_pool(wasm_file: Path, limit: int, inherit_stdio: bool) -> Pool:
    runtime = Runtime(config.runtime)
    module_config = ModuleConfig(
        name=wasm_file.stem,
        inherit_stdio=inherit_stdio,
        fuel=config.pool.fuel,
    )
    return new(runtime, wasm_file.read_bytes(), module_config, limit=limit)


def _measure(pool: Pool, function: str, args: List[Union[int, float]],
             iterations: int, workers: int) -> float:
    """Call *function* *iterations* times from *workers* threads; return calls per second."""
    def call_once(_: int) -> None:
        pool.run(lambda mod: mod.call(function, *args))

    start = time.perf_counter()
    if workers == 1:
        for i in range(iterations):
            call_once(i)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # list() re-raises the first failure
            list(executor.map(call_once, range(iterations)))
    elapsed = time.perf_counter() - start
    return iterations / elapsed if elapsed > 0 else float("inf")


@app.callback()
def callback():
    """wasmpool command line tool."""
    setup_logging()


@app.command()
def call(
    wasm_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="WebAssembly module (binary or text)"),
    function: str = typer.Argument(..., help="Exported function to call"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments for the function"),
    limit: int = typer.Option(
        config.pool.limit, "--limit", "-l", help="Maximum instances checked out at once (0 = unbounded)"
    ),
):
    """Call an exported function once and print its result."""
    call_args = [_parse_arg(a) for a in args or []]
    try:
        with _load_pool(wasm_file, limit, inherit_stdio=True) as pool:
            result = pool.run(lambda mod: mod.call(function, *call_args))
    except (WasmPoolError, wasmtime.WasmtimeError, wasmtime.Trap) as e:
        logger.debug("Call failed", exc_info=True)
        print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)

    print(result)


@app.command()
def bench(
    wasm_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="WebAssembly module (binary or text)"),
    function: str = typer.Argument(..., help="Exported function to call"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments for the function"),
    iterations: int = typer.Option(10000, "--iterations", "-n", min=1, help="Calls per run"),
    limits: Optional[List[int]] = typer.Option(
        None, "--limit", "-l", help="Pool limits to benchmark in parallel (repeatable, 0 = unbounded)"
    ),
):
    """Benchmark calls through the pool, serially and in parallel."""
    call_args = [_parse_arg(a) for a in args or []]
    runs = [("linear", 0, 1)]
    for n in limits or DEFAULT_BENCH_LIMITS:
        runs.append((f"parallel-{n}", n, n or os.cpu_count() or 4))

    table = Table(title=f"{wasm_file.name}: {function}")
    table.add_column("Run")
    table.add_column("Workers", justify="right")
    table.add_column("Calls/s", justify="right")
    table.add_column("Instances", justify="right")

    for name, limit, workers in runs:
        try:
            with _load_pool(wasm_file, limit, inherit_stdio=False) as pool:
                rate = _measure(pool, function, call_args, iterations, workers)
                created = pool.stats().created
        except (WasmPoolError, wasmtime.WasmtimeError, wasmtime.Trap) as e:
            logger.debug("Benchmark run %s failed", name, exc_info=True)
            print(f"[bold red]Error:[/bold red] {name}: {escape(str(e))}")
            raise typer.Exit(code=1)

        table.add_row(name, str(workers), f"{rate:,.0f}", str(created))

    console.print(table)


if __name__ == "__main__":
    app()
