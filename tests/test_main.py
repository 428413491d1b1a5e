from unittest import mock

import pytest
from typer.testing import CliRunner

from wasmpool.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep the CLI from reconfiguring the root logger during tests."""
    with mock.patch("wasmpool.main.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def wasm_file(tmp_path, add_wat):
    path = tmp_path / "add.wat"
    path.write_text(add_wat)
    return path


class TestCall:
    """Tests for the call command."""

    def test_call(self, wasm_file, no_logging_setup):
        result = runner.invoke(app, ["call", str(wasm_file), "add", "1", "1"])

        assert result.exit_code == 0, result.output
        assert "2" in result.stdout.splitlines()
        no_logging_setup.assert_called_once_with()

    def test_call_with_limit(self, wasm_file):
        result = runner.invoke(app, ["call", str(wasm_file), "add", "20", "22", "--limit", "1"])

        assert result.exit_code == 0, result.output
        assert "42" in result.stdout.splitlines()

    def test_call_missing_export(self, wasm_file):
        result = runner.invoke(app, ["call", str(wasm_file), "nope"])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_call_invalid_module(self, tmp_path):
        path = tmp_path / "broken.wasm"
        path.write_bytes(b"invalid")

        result = runner.invoke(app, ["call", str(path), "add", "1", "1"])

        assert result.exit_code == 1
        assert "Failed to compile module" in result.stdout

    def test_call_missing_file(self, tmp_path):
        result = runner.invoke(app, ["call", str(tmp_path / "missing.wasm"), "add"])

        assert result.exit_code != 0


class TestBench:
    """Tests for the bench command."""

    def test_bench(self, wasm_file):
        result = runner.invoke(app, [
            "bench", str(wasm_file), "add", "1", "1",
            "--iterations", "20", "--limit", "2", "--limit", "0",
        ])

        assert result.exit_code == 0, result.output
        assert "linear" in result.stdout
        assert "parallel-2" in result.stdout
        assert "parallel-0" in result.stdout
        assert "parallel-16" not in result.stdout

    def test_bench_failing_call(self, wasm_file):
        result = runner.invoke(app, ["bench", str(wasm_file), "nope", "--iterations", "5"])

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestArguments:
    """Tests for parsing function arguments."""

    @pytest.mark.parametrize("command", ["call", "bench"])
    def test_non_numeric_argument(self, wasm_file, command):
        result = runner.invoke(app, [command, str(wasm_file), "add", "one", "1"])

        assert result.exit_code == 2
        assert not isinstance(result.exception, ValueError)
        assert "not a number" in result.output

    def test_hex_and_float_arguments(self, wasm_file):
        result = runner.invoke(app, ["call", str(wasm_file), "add", "0x10", "2"])

        assert result.exit_code == 0, result.output
        assert "18" in result.stdout.splitlines()
