import gc
from unittest.mock import MagicMock

import pytest

from wasmpool.core.guard import PooledModule
from wasmpool.errors import ModuleReleasedError
from wasmpool.instance import ModuleInstance


@pytest.fixture
def instance():
    instance = MagicMock(spec=ModuleInstance)
    instance.close.return_value = True
    return instance


class TestPooledModule:
    """Tests for the checkout handle and its abandonment hook."""

    def test_delegates_to_instance(self, instance):
        instance.call.return_value = 2
        mod = PooledModule(instance)

        assert mod.call("add", 1, 1) == 2
        instance.call.assert_called_once_with("add", 1, 1)
        assert mod.instance is instance

    def test_abandoned_handle_disposes_instance(self, instance):
        mod = PooledModule(instance)

        del mod
        gc.collect()

        instance.close.assert_called_once_with()

    def test_detached_handle_does_not_dispose(self, instance):
        mod = PooledModule(instance)

        assert mod.detach() is instance
        del mod
        gc.collect()

        instance.close.assert_not_called()

    def test_detach_twice(self, instance):
        mod = PooledModule(instance)
        mod.detach()

        assert mod.released
        with pytest.raises(ModuleReleasedError):
            mod.detach()

    def test_released_handle_rejects_use(self, instance):
        mod = PooledModule(instance)
        mod.detach()

        with pytest.raises(ModuleReleasedError):
            mod.call("add", 1, 1)
        with pytest.raises(ModuleReleasedError):
            mod.instance

    def test_dispose_failure_is_swallowed(self, instance, caplog):
        instance.close.side_effect = RuntimeError("store already gone")
        mod = PooledModule(instance)

        del mod
        gc.collect()

        instance.close.assert_called_once_with()
        assert "Failed to dispose abandoned module instance" in caplog.text
