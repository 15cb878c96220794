"""Tests for on-demand backend loading."""

import importlib

import pytest

from fatigue_forecaster import backend
from fatigue_forecaster.exceptions import EnvironmentUnsupported


class TestLoadBackend:
    """Test failure caching when TensorFlow cannot be imported."""

    def setup_method(self):
        self.attempts = []

    def _broken_import(self, error):
        def import_module(name, *args, **kwargs):
            self.attempts.append(name)
            raise error
        return import_module

    @pytest.mark.parametrize("error", [
        ImportError("No module named 'tensorflow'"),
        OSError("libcudart.so: cannot open shared object file"),
        AttributeError("module 'tensorflow' has no attribute 'keras'"),
    ])
    def test_failure_is_cached(self, monkeypatch, error):
        monkeypatch.setattr(backend, "_backend", None)
        monkeypatch.setattr(backend, "_failure", None)
        monkeypatch.setattr(importlib, "import_module", self._broken_import(error))

        with pytest.raises(EnvironmentUnsupported, match="TensorFlow is not available"):
            backend.load_backend()
        with pytest.raises(EnvironmentUnsupported):
            backend.load_backend()

        assert self.attempts == ["tensorflow"]
