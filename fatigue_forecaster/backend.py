"""On-demand initialization of the numeric backend.

TensorFlow takes seconds to import, so it is only loaded the first time a
model is actually needed. A host without TensorFlow gets
:class:`EnvironmentUnsupported`, which callers turn into an "unavailable"
result.
"""

import importlib
import logging
import os
import threading
from types import SimpleNamespace
from typing import Optional

from .exceptions import EnvironmentUnsupported

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_backend: Optional[SimpleNamespace] = None
_failure: Optional[str] = None


def load_backend() -> SimpleNamespace:
    """Import TensorFlow/Keras once and return the modules used for modelling.

    Returns:
        Namespace with ``tf``, ``keras``, ``layers``, ``models`` and ``callbacks``

    Raises:
        EnvironmentUnsupported: TensorFlow cannot be imported on this host
    """
    global _backend, _failure

    with _lock:
        if _backend is not None:
            return _backend
        if _failure is not None:
            raise EnvironmentUnsupported(_failure)

        # Keep TensorFlow's C++ logging quiet unless the caller asked otherwise
        os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")
        # A broken install can fail with more than ImportError; any failure is cached
        try:
            tf = importlib.import_module("tensorflow")
            keras = tf.keras
        except Exception as e:
            _failure = f"TensorFlow is not available: {e}"
            logger.warning(_failure)
            raise EnvironmentUnsupported(_failure) from e

        _backend = SimpleNamespace(
            tf=tf,
            keras=keras,
            layers=keras.layers,
            models=keras.models,
            callbacks=keras.callbacks,
        )
        logger.info(f"Loaded TensorFlow {tf.__version__}")
        return _backend
