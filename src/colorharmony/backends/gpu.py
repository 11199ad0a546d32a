"""CuPy backend: the array implementation running on a CUDA device.

CuPy is an optional dependency (``pip install colorharmony[gpu]``).  The
module imports it lazily and only reports the backend available when
the import succeeds and at least one device is visible.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import numpy as np

from colorharmony.backends._array import ArrayBackend
from colorharmony.errors import ResourceUnavailableError
from colorharmony.logging import get_logger
from colorharmony.models import BackendKind

logger = get_logger("backends.gpu")


class GpuBackend(ArrayBackend):
    """GPU tier built on CuPy.

    Args:
        device_id: CUDA device ordinal to run on.
    """

    kind = BackendKind.GPU

    def __init__(self, device_id: int = 0) -> None:
        self.device_id = device_id
        self._cupy = None
        self._available: bool | None = None

    @property
    def xp(self):
        if self._cupy is None:
            raise ResourceUnavailableError("GPU backend used without an available device")
        return self._cupy

    def to_host(self, array) -> np.ndarray:
        return self._cupy.asnumpy(array)

    def is_available(self) -> bool:
        if self._available is None:
            self._available = self._detect()
        return self._available

    def _detect(self) -> bool:
        try:
            import cupy
        except ImportError:
            logger.debug("CuPy is not installed; GPU backend disabled")
            return False
        try:
            count = cupy.cuda.runtime.getDeviceCount()
        except Exception as exc:  # CUDA driver or runtime missing
            logger.debug("CUDA device check failed: %s", exc)
            return False
        if count <= self.device_id:
            logger.debug("CUDA device %d not present (%d visible)", self.device_id, count)
            return False
        self._cupy = cupy
        logger.debug("CUDA device %d available", self.device_id)
        return True

    @contextmanager
    def acquire(self) -> Iterator[GpuBackend]:
        if not self.is_available():
            raise ResourceUnavailableError("No CUDA device available")
        cp = self._cupy
        device_errors = (cp.cuda.memory.OutOfMemoryError, cp.cuda.runtime.CUDARuntimeError)
        try:
            with cp.cuda.Device(self.device_id):
                yield self
        except device_errors as exc:
            raise ResourceUnavailableError(f"GPU backend failed: {exc}") from exc
        finally:
            cp.get_default_memory_pool().free_all_blocks()
