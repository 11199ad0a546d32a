"""NumPy backend: chunked array operations on the CPU."""

from __future__ import annotations

import numpy as np

from colorharmony.backends._array import ArrayBackend
from colorharmony.models import BackendKind


class VectorizedBackend(ArrayBackend):
    """CPU tier built on NumPy; always available."""

    kind = BackendKind.VECTORIZED

    @property
    def xp(self):
        return np

    def is_available(self) -> bool:
        return True
