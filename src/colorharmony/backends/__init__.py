"""Compute backends (reference, vectorized, GPU) and their dispatcher."""

from colorharmony.backends._base import Backend, lut_grid_points, lut_grid_values
from colorharmony.backends.dispatch import (
    BackendDispatcher,
    get_dispatcher,
    detect_backends,
    reset_backends,
)
from colorharmony.backends.gpu import GpuBackend
from colorharmony.backends.reference import ReferenceBackend, nearest_index
from colorharmony.backends.vectorized import VectorizedBackend

__all__ = [
    "Backend",
    "BackendDispatcher",
    "GpuBackend",
    "ReferenceBackend",
    "VectorizedBackend",
    "get_dispatcher",
    "lut_grid_points",
    "lut_grid_values",
    "nearest_index",
    "detect_backends",
    "reset_backends",
]
