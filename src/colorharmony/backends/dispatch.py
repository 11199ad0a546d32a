"""Backend capability detection and per-operation dispatch.

Backends are detected once per process; the detection result is immutable
afterwards.  A :class:`BackendDispatcher` applies a selection policy on
top of the detected set and runs operations with graceful fallback: if a
tier raises :class:`ResourceUnavailableError` the next tier is tried.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import TypeVar

from colorharmony.backends._base import Backend
from colorharmony.backends.gpu import GpuBackend
from colorharmony.backends.reference import ReferenceBackend
from colorharmony.backends.vectorized import VectorizedBackend
from colorharmony.constants import DISABLE_GPU_ENV
from colorharmony.errors import ResourceUnavailableError
from colorharmony.logging import get_logger
from colorharmony.models import BackendConfig, BackendKind

logger = get_logger("backends")

T = TypeVar("T")

TIER_ORDER: tuple[BackendKind, ...] = (
    BackendKind.GPU,
    BackendKind.VECTORIZED,
    BackendKind.REFERENCE,
)

_DETECT_LOCK = threading.Lock()
_detected: Mapping[BackendKind, Backend] | None = None
_default_dispatcher: BackendDispatcher | None = None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def detect_backends() -> Mapping[BackendKind, Backend]:
    """Return the backends usable in this process, detecting them on first call.

    Setting ``COLORHARMONY_DISABLE_GPU`` before the first call keeps the
    GPU tier from being checked at all.
    """
    global _detected
    with _DETECT_LOCK:
        if _detected is None:
            candidates: list[Backend] = [VectorizedBackend(), ReferenceBackend()]
            if not _env_flag(DISABLE_GPU_ENV):
                candidates.insert(0, GpuBackend())
            found = {b.kind: b for b in candidates if b.is_available()}
            _detected = MappingProxyType(found)
            logger.info(
                "Available backends: %s", ", ".join(kind.value for kind in found)
            )
        return _detected


class BackendDispatcher:
    """Chooses a backend per operation and falls back on resource errors.

    Args:
        config: Selection policy.  Defaults to automatic selection.
        backends: Backends to choose from, keyed by kind.  Defaults to
            the process-wide detection result.
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        backends: Mapping[BackendKind, Backend] | None = None,
    ) -> None:
        self.config = config or BackendConfig()
        self._backends = dict(detect_backends() if backends is None else backends)
        if BackendKind.REFERENCE not in self._backends:
            self._backends[BackendKind.REFERENCE] = ReferenceBackend()

    @property
    def available_kinds(self) -> tuple[BackendKind, ...]:
        return tuple(kind for kind in TIER_ORDER if kind in self._backends)

    def get(self, kind: BackendKind) -> Backend:
        """Return the backend of the given kind.

        Raises:
            ResourceUnavailableError: If that tier is not available.
        """
        try:
            return self._backends[kind]
        except KeyError:
            raise ResourceUnavailableError(f"Backend {kind.value!r} is not available") from None

    def candidates(self, pixel_count: int) -> list[Backend]:
        """Backends to try for a job of *pixel_count* elements, best first."""
        preferred = self.config.preferred
        if preferred is BackendKind.AUTO:
            kinds = list(TIER_ORDER)
            if pixel_count < self.config.gpu_min_pixels:
                kinds.remove(BackendKind.GPU)
        else:
            kinds = list(TIER_ORDER[TIER_ORDER.index(preferred) :])
            if preferred not in self._backends:
                logger.warning(
                    "Preferred backend %r is not available; falling back", preferred.value
                )
        if not self.config.allow_gpu and BackendKind.GPU in kinds:
            kinds.remove(BackendKind.GPU)
        return [self._backends[kind] for kind in kinds if kind in self._backends]

    def select(self, pixel_count: int) -> Backend:
        """Return the first backend :meth:`run` would try."""
        return self.candidates(pixel_count)[0]

    def run(self, pixel_count: int, operation: Callable[[Backend], T]) -> T:
        """Run *operation* on the best backend, falling back tier by tier.

        Raises:
            ResourceUnavailableError: If every candidate tier failed.
        """
        last_error: ResourceUnavailableError | None = None
        for backend in self.candidates(pixel_count):
            try:
                with backend.acquire():
                    logger.debug("Running on %s backend (%d elements)", backend.name, pixel_count)
                    return operation(backend)
            except ResourceUnavailableError as exc:
                logger.warning("%s backend unavailable, falling back: %s", backend.name, exc)
                last_error = exc
        raise ResourceUnavailableError("No backend could run the operation") from last_error


def get_dispatcher(config: BackendConfig | None = None) -> BackendDispatcher:
    """Return a dispatcher over the detected backends.

    Without *config* a shared process-wide dispatcher with the default
    policy is returned.
    """
    global _default_dispatcher
    if config is not None:
        return BackendDispatcher(config)
    if _default_dispatcher is None:
        dispatcher = BackendDispatcher()
        with _DETECT_LOCK:
            if _default_dispatcher is None:
                _default_dispatcher = dispatcher
    return _default_dispatcher


def reset_backends() -> None:
    """Forget the detection result and the shared dispatcher (used by tests)."""
    global _detected, _default_dispatcher
    with _DETECT_LOCK:
        _detected = None
        _default_dispatcher = None
