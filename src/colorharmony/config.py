"""YAML configuration loading and environment overrides.

A configuration file mirrors :class:`~colorharmony.models.EngineConfig`::

    color_model: cielab
    clustering_mode: hybrid
    seed: 42
    correspondence: luminance_rank
    cluster:
      block_size: 1000
      min_pts: 3
    transfer:
      lut_bits: 6
      lut_max_colors: 256
    backend:
      preferred: auto
      allow_gpu: true

Every key is optional.  ``COLORHARMONY_BACKEND`` and
``COLORHARMONY_DISABLE_GPU`` (read from the process environment or a
``.env`` file) override the ``backend`` section.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from colorharmony.constants import BACKEND_ENV, DISABLE_GPU_ENV
from colorharmony.errors import ConfigError
from colorharmony.logging import get_logger
from colorharmony.models import BackendKind, EngineConfig

logger = get_logger("config")

_TRUE_VALUES = ("1", "true", "yes", "on")


def validate_config_path(path: str | Path) -> Path:
    """Resolve and validate that a config file path exists.

    Raises:
        ConfigError: If the file does not exist.
    """
    resolved = Path(path)
    if not resolved.is_file():
        raise ConfigError(f"Config file not found: {resolved}")
    return resolved


def _parse_yaml(path: Path) -> dict:
    """Read and parse a YAML file into a mapping (empty file -> ``{}``).

    Raises:
        ConfigError: If the YAML is malformed or not a mapping.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}"
        )
    return data


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Backend settings taken from environment variables.

    Returns:
        A partial ``backend`` section, empty when no variable is set.

    Raises:
        ConfigError: If ``COLORHARMONY_BACKEND`` names an unknown backend.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    backend = env.get(BACKEND_ENV, "").strip().lower()
    if backend:
        try:
            overrides["preferred"] = BackendKind(backend)
        except ValueError:
            choices = ", ".join(kind.value for kind in BackendKind)
            raise ConfigError(
                f"{BACKEND_ENV}={backend!r} is not one of: {choices}"
            ) from None

    if env.get(DISABLE_GPU_ENV, "").strip().lower() in _TRUE_VALUES:
        overrides["allow_gpu"] = False

    return overrides


def build_config(data: dict | None = None, use_env: bool = True) -> EngineConfig:
    """Validate a configuration mapping, applying environment overrides.

    Raises:
        ConfigError: If validation fails.
    """
    data = dict(data or {})
    if use_env:
        overrides = env_overrides()
        if overrides:
            backend = data.get("backend") or {}
            if not isinstance(backend, dict):
                raise ConfigError(
                    f"'backend' section must be a YAML mapping, got {type(backend).__name__}"
                )
            data["backend"] = {**backend, **overrides}
            logger.debug("Environment overrides: %s", overrides)
    try:
        return EngineConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path | None = None, use_env: bool = True) -> EngineConfig:
    """Load an engine configuration.

    Args:
        path: YAML file to read.  None yields the defaults.
        use_env: Apply ``.env`` and environment variable overrides.

    Returns:
        A validated :class:`EngineConfig`.

    Raises:
        ConfigError: If the file is missing, malformed or invalid.
    """
    if use_env:
        load_dotenv(override=False)
    data: dict = {}
    if path is not None:
        resolved = validate_config_path(path)
        data = _parse_yaml(resolved)
        logger.debug("Loaded config from %s", resolved)
    return build_config(data, use_env=use_env)
