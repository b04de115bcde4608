"""Configuration precedence: defaults < config file < environment < CLI."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from event_timing_engine.exceptions import ConfigValidationError
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="config")

Caster = Callable[[Any], Any]


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise ConfigValidationError(f"Config file not found: {config_path}")
    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(f"Config file {config_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Config file {config_path} must contain a JSON object")
    return data


def _cast(key: str, value: Any, casters: Mapping[str, Caster]) -> Any:
    caster = casters.get(key)
    if caster is None or value is None:
        return value
    try:
        return caster(value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"Invalid value for {key}: {value!r}") from exc


def load_config_with_precedence(
    *,
    config_path: Optional[Path],
    env_prefix: str,
    cli_values: Mapping[str, Any],
    defaults: Mapping[str, Any],
    casters: Mapping[str, Caster] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Dict[str, Any]:
    """Merge configuration sources for the keys present in ``defaults``.

    CLI values of ``None`` mean "not supplied" and fall through to lower layers.
    Unknown keys in the config file are rejected.
    """

    casters = casters or {}
    env = os.environ if environ is None else environ
    merged: Dict[str, Any] = dict(defaults)
    sources: Dict[str, str] = {key: "default" for key in defaults}

    if config_path is not None:
        file_values = _read_config_file(Path(config_path))
        unknown = sorted(set(file_values) - set(defaults))
        if unknown:
            raise ConfigValidationError(f"Unknown config keys: {unknown}")
        for key, value in file_values.items():
            merged[key] = _cast(key, value, casters)
            sources[key] = "file"

    for key in defaults:
        env_key = f"{env_prefix}{key.upper()}"
        if env_key in env:
            merged[key] = _cast(key, env[env_key], casters)
            sources[key] = "env"

    for key, value in cli_values.items():
        if key not in defaults:
            raise ConfigValidationError(f"Unknown option: {key}")
        if value is not None:
            merged[key] = _cast(key, value, casters)
            sources[key] = "cli"

    log.debug("Configuration resolved", extra={"sources": sources})
    return merged


__all__ = ["load_config_with_precedence"]
