"""Configuration loading for the analysis browser."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .analysis.client import DEFAULT_API_PATH

API_BASE_ENV = "GIT_ARCHAEOLOGIST_API_BASE"
API_PATH_ENV = "GIT_ARCHAEOLOGIST_API_PATH"
DEFAULT_API_BASE = "http://localhost:8000"


class SettingsError(ValueError):
    """Raised when a configuration source holds unusable values."""


@dataclass(frozen=True)
class Settings:
    api_base: str = DEFAULT_API_BASE
    api_path: str = DEFAULT_API_PATH
    use_topic_model: bool = True
    min_cluster_size: Optional[int] = 8
    timeout: float = 300.0
    message_limit: int = 10
    noise_sample_limit: int = 40


def get_default_config_path() -> Path:
    return Path("~/.config/git-archaeologist/config.yml").expanduser()


def load_settings(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Merge configuration sources, later ones winning:
      1. Built-in defaults
      2. YAML config file (``config_path`` or ~/.config/git-archaeologist/config.yml)
      3. Environment variables
      4. CLI overrides (``None`` values are ignored)
    """
    env = os.environ if environ is None else environ
    values: dict = {}

    path = Path(config_path).expanduser() if config_path else get_default_config_path()
    if path.is_file():
        values.update(_read_config_file(path))
    elif config_path is not None:
        raise SettingsError(f"Config file not found: {path}")

    api_base = env.get(API_BASE_ENV, "").strip()
    if api_base:
        values["api_base"] = api_base
    api_path = env.get(API_PATH_ENV, "").strip()
    if api_path:
        values["api_path"] = api_path

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                values[key] = value

    return _validate(replace(Settings(), **_known_keys(values)))


def _read_config_file(path: Path) -> dict:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise SettingsError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"Config file {path} must contain a mapping")
    return {key.replace("-", "_") if isinstance(key, str) else key: value for key, value in data.items()}


def _known_keys(values: Mapping[Any, Any]) -> dict:
    allowed = {f.name for f in fields(Settings)}
    unknown = sorted(str(key) for key in values if key not in allowed)
    if unknown:
        raise SettingsError(f"Unknown setting(s): {', '.join(unknown)}")
    return dict(values)


def _validate(settings: Settings) -> Settings:
    if not isinstance(settings.api_base, str) or not settings.api_base.strip():
        raise SettingsError("api_base must be a non-empty URL")
    if not isinstance(settings.api_path, str) or not settings.api_path.strip():
        raise SettingsError("api_path must be a non-empty path")
    if not isinstance(settings.use_topic_model, bool):
        raise SettingsError("use_topic_model must be true or false")
    if settings.min_cluster_size is not None and (
        isinstance(settings.min_cluster_size, bool)
        or not isinstance(settings.min_cluster_size, int)
        or settings.min_cluster_size < 1
    ):
        raise SettingsError("min_cluster_size must be a positive integer")
    for name in ("message_limit", "noise_sample_limit"):
        value = getattr(settings, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise SettingsError(f"{name} must be a non-negative integer")
    if isinstance(settings.timeout, bool) or not isinstance(settings.timeout, (int, float)) or settings.timeout <= 0:
        raise SettingsError("timeout must be a positive number")
    return settings
