"""Configuration loading for the ingestion pipeline.

Layers, lowest precedence first:

    config/base.yaml -> config/<environment>.yaml -> MGNREGA__SECTION__KEY env vars

`load_config_from_files` returns the raw merge of the YAML layers only, so
tests can inspect it unchanged; `get_config` adds the environment layer,
validates into a PipelineConfig and memoizes the result.
"""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .schemas import PipelineConfig


ENV_PREFIX = "MGNREGA"
ENV_SEPARATOR = "__"
DEFAULT_CONFIG_DIR = Path("config")


def _deep_merge_dicts(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge `override` onto a copy of `base`; override wins on conflicts."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge_dicts(current, value)
        else:
            merged[key] = value
    return merged


def _convert_env_value(value: str) -> Any:
    """Interpret an environment string as bool, null, int or float where it parses."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            continue
    return value


def _env_layer(environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Nested override dict built from `<PREFIX>__SECTION__KEY` variables."""
    marker = f"{prefix}{ENV_SEPARATOR}"
    layer: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(marker):
            continue
        *sections, leaf = name[len(marker) :].lower().split(ENV_SEPARATOR)
        node = layer
        for section in sections:
            node = node.setdefault(section, {})
        node[leaf] = _convert_env_value(raw)
    return layer


def _apply_env_overrides(config_dict: dict[str, Any], prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Merge the process environment on top of `config_dict`.

    Example:
      MGNREGA__RATE_LIMIT__CAPACITY=20 -> config_dict["rate_limit"]["capacity"] = 20
    """
    return _deep_merge_dicts(config_dict, _env_layer(os.environ, prefix))


def _read_yaml(path: Path, layer: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse {layer} config: {e}",
            operation="load_config_from_files",
            details={"file_path": str(path)},
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{layer.capitalize()} config must be a mapping, got {type(data).__name__}",
            operation="load_config_from_files",
            details={"file_path": str(path)},
        )
    return data


def load_config_from_files(
    environment: str | None = None, config_dir: Path | None = None
) -> dict[str, Any]:
    """Read `base.yaml` and deep-merge `<environment>.yaml` over it when present."""
    config_dir = Path(config_dir or DEFAULT_CONFIG_DIR)

    base_file = config_dir / "base.yaml"
    if not base_file.exists():
        raise ConfigurationError(
            f"Base configuration file not found: {base_file}",
            operation="load_config_from_files",
            details={"file_path": str(base_file), "config_dir": str(config_dir)},
        )
    config = _read_yaml(base_file, "base")

    if environment:
        env_file = config_dir / f"{environment}.yaml"
        if env_file.exists():
            config = _deep_merge_dicts(config, _read_yaml(env_file, environment))

    return config


@lru_cache(maxsize=1)
def get_config(
    environment: str | None = None,
    config_dir: Path | None = None,
    apply_env_overrides_flag: bool = True,
) -> PipelineConfig:
    """Load, override and validate configuration; cached until `reload_config()`.

    The environment defaults to MGNREGA__PIPELINE__ENVIRONMENT, then "development".
    """
    if environment is None:
        environment = os.getenv(f"{ENV_PREFIX}__PIPELINE__ENVIRONMENT", "development")

    config_dict = load_config_from_files(environment=environment, config_dir=config_dir)
    config_dict = _deep_merge_dicts({"pipeline": {"environment": environment}}, config_dict)
    if apply_env_overrides_flag:
        config_dict = _apply_env_overrides(config_dict)

    try:
        return PipelineConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            operation="get_config",
            details={"environment": environment, "errors": e.error_count()},
            cause=e,
        ) from e
    except TypeError as e:
        raise ConfigurationError(
            f"Configuration loading failed: {e}",
            operation="get_config",
            details={"environment": environment},
            cause=e,
        ) from e


def reload_config() -> None:
    """Clear configuration cache to force reload on next access."""
    get_config.cache_clear()
