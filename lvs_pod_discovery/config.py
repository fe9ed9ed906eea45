"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Flat keys of the legacy "main" section -> (section, field)
_LEGACY_MAIN_KEYS = {
    "lvsConfigFilePath": ("lvs", "config_file_path"),
    "lvsDestionationPort": ("lvs", "destination_port"),
    "lvsSleepTime": ("lvs", "sleep_time"),
    "labelToMonitorName": ("kubernetes", "label_selector"),
    "labelToMonitorNamespace": ("kubernetes", "namespace"),
}


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class LVSConfig:
    config_file_path: str = ""
    destination_port: int = 80
    sleep_time: int = 10  # seconds between ramp steps
    ramp_step: int = 20


@dataclass(frozen=True)
class KubernetesConfig:
    namespace: str = "default"
    label_selector: str = ""
    kubeconfig: str = ""  # empty = in-cluster, then ~/.kube/config
    progress_label: str = "progress"
    watch_timeout_seconds: int = 300
    watch_retry_seconds: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    lvs: LVSConfig = field(default_factory=LVSConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _translate_legacy(raw: dict[str, Any]) -> dict[str, Any]:
    """Fold the flat ``main`` section into the structured sections.

    Keys already present in a structured section win over their legacy spelling.
    """
    main = raw.get("main")
    if not isinstance(main, dict):
        return raw

    result = {k: (dict(v) if isinstance(v, dict) else v) for k, v in raw.items() if k != "main"}
    for legacy_key, (section, name) in _LEGACY_MAIN_KEYS.items():
        if legacy_key not in main:
            continue
        target = result.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigError(f"Section '{section}' must be a mapping")
        target.setdefault(name, main[legacy_key])
    return result


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            continue
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{key}' must be a mapping")
            kwargs[key] = _build_nested(ft, value)
        elif ft is int and isinstance(value, str) and value.strip().lstrip("-").isdigit():
            kwargs[key] = int(value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    raw = _translate_legacy(raw)
    config = _build_nested(AppConfig, raw)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if not config.lvs.config_file_path:
        raise ConfigError("lvs.config_file_path is required")

    if not config.kubernetes.label_selector:
        raise ConfigError("kubernetes.label_selector is required")

    if not isinstance(config.lvs.destination_port, int) or not 1 <= config.lvs.destination_port <= 65535:
        raise ConfigError("lvs.destination_port must be an integer between 1 and 65535")

    if not isinstance(config.lvs.sleep_time, int) or config.lvs.sleep_time < 0:
        raise ConfigError("lvs.sleep_time must be a non-negative integer")

    if not isinstance(config.lvs.ramp_step, int) or not 1 <= config.lvs.ramp_step <= 100:
        raise ConfigError("lvs.ramp_step must be between 1 and 100")

    timeout = config.kubernetes.watch_timeout_seconds
    if not isinstance(timeout, int) or timeout <= 0:
        raise ConfigError("kubernetes.watch_timeout_seconds must be a positive integer")

    retry = config.kubernetes.watch_retry_seconds
    if not isinstance(retry, int) or retry < 0:
        raise ConfigError("kubernetes.watch_retry_seconds must be a non-negative integer")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
