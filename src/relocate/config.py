from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .aws_api import DEFAULT_REGION
from .models import EnvironmentMode

DEFAULT_CONFIG_DIR = Path("~/.relocate")
DEFAULT_CONFIG_CANDIDATES = ("config.yaml", "config.json")
DEFAULT_SSH_USER = "ubuntu"

logger = logging.getLogger(__name__)


class RelocateError(Exception):
    pass


class ConfigError(RelocateError):
    pass


class KeyNotConfiguredError(RelocateError):
    def __init__(self, mode: EnvironmentMode) -> None:
        super().__init__(f"SSH key not configured for {mode.marker} (add it under ssh_keys in your config)")
        self.mode = mode


@dataclass(slots=True, frozen=True)
class ConfigDefaults:
    aws_profile: str | None = None
    aws_region: str | None = None
    ssh_user: str | None = None


@dataclass(slots=True, frozen=True)
class AppConfig:
    ssh_keys: dict[str, str] = field(default_factory=dict)
    defaults: ConfigDefaults = field(default_factory=ConfigDefaults)
    path: Path | None = None

    def ssh_key_for(self, mode: EnvironmentMode) -> str:
        key_name = self.ssh_keys.get(mode.marker, "")
        if not key_name:
            raise KeyNotConfiguredError(mode)
        return key_name

    def resolve_profile(self, profile: str | None) -> str | None:
        return profile or self.defaults.aws_profile

    def resolve_region(self, region: str | None) -> str:
        return region or self.defaults.aws_region or DEFAULT_REGION

    def resolve_user(self, user: str | None) -> str:
        return user or self.defaults.ssh_user or DEFAULT_SSH_USER


def find_config_path(config_path: str | Path | None = None) -> Path | None:
    if config_path:
        return Path(config_path).expanduser()
    directory = DEFAULT_CONFIG_DIR.expanduser()
    for name in DEFAULT_CONFIG_CANDIDATES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: str | Path | None = None) -> AppConfig:
    path = find_config_path(config_path)
    if path is None or not path.is_file():
        logger.warning("No config file found (looked for %s); SSH keys are unset", path or DEFAULT_CONFIG_DIR)
        return AppConfig()

    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
    except OSError as error:
        raise ConfigError(f"cannot read {path}: {error}") from error
    except yaml.YAMLError as error:
        raise ConfigError(f"{path} is invalid: {error}") from error

    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} is invalid: expected a mapping at the top level")

    defaults = _safe_mapping_get(loaded, "defaults", {})
    config = AppConfig(
        ssh_keys=_parse_ssh_keys(_safe_mapping_get(loaded, "ssh_keys")),
        defaults=ConfigDefaults(
            aws_profile=_coerce_str(_safe_mapping_get(defaults, "aws_profile")),
            aws_region=_coerce_str(_safe_mapping_get(defaults, "aws_region")),
            ssh_user=_coerce_str(_safe_mapping_get(defaults, "ssh_user")),
        ),
        path=path,
    )
    logger.info("Loaded config from %s (keys: %s)", path, ", ".join(sorted(config.ssh_keys)) or "none")
    return config


def _parse_ssh_keys(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    parsed: dict[str, str] = {}
    for env, key_name in value.items():
        coerced = _coerce_str(key_name)
        if coerced is None:
            continue
        parsed[str(env)] = coerced
    return parsed


def _coerce_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _safe_mapping_get(mapping: Any, key: str, fallback: Any = None) -> Any:
    try:
        return mapping[key]
    except (KeyError, TypeError):
        return fallback
