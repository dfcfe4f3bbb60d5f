"""Frozen dataclasses for configuration, YAML loader with env-var interpolation, and the
typed option resolver used by every discovery run."""

from __future__ import annotations

import os
import re
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Sentinel for string options that were never configured
UNDEFINED = "undefined"

_TRUE_VALUES = frozenset({"true", "yes", "on", "1"})
_FALSE_VALUES = frozenset({"false", "no", "off", "0"})


# ── Discovery options ───────────────────────────────────────────────


@dataclass(frozen=True)
class ConfigEntry:
    """Declared type, environment variable and default of one discovery option."""

    type: str  # "bool", "string" or "tags"
    env_variable: str
    default: Any


CONFIG_MAPPING: dict[str, ConfigEntry] = {
    "aws_autoscaling": ConfigEntry("bool", "AWS_AUTOSCALING", False),
    "aws_ec2_tags": ConfigEntry("tags", "AWS_EC2_TAGS", {}),
    "aws_access_key": ConfigEntry("string", "AWS_ACCESS_KEY_ID", UNDEFINED),
    "aws_secret_key": ConfigEntry("string", "AWS_SECRET_ACCESS_KEY", UNDEFINED),
    "aws_ec2_region": ConfigEntry("string", "AWS_EC2_REGION", UNDEFINED),
    "aws_use_private_ip": ConfigEntry("bool", "AWS_USE_PRIVATE_IP", False),
}


@dataclass(frozen=True)
class DiscoveryOptions:
    """Resolved values of every option in CONFIG_MAPPING."""

    aws_autoscaling: bool = False
    aws_ec2_tags: dict[str, str] = field(default_factory=dict)
    aws_access_key: str = UNDEFINED
    aws_secret_key: str = UNDEFINED
    aws_ec2_region: str = UNDEFINED
    aws_use_private_ip: bool = False


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return None


def _to_string(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    text = str(value).strip()
    return text or None


def _to_tags(value: Any) -> dict[str, str] | None:
    """Accept a mapping, a list of (key, value) pairs, or "k1=v1,k2=v2"."""
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        tags: dict[str, str] = {}
        for pair in value:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                return None
            tags[str(pair[0])] = str(pair[1])
        return tags
    if isinstance(value, str):
        tags = {}
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            key, sep, val = part.partition("=")
            if not sep or not key.strip():
                return None
            tags[key.strip()] = val.strip()
        return tags
    return None


_COERCERS = {"bool": _to_bool, "string": _to_string, "tags": _to_tags}


def _default(entry: ConfigEntry) -> Any:
    # Never hand out the shared mapping default
    return dict(entry.default) if isinstance(entry.default, dict) else entry.default


def get_config_key(key: str, raw: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> Any:
    """Resolve one option: explicit config value > environment variable > default.

    Malformed values fall back to the declared default; this never raises for a
    known key.
    """
    entry = CONFIG_MAPPING[key]
    coerce = _COERCERS[entry.type]
    environ = os.environ if environ is None else environ

    if key in raw and raw[key] is not None:
        source = raw[key]
    elif environ.get(entry.env_variable):
        source = environ[entry.env_variable]
    else:
        return _default(entry)

    value = coerce(source)
    if value is None:
        return _default(entry)
    return value


def resolve_options(raw: Mapping[str, Any] | None = None, environ: Mapping[str, str] | None = None) -> DiscoveryOptions:
    """Resolve every known discovery option from a raw config mapping."""
    raw = raw or {}
    return DiscoveryOptions(**{key: get_config_key(key, raw, environ) for key in CONFIG_MAPPING})


# ── Application configuration ───────────────────────────────────────


def _default_node_prefix() -> str:
    nodename = os.environ.get("RABBITMQ_NODENAME", "")
    prefix = nodename.partition("@")[0]
    return prefix or "rabbit"


def _default_use_longname() -> bool:
    return bool(_to_bool(os.environ.get("RABBITMQ_USE_LONGNAME", "false")))


@dataclass(frozen=True)
class NodeNameConfig:
    prefix: str = field(default_factory=_default_node_prefix)
    use_longname: bool = field(default_factory=_default_use_longname)


@dataclass(frozen=True)
class HTTPConfig:
    timeout: float = 10
    verify_ssl: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    peer_discovery_aws: dict[str, Any] = field(default_factory=dict)
    node_name: NodeNameConfig = field(default_factory=NodeNameConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


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


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in cls.__dataclass_fields__:
            continue
        ft = hints[key]
        if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{key}' must be a mapping")
            kwargs[key] = _build_nested(ft, value)
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

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    config = _build_nested(AppConfig, raw)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if not isinstance(config.peer_discovery_aws, dict):
        raise ConfigError("peer_discovery_aws must be a mapping of option names to values")

    unknown = sorted(set(config.peer_discovery_aws) - set(CONFIG_MAPPING))
    if unknown:
        raise ConfigError(f"Unknown peer_discovery_aws option(s): {', '.join(unknown)}")

    if not isinstance(config.http.timeout, (int, float)) or config.http.timeout <= 0:
        raise ConfigError("http.timeout must be a positive number of seconds")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")

    if not config.node_name.prefix or "@" in config.node_name.prefix:
        raise ConfigError("node_name.prefix must be a non-empty string without '@'")
