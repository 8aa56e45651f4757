from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from batchloader.errors import ConfigError
from batchloader.models import GetPolicy
from batchloader.sources.base import MissingPolicy, fail_missing, resolve_missing

MISSING_POLICIES = ("resolve", "fail")


def _coerce_bool(value: bool | str | int) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "y", "on"}:
            return True
        if normalized in {"false", "0", "no", "n", "off"}:
            return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def _coerce_optional_number(value: Any, kind: type, name: str) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "none", "null"}:
        return None
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return number


@dataclass
class SourceConfig:
    timeout: float | None = None
    missing: str = "resolve"

    def __post_init__(self) -> None:
        self.timeout = _coerce_optional_number(self.timeout, float, "timeout")
        self.missing = str(self.missing).strip().lower()
        if self.missing not in MISSING_POLICIES:
            raise ConfigError(
                f"missing must be one of {', '.join(MISSING_POLICIES)}, got {self.missing!r}"
            )

    @property
    def missing_policy(self) -> MissingPolicy:
        if self.missing == "fail":
            return fail_missing
        return resolve_missing()

    def options(self) -> dict[str, Any]:
        return {"timeout": self.timeout, "missing": self.missing_policy}


@dataclass
class LogConfig:
    enabled: bool = False
    path: Path | None = None

    def __post_init__(self) -> None:
        self.enabled = _coerce_bool(self.enabled)
        if self.path is not None and str(self.path).strip():
            self.path = Path(self.path)
        else:
            self.path = None


@dataclass
class LoaderConfig:
    max_workers: int | None = None
    get_policy: GetPolicy = GetPolicy.RAISE
    source: SourceConfig = field(default_factory=SourceConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def __post_init__(self) -> None:
        self.max_workers = _coerce_optional_number(self.max_workers, int, "max_workers")
        policy = self.get_policy
        if isinstance(policy, str):
            policy = policy.strip().lower()
        try:
            self.get_policy = GetPolicy(policy)
        except ValueError as exc:
            choices = ", ".join(policy.value for policy in GetPolicy)
            raise ConfigError(
                f"get_policy must be one of {choices}, got {self.get_policy!r}"
            ) from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LoaderConfig":
        source = SourceConfig(**(data.get("source", {}) or {}))
        log = LogConfig(**(data.get("log", {}) or {}))
        return cls(
            max_workers=data.get("max_workers"),
            get_policy=data.get("get_policy", GetPolicy.RAISE),
            source=source,
            log=log,
        )


DEFAULT_CONFIG_PATH = Path("batchloader.yaml")
ENV_PREFIX = "BATCHLOADER__"


def _deep_set(target: dict[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        current = current.setdefault(key, {})
    current[keys[-1]] = value


def _parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = key[len(ENV_PREFIX) :].lower().split("__")
        if not path or any(not part for part in path):
            continue
        _deep_set(overrides, path, value)
    return overrides


def _merge_dicts(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: Path | str = DEFAULT_CONFIG_PATH,
    env: Mapping[str, str] | None = None,
) -> LoaderConfig:
    config_path = Path(path)
    data: dict[str, Any] = {}
    if config_path.exists():
        raw = config_path.read_text(encoding="utf-8")
        loaded = yaml.safe_load(raw) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must define a mapping at the top level")
        data = loaded

    env_overrides = _parse_env_overrides(os.environ if env is None else env)
    merged = _merge_dicts(data, env_overrides)
    try:
        return LoaderConfig.from_dict(merged)
    except TypeError as exc:
        raise ConfigError(f"Unknown configuration key: {exc}") from exc
