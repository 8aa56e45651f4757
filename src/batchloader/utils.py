from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml


def parse_keys_csv(value: str | None) -> list[Any]:
    """Parse a comma-separated key list, reading each key as a YAML scalar.

    ``"1, 2, abc"`` becomes ``[1, 2, "abc"]``. Order and repeats are kept.
    """
    if not value:
        return []

    keys: list[Any] = []
    for raw in value.split(","):
        token = raw.strip()
        if not token:
            continue
        parsed = yaml.safe_load(token)
        keys.append(parsed if isinstance(parsed, (str, int, float, bool)) else token)
    return keys


def load_env_file(path: Path | str, override: bool = False) -> dict[str, str]:
    """Load a .env file into os.environ, returning the keys set."""
    env_path = Path(path)
    if not env_path.exists():
        return {}

    loaded: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if not key:
            continue
        if not override and key in os.environ:
            continue
        os.environ[key] = value
        loaded[key] = value
    return loaded
