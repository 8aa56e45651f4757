from __future__ import annotations

import json
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from batchloader.config import LoaderConfig, load_config
from batchloader.errors import ConfigError
from batchloader.loader import Loader
from batchloader.models import Failure, GetPolicy
from batchloader.reporting.logging import json_default
from batchloader.sources.kv import KVSource, MappingFetch
from batchloader.utils import load_env_file, parse_keys_csv

app = typer.Typer(help="Batching, caching loader CLI")


@app.callback()
def main() -> None:
    """Batching, caching loader CLI."""
    return None


def _load_settings(config: Path) -> LoaderConfig:
    load_env_file(Path(".env"))
    try:
        return load_config(config)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _load_dataset(path: Path) -> dict[Any, dict[Any, Any]]:
    if not path.exists():
        raise typer.BadParameter(f"{path} does not exist", param_hint="DATA")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict) or not all(isinstance(group, dict) for group in data.values()):
        raise typer.BadParameter(
            "dataset must map each group to an {id: value} mapping", param_hint="DATA"
        )
    return data


@app.command()
def fetch(
    data: Path = typer.Argument(..., help="YAML dataset of {group: {id: value}}."),
    group: str = typer.Option(..., "--group", "-g", help="Group to load keys from."),
    ids: str = typer.Option(..., "--ids", help="Comma-separated keys; repeats are allowed."),
    rounds: int = typer.Option(
        1, "--rounds", min=1, help="Repeat load+run to show cache hits."
    ),
    missing: Optional[str] = typer.Option(
        None, "--missing", help="Override the missing-key policy (resolve or fail)."
    ),
    config: Path = typer.Option(
        Path("batchloader.yaml"), "--config", help="Path to batchloader.yaml."
    ),
) -> None:
    """Load keys from a YAML dataset through a batching source."""
    settings = _load_settings(config)
    if missing is not None:
        try:
            settings = replace(settings, source=replace(settings.source, missing=missing))
        except ConfigError as exc:
            raise typer.BadParameter(str(exc), param_hint="--missing") from exc

    keys = parse_keys_csv(ids)
    if not keys:
        raise typer.BadParameter("--ids must name at least one key.")

    fetcher = MappingFetch(_load_dataset(data))
    source = KVSource(fetch=fetcher, **settings.source.options())
    loader = Loader.from_config(settings).add_source("data", source)
    loader = replace(loader, get_policy=GetPolicy.RESULTS)

    for _ in range(rounds):
        loader = loader.load_many("data", group, keys).run()

    output: dict[str, Any] = {}
    for key, result in zip(keys, loader.get_many("data", group, keys)):
        if isinstance(result, Failure):
            output[str(key)] = {"error": str(result.error)}
        else:
            output[str(key)] = result.value

    typer.echo(json.dumps(output, indent=2, default=json_default))
    typer.echo(f"Fetch calls: {len(fetcher.calls)}")
    if loader.last_run is not None and loader.last_run.failures:
        typer.secho(
            f"Warning: {loader.last_run.failures} key(s) failed to load",
            fg=typer.colors.YELLOW,
        )


@app.command("show-config")
def show_config(
    config: Path = typer.Option(
        Path("batchloader.yaml"), "--config", help="Path to batchloader.yaml."
    ),
) -> None:
    """Print the resolved configuration."""
    settings = _load_settings(config)
    typer.echo(json.dumps(asdict(settings), indent=2, default=json_default))


if __name__ == "__main__":
    app()
