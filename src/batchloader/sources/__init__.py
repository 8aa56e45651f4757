"""Batching, caching sources."""

from __future__ import annotations

__all__ = [
    "AssociationSource",
    "BatchSource",
    "KVSource",
    "MappingFetch",
    "Source",
    "SourceRun",
    "fail_missing",
    "resolve_missing",
]

from batchloader.sources.association import AssociationSource
from batchloader.sources.base import (
    BatchSource,
    Source,
    SourceRun,
    fail_missing,
    resolve_missing,
)
from batchloader.sources.kv import KVSource, MappingFetch
