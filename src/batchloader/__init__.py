"""Batch and cache keyed lookups made while walking a data graph."""

from __future__ import annotations

__all__ = [
    "NOT_LOADED",
    "Association",
    "AssociationSource",
    "BatchFetchError",
    "BatchSource",
    "BatchTimeoutError",
    "Cache",
    "Failure",
    "GetPolicy",
    "KVSource",
    "Loader",
    "LoaderConfig",
    "LoaderError",
    "MissingKeyError",
    "NotLoadedError",
    "PendingMap",
    "Preloaded",
    "Result",
    "Success",
    "UnknownSourceError",
    "fail_missing",
    "load_config",
    "resolve_missing",
]

from batchloader.cache import Cache
from batchloader.config import LoaderConfig, load_config
from batchloader.errors import (
    BatchFetchError,
    BatchTimeoutError,
    LoaderError,
    MissingKeyError,
    NotLoadedError,
    UnknownSourceError,
)
from batchloader.loader import Loader
from batchloader.models import (
    NOT_LOADED,
    Association,
    Failure,
    GetPolicy,
    Preloaded,
    Result,
    Success,
)
from batchloader.pending import PendingMap
from batchloader.sources import (
    AssociationSource,
    BatchSource,
    KVSource,
    fail_missing,
    resolve_missing,
)
