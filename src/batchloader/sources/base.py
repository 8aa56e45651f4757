from __future__ import annotations

import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Hashable, Iterable, Mapping, Protocol

from batchloader.cache import Cache
from batchloader.errors import BatchFetchError, BatchTimeoutError, MissingKeyError, NotLoadedError
from batchloader.models import NOT_LOADED, Failure, Result, Success
from batchloader.pending import PendingMap
from batchloader.reporting.metrics import GroupOutcome

MissingPolicy = Callable[[Hashable, Hashable], Result]


class Source(Protocol):
    name: str | None

    @property
    def has_pending(self) -> bool:
        ...

    def named(self, name: str) -> "Source":
        ...

    def load(self, grouping_key: Hashable, item: Any) -> "Source":
        ...

    def load_many(self, grouping_key: Hashable, items: Iterable[Any]) -> "Source":
        ...

    def put(self, grouping_key: Hashable, item: Any, value: Any) -> "Source":
        ...

    def get(self, grouping_key: Hashable, item: Any) -> Result:
        ...

    def get_many(self, grouping_key: Hashable, items: Iterable[Any]) -> list[Result]:
        ...

    def dispatch(self, executor: Executor) -> "SourceRun":
        ...

    def run(self) -> "Source":
        ...


def resolve_missing(default: Any = None) -> MissingPolicy:
    """Resolve keys absent from a fetch result to ``default``."""

    def _policy(grouping_key: Hashable, item_key: Hashable) -> Result:
        return Success(default)

    return _policy


def fail_missing(grouping_key: Hashable, item_key: Hashable) -> Result:
    """Record keys absent from a fetch result as failures."""
    return Failure(MissingKeyError(grouping_key, item_key))


_RESOLVE_NONE = resolve_missing()


@dataclass(frozen=True)
class BatchSource:
    """Caching, batching source around a single batch-fetch callable.

    ``load`` queues keys that are not cached yet, ``run`` calls ``fetch`` once
    per grouping key with every key queued for it and stores the outcome.
    Operations never mutate the source; when nothing changes the very same
    instance is returned, so callers can detect no-ops with ``is``.

    ``timeout`` is counted in seconds from dispatch, not from the moment a
    fetch starts. With a bounded pool a group still queued behind busy
    workers can time out without ever running, and a fetch that timed out
    keeps its worker thread until the callable returns.

    Subclasses customise key handling through ``cache_key``, ``embedded``,
    ``prepare_value`` and ``call_fetch``.
    """

    fetch: Callable[..., Mapping[Hashable, Any]]
    missing: MissingPolicy = _RESOLVE_NONE
    timeout: float | None = None
    name: str | None = None
    cache: Cache = field(default_factory=Cache)
    pending: PendingMap = field(default_factory=PendingMap)

    def cache_key(self, grouping_key: Hashable, item: Any) -> tuple[Hashable, Hashable]:
        return grouping_key, item

    def embedded(self, grouping_key: Hashable, item: Any) -> Any:
        """Return a value already carried by ``item``, or ``NOT_LOADED``."""
        return NOT_LOADED

    def prepare_value(self, value: Any) -> Any:
        return value

    def call_fetch(self, grouping_key: Hashable, item_keys: frozenset) -> Mapping[Hashable, Any]:
        return self.fetch(grouping_key, item_keys)

    @property
    def has_pending(self) -> bool:
        return not self.pending.is_empty

    def named(self, name: str) -> "BatchSource":
        if self.name == name:
            return self
        return replace(self, name=name)

    def load(self, grouping_key: Hashable, item: Any) -> "BatchSource":
        return self.load_many(grouping_key, (item,))

    def load_many(self, grouping_key: Hashable, items: Iterable[Any]) -> "BatchSource":
        cache = self.cache
        queued: dict[Hashable, list[Hashable]] = {}
        for item in items:
            key, item_key = self.cache_key(grouping_key, item)
            if cache.get(key, item_key) is not None:
                continue
            value = self.embedded(grouping_key, item)
            if value is not NOT_LOADED:
                cache = cache.put(key, item_key, value)
                continue
            queued.setdefault(key, []).append(item_key)

        pending = self.pending
        for key, item_keys in queued.items():
            pending, _ = pending.add_many(key, item_keys)

        if cache is self.cache and pending is self.pending:
            return self
        return replace(self, cache=cache, pending=pending)

    def put(self, grouping_key: Hashable, item: Any, value: Any) -> "BatchSource":
        value = self.prepare_value(value)
        if value is NOT_LOADED:
            return self
        key, item_key = self.cache_key(grouping_key, item)
        return replace(self, cache=self.cache.put(key, item_key, value))

    def get(self, grouping_key: Hashable, item: Any) -> Result:
        key, item_key = self.cache_key(grouping_key, item)
        result = self.cache.get(key, item_key)
        if result is None:
            raise NotLoadedError(self.name, key, item_key)
        return result

    def get_many(self, grouping_key: Hashable, items: Iterable[Any]) -> list[Result]:
        return [self.get(grouping_key, item) for item in items]

    def dispatch(self, executor: Executor) -> "SourceRun":
        batches, pending = self.pending.drain()
        started = time.monotonic()
        futures = {
            key: executor.submit(self.call_fetch, key, item_keys)
            for key, item_keys in batches.items()
        }
        deadline = started + self.timeout if self.timeout is not None else None
        return SourceRun(
            source=replace(self, pending=pending),
            batches=batches,
            futures=futures,
            deadline=deadline,
        )

    def run(self) -> "BatchSource":
        if not self.has_pending:
            return self
        executor = ThreadPoolExecutor(thread_name_prefix="batchloader")
        try:
            source, _ = self.dispatch(executor).collect()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return source

    def resolve(
        self,
        grouping_key: Hashable,
        item_keys: frozenset,
        future: Future,
    ) -> dict[Hashable, Result]:
        exc = future.exception()
        if exc is None:
            fetched = future.result()
            if isinstance(fetched, Mapping):
                return {
                    item_key: Success(fetched[item_key])
                    if item_key in fetched
                    else self.missing(grouping_key, item_key)
                    for item_key in item_keys
                }
            exc = TypeError(
                f"Batch fetch must return a mapping, got {type(fetched).__name__}"
            )
        failure = Failure(BatchFetchError.from_exception(grouping_key, exc, source=self.name))
        return {item_key: failure for item_key in item_keys}


@dataclass
class SourceRun:
    """Fetches of one source that were handed to an executor."""

    source: BatchSource
    batches: dict[Hashable, frozenset]
    futures: dict[Hashable, Future]
    deadline: float | None = None

    def collect(self) -> tuple[BatchSource, list[GroupOutcome]]:
        timeout = None
        if self.deadline is not None:
            timeout = max(0.0, self.deadline - time.monotonic())
        done, _ = wait(list(self.futures.values()), timeout=timeout)

        source = self.source
        cache = source.cache
        outcomes: list[GroupOutcome] = []
        for key, item_keys in self.batches.items():
            future = self.futures[key]
            if future in done:
                results = source.resolve(key, item_keys, future)
                timed_out = False
            else:
                future.cancel()
                failure = Failure(BatchTimeoutError(key, source.timeout or 0.0, source=source.name))
                results = {item_key: failure for item_key in item_keys}
                timed_out = True
            cache = cache.merge(key, results)
            outcomes.append(
                GroupOutcome(
                    source=source.name,
                    grouping_key=key,
                    keys=len(item_keys),
                    failures=sum(1 for result in results.values() if not result.ok),
                    timed_out=timed_out,
                    error=_first_error(results),
                )
            )
        return replace(source, cache=cache), outcomes


def _first_error(results: Mapping[Hashable, Result]) -> str | None:
    for result in results.values():
        if isinstance(result, Failure):
            return type(result.error).__name__
    return None
