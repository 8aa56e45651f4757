from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Hashable, Iterable, Mapping

from batchloader.config import LoaderConfig
from batchloader.errors import UnknownSourceError
from batchloader.models import GetPolicy, Result
from batchloader.reporting.logging import log_event
from batchloader.reporting.metrics import GroupOutcome, RunStats, compute_run_stats
from batchloader.sources.base import Source

EventLog = Callable[[str, Mapping[str, Any]], None]


def _no_sources() -> Mapping[str, Source]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Loader:
    """Named sources sharing one load/run workflow.

    A loader is immutable: ``load``, ``put`` and ``run`` return a new loader,
    or the same one when nothing changed. Loading keys that are all cached
    therefore hands back the input loader, and running it fetches nothing.

    Typical use::

        loader = Loader().add_source("db", KVSource(fetch_users))
        loader = loader.load_many("db", "User", [1, 2, 3]).run()
        users = loader.get_many("db", "User", [1, 2, 3])
    """

    sources: Mapping[str, Source] = field(default_factory=_no_sources)
    max_workers: int | None = None
    get_policy: GetPolicy = GetPolicy.RAISE
    log: EventLog | None = field(default=None, compare=False)
    last_run: RunStats | None = field(default=None, compare=False)

    @classmethod
    def from_config(cls, config: LoaderConfig, log: EventLog | None = None) -> "Loader":
        if log is None and config.log.enabled:
            log = partial(log_event, log_path=config.log.path)
        return cls(max_workers=config.max_workers, get_policy=config.get_policy, log=log)

    def add_source(self, name: str, source: Source) -> "Loader":
        if name in self.sources:
            raise KeyError(f"Source already registered: {name}")
        return self._with_source(name, source.named(name))

    def source(self, name: str) -> Source:
        try:
            return self.sources[name]
        except KeyError:
            raise UnknownSourceError(name) from None

    def load(self, name: str, grouping_key: Hashable, item: Any) -> "Loader":
        source = self.source(name)
        return self._with_source(name, source.load(grouping_key, item), source)

    def load_many(self, name: str, grouping_key: Hashable, items: Iterable[Any]) -> "Loader":
        source = self.source(name)
        return self._with_source(name, source.load_many(grouping_key, items), source)

    def put(self, name: str, grouping_key: Hashable, item: Any, value: Any) -> "Loader":
        source = self.source(name)
        return self._with_source(name, source.put(grouping_key, item, value), source)

    def get(self, name: str, grouping_key: Hashable, item: Any) -> Any:
        return self._read(self.source(name).get(grouping_key, item))

    def get_many(self, name: str, grouping_key: Hashable, items: Iterable[Any]) -> list[Any]:
        results = self.source(name).get_many(grouping_key, items)
        return [self._read(result) for result in results]

    def pending_batches(self) -> bool:
        return any(source.has_pending for source in self.sources.values())

    def run(self) -> "Loader":
        """Fetch everything queued in every source and wait for the results.

        All pending groups go to one thread pool at once. A failing or slow
        group is recorded against its own keys and never stops the others.
        """
        busy = {name: source for name, source in self.sources.items() if source.has_pending}
        if not busy:
            return self

        started = time.monotonic()
        sources = dict(self.sources)
        outcomes: list[GroupOutcome] = []
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="batchloader",
        )
        try:
            runs = {name: source.dispatch(executor) for name, source in busy.items()}
            for name, source_run in runs.items():
                sources[name], source_outcomes = source_run.collect()
                outcomes.extend(source_outcomes)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        stats = compute_run_stats(outcomes, sources=len(busy), elapsed_ms=elapsed_ms)
        if self.log is not None:
            self.log("loader.run", asdict(stats))
        return replace(self, sources=MappingProxyType(sources), last_run=stats)

    def _with_source(self, name: str, source: Source, previous: Source | None = None) -> "Loader":
        if previous is not None and source is previous:
            return self
        sources = dict(self.sources)
        sources[name] = source
        return replace(self, sources=MappingProxyType(sources))

    def _read(self, result: Result) -> Any:
        if self.get_policy is GetPolicy.RESULTS:
            return result
        if result.ok:
            return result.unwrap()
        if self.get_policy is GetPolicy.RETURN_NONE:
            return None
        return result.unwrap()
