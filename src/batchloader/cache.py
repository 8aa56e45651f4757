from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Hashable, Iterator, Mapping

from batchloader.models import Result, Success


def _empty() -> Mapping[Hashable, Mapping[Hashable, Result]]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Cache:
    """Resolved results keyed by grouping key, then item key.

    Every write returns a new ``Cache``; groups that are not touched are
    shared with the previous instance.
    """

    groups: Mapping[Hashable, Mapping[Hashable, Result]] = field(default_factory=_empty)

    def get(self, grouping_key: Hashable, item_key: Hashable) -> Result | None:
        group = self.groups.get(grouping_key)
        if group is None:
            return None
        return group.get(item_key)

    def put(self, grouping_key: Hashable, item_key: Hashable, value: Any) -> "Cache":
        return self.merge(grouping_key, {item_key: Success(value)})

    def merge(self, grouping_key: Hashable, results: Mapping[Hashable, Result]) -> "Cache":
        if not results:
            return self
        group = dict(self.groups.get(grouping_key, {}))
        group.update(results)
        groups = dict(self.groups)
        groups[grouping_key] = MappingProxyType(group)
        return Cache(groups=MappingProxyType(groups))

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self.get(key[0], key[1]) is not None

    def __len__(self) -> int:
        return sum(len(group) for group in self.groups.values())

    def __iter__(self) -> Iterator[tuple[Hashable, Hashable]]:
        for grouping_key, group in self.groups.items():
            for item_key in group:
                yield grouping_key, item_key
