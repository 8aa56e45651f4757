from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Hashable, Iterable, Mapping


def _empty() -> Mapping[Hashable, frozenset]:
    return MappingProxyType({})


@dataclass(frozen=True)
class PendingMap:
    """Item keys queued per grouping key until the next flush."""

    batches: Mapping[Hashable, frozenset] = field(default_factory=_empty)

    def add(self, grouping_key: Hashable, item_key: Hashable) -> tuple["PendingMap", bool]:
        return self.add_many(grouping_key, (item_key,))

    def add_many(
        self, grouping_key: Hashable, item_keys: Iterable[Hashable]
    ) -> tuple["PendingMap", bool]:
        current = self.batches.get(grouping_key, frozenset())
        added = frozenset(item_keys) - current
        if not added:
            return self, False
        batches = dict(self.batches)
        batches[grouping_key] = current | added
        return PendingMap(batches=MappingProxyType(batches)), True

    def drain(self) -> tuple[dict[Hashable, frozenset], "PendingMap"]:
        snapshot = {key: items for key, items in self.batches.items() if items}
        return snapshot, PendingMap()

    def contains(self, grouping_key: Hashable, item_key: Hashable) -> bool:
        return item_key in self.batches.get(grouping_key, frozenset())

    @property
    def is_empty(self) -> bool:
        return not any(self.batches.values())

    def __len__(self) -> int:
        return sum(len(items) for items in self.batches.values())
