from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping

from batchloader.sources.base import BatchSource


@dataclass(frozen=True)
class KVSource(BatchSource):
    """Keyed lookups: grouping key is an entity type, item key its identifier.

    ``fetch(entity_type, ids)`` is expected to cover every id in one round trip
    and return an ``id -> entity`` mapping.
    """

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[Hashable, Mapping[Hashable, Any]],
        **options: Any,
    ) -> "KVSource":
        return cls(fetch=MappingFetch(data), **options)


@dataclass(eq=False)
class MappingFetch:
    """Batch fetch over in-memory ``{entity_type: {id: entity}}`` data."""

    data: Mapping[Hashable, Mapping[Hashable, Any]]
    calls: list[tuple[Hashable, frozenset]] = field(default_factory=list)

    def __call__(self, entity_type: Hashable, ids: frozenset) -> dict[Hashable, Any]:
        self.calls.append((entity_type, ids))
        entities = self.data.get(entity_type, {})
        return {key: entities[key] for key in ids if key in entities}
