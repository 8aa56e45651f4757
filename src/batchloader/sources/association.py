from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping

from batchloader.models import NOT_LOADED, Association, Preloaded, freeze_params
from batchloader.sources.base import BatchSource

AssociationFetch = Callable[[Association, frozenset, Any], Mapping[Hashable, Any]]
QueryHook = Callable[[str, dict[str, Any]], Any]


def owner_id(owner: Any) -> Hashable:
    value = _attribute(owner, "id")
    if value is NOT_LOADED:
        raise ValueError(f"Owner {owner!r} has no 'id'; pass key_fn to AssociationSource")
    return value


def owner_type_name(owner: Any) -> str:
    return type(owner).__name__


@dataclass(frozen=True)
class AssociationSource(BatchSource):
    """Related records per owner, e.g. a user's posts or a post's author.

    Loads are addressed as ``(name, owner)`` or ``((name, params), owner)``.
    Owners are grouped by ``Association(owner_type, name, params)`` and keyed
    by ``key_fn(owner)``. For each group the source calls
    ``fetch(association, owner_keys, query)``, where ``query`` is whatever the
    ``query`` hook built for that association (``None`` without a hook), and
    expects ``owner_key -> related`` back.

    An owner whose attribute already holds ``Preloaded(value)`` seeds the
    cache with ``value`` instead of being queued. Any other attribute value is
    ignored, including ``None``, empty lists and ``NOT_LOADED``.
    """

    query: QueryHook | None = None
    key_fn: Callable[[Any], Hashable] = owner_id
    type_fn: Callable[[Any], str] = owner_type_name

    def association(self, grouping_key: Hashable, owner: Any) -> Association:
        name, params = _split_key(grouping_key)
        return Association(
            self.type_fn(owner),
            name,
            freeze_params(params),
            raw_params=dict(params) if params else None,
        )

    def cache_key(self, grouping_key: Hashable, item: Any) -> tuple[Hashable, Hashable]:
        return self.association(grouping_key, item), self.key_fn(item)

    def embedded(self, grouping_key: Hashable, item: Any) -> Any:
        name, params = _split_key(grouping_key)
        if params:
            return NOT_LOADED
        value = _attribute(item, name)
        if isinstance(value, Preloaded):
            return value.value
        return NOT_LOADED

    def prepare_value(self, value: Any) -> Any:
        if isinstance(value, Preloaded):
            return value.value
        return value

    def call_fetch(self, grouping_key: Hashable, item_keys: frozenset) -> Mapping[Hashable, Any]:
        association: Association = grouping_key  # type: ignore[assignment]
        query = None
        if self.query is not None:
            query = self.query(association.name, association.params_dict)
        return self.fetch(association, item_keys, query)


def _split_key(grouping_key: Hashable) -> tuple[str, Mapping[str, Any] | None]:
    if isinstance(grouping_key, tuple) and len(grouping_key) == 2:
        name, params = grouping_key
        if params is None or isinstance(params, Mapping):
            return str(name), params
    if isinstance(grouping_key, str):
        return grouping_key, None
    raise TypeError(
        f"Association key must be a name or (name, params) pair, got {grouping_key!r}"
    )


def _attribute(owner: Any, name: str) -> Any:
    if isinstance(owner, Mapping):
        return owner.get(name, NOT_LOADED)
    return getattr(owner, name, NOT_LOADED)
