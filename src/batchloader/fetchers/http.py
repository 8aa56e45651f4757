from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping

import httpx


@dataclass
class HttpBatchFetch:
    """Batch fetch against a JSON endpoint, one GET per grouping key.

    Requests ``{base_url}/{grouping_key}?ids=a,b,c``. The response may be an
    object keyed by id or a list of entities carrying ``id_field``; response
    keys are matched to the requested keys by their string form.
    """

    base_url: str
    timeout: float = 20.0
    id_param: str = "ids"
    id_field: str = "id"
    headers: Mapping[str, str] = field(default_factory=dict)
    transport: httpx.BaseTransport | None = None

    def endpoint(self, grouping_key: Hashable) -> str:
        return f"{self.base_url.rstrip('/')}/{grouping_key}"

    def __call__(self, grouping_key: Hashable, item_keys: frozenset) -> dict[Hashable, Any]:
        ids = ",".join(sorted(str(key) for key in item_keys))
        with httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": "batchloader/0.1", **self.headers},
            transport=self.transport,
        ) as client:
            response = client.get(self.endpoint(grouping_key), params={self.id_param: ids})
            response.raise_for_status()
            payload = response.json()
        return match_payload(payload, item_keys, self.id_field)


def match_payload(
    payload: Any,
    item_keys: Iterable[Hashable],
    id_field: str = "id",
) -> dict[Hashable, Any]:
    requested = {str(key): key for key in item_keys}
    if isinstance(payload, dict):
        entries = payload.items()
    elif isinstance(payload, list):
        entries = [
            (entity.get(id_field), entity) for entity in payload if isinstance(entity, dict)
        ]
    else:
        raise TypeError(f"Unexpected batch response type: {type(payload).__name__}")

    matched: dict[Hashable, Any] = {}
    for raw_key, entity in entries:
        if str(raw_key) in requested:
            matched[requested[str(raw_key)]] = entity
    return matched
