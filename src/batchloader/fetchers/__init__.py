"""Ready-made batch fetch functions."""

from __future__ import annotations

__all__ = ["HttpBatchFetch", "match_payload"]

from batchloader.fetchers.http import HttpBatchFetch, match_payload
