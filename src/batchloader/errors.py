from __future__ import annotations

from typing import Any, Hashable


class LoaderError(RuntimeError):
    pass


class ConfigError(ValueError):
    pass


class NotLoadedError(LoaderError, KeyError):
    def __init__(self, source: str | None, grouping_key: Hashable, item_key: Hashable) -> None:
        self.source = source
        self.grouping_key = grouping_key
        self.item_key = item_key
        where = f" in source {source!r}" if source else ""
        super().__init__(
            f"Key {item_key!r} of {grouping_key!r}{where} has not been loaded; "
            "call load() and run() before get()"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownSourceError(LoaderError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Source not registered: {name}")

    def __str__(self) -> str:
        return str(self.args[0])


class BatchFetchError(LoaderError):
    def __init__(self, grouping_key: Hashable, message: str, source: str | None = None) -> None:
        self.grouping_key = grouping_key
        self.source = source
        super().__init__(message)

    @classmethod
    def from_exception(
        cls,
        grouping_key: Hashable,
        exc: BaseException,
        source: str | None = None,
    ) -> "BatchFetchError":
        error = cls(
            grouping_key,
            f"Batch fetch for {grouping_key!r} failed: {exc!r}",
            source=source,
        )
        error.__cause__ = exc
        return error


class BatchTimeoutError(BatchFetchError):
    def __init__(self, grouping_key: Hashable, timeout: float, source: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            grouping_key,
            f"Batch fetch for {grouping_key!r} did not finish within {timeout}s",
            source=source,
        )


class MissingKeyError(LoaderError):
    def __init__(self, grouping_key: Hashable, item_key: Any) -> None:
        self.grouping_key = grouping_key
        self.item_key = item_key
        super().__init__(f"Batch fetch for {grouping_key!r} returned no value for {item_key!r}")
