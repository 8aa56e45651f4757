from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Union


@dataclass(frozen=True)
class Success:
    value: Any

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: BaseException

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        # the error is shared by every read; start each raise with a clean traceback
        raise self.error.with_traceback(None)


Result = Union[Success, Failure]


class GetPolicy(str, Enum):
    """How ``get`` reports a key whose fetch failed."""

    RAISE = "raise"
    RETURN_NONE = "return_none"
    RESULTS = "results"


class _NotLoaded:
    _instance: "_NotLoaded | None" = None

    def __new__(cls) -> "_NotLoaded":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_LOADED"

    def __bool__(self) -> bool:
        return False


NOT_LOADED = _NotLoaded()


@dataclass(frozen=True)
class Preloaded:
    """Marks association data on an owner as already resolved.

    Only values wrapped in ``Preloaded`` are trusted to seed a cache; a bare
    attribute value is always fetched again.
    """

    value: Any


def freeze_params(params: Mapping[str, Any] | None) -> tuple[tuple[str, Hashable], ...]:
    if not params:
        return ()
    frozen: list[tuple[str, Hashable]] = []
    for key, value in sorted(params.items(), key=lambda item: repr(item[0])):
        frozen.append((key, _freeze(value)))
    return tuple(frozen)


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return freeze_params(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class Association:
    owner_type: str
    name: str
    params: tuple[tuple[str, Hashable], ...] = field(default=())
    raw_params: Mapping[str, Any] | None = field(default=None, compare=False, repr=False)

    @property
    def params_dict(self) -> dict[str, Any]:
        """Filter parameters as the caller passed them."""
        if self.raw_params is not None:
            return dict(self.raw_params)
        return dict(self.params)
