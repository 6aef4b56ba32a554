"""Deep-freezing of published values.

Everything a Store or DerivedView emits goes through freeze() first, so no
holder of an emitted value can change what other holders see:

- mappings become FrozenDict
- lists and tuples become tuples (namedtuples keep their type)
- sets become frozensets
- frozen dataclasses are rebuilt with frozen fields
- immutable scalars pass through

Anything else raises FreezeError.
"""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import enum
import fractions
from collections.abc import Iterator, Mapping, Set
from typing import Any, TypeVar

from snapstate.errors import FreezeError

KT = TypeVar("KT")
VT = TypeVar("VT")

_SCALARS = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    decimal.Decimal,
    fractions.Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.timezone,
    enum.Enum,
    range,
)


class FrozenDict(Mapping[KT, VT]):
    """Read-only, hashable mapping. Values are deep-frozen on construction."""

    __slots__ = ("_data", "_hash")

    def __init__(self, data: Mapping[KT, VT] | None = None, **kwargs: VT) -> None:
        items = dict(data) if data else {}
        items.update(kwargs)
        self._data = {key: freeze(value) for key, value in items.items()}
        self._hash: int | None = None

    def __getitem__(self, key: KT) -> VT:
        return self._data[key]

    def __iter__(self) -> Iterator[KT]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._data.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"


def freeze(value: Any) -> Any:
    """Return a deep-frozen equivalent of value. Already-frozen parts are reused."""
    if isinstance(value, _SCALARS) or isinstance(value, FrozenDict):
        return value

    if isinstance(value, Mapping):
        return FrozenDict(value)

    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return type(value)(*(freeze(item) for item in value))

    if isinstance(value, (list, tuple)):
        items = tuple(freeze(item) for item in value)
        if isinstance(value, tuple) and all(a is b for a, b in zip(items, value)):
            return value
        return items

    if isinstance(value, Set):
        return value if isinstance(value, frozenset) else frozenset(value)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if not value.__dataclass_params__.frozen:
            raise FreezeError(
                f"cannot freeze mutable dataclass {type(value).__name__}; declare it frozen=True"
            )
        changes = {
            f.name: freeze(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.init
        }
        return dataclasses.replace(value, **changes)

    raise FreezeError(f"cannot freeze value of type {type(value).__name__}")


def thaw(value: Any) -> Any:
    """Plain dict/list copy of a frozen value, e.g. for JSON serialization."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple) and not hasattr(value, "_fields"):
        return [thaw(item) for item in value]
    if isinstance(value, list):
        return [thaw(item) for item in value]
    return value
