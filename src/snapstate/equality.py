"""Structural equality — the gate that decides whether a value really changed.

Values are compared per variant:

- mappings: same key set, every value equal
- sequences (list/tuple, never str/bytes): same length, pairwise equal
- sets: same members
- dataclass instances: same class, every field equal
- everything else: ``==``

Values of different variants are never equal. NaN-like scalars (anything that
is not equal to itself) compare equal to each other, otherwise a NaN in a
payload would look like a change on every set().

Inputs are assumed acyclic.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Set
from typing import Any

_SEQUENCES = (list, tuple)


def is_nan(value: Any) -> bool:
    """True for scalars that are not equal to themselves (float/Decimal NaN)."""
    if isinstance(value, (Mapping, Set, list, tuple, str, bytes)):
        return False
    return bool(value != value)


def _is_dataclass_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def equal(a: Any, b: Any) -> bool:
    """Deep structural equality."""
    if a is b:
        return True

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping) or len(a) != len(b):
            return False
        for key, value in a.items():
            if key not in b or not equal(value, b[key]):
                return False
        return True

    if isinstance(a, _SEQUENCES):
        if not isinstance(b, _SEQUENCES) or len(a) != len(b):
            return False
        return all(equal(x, y) for x, y in zip(a, b))

    if isinstance(a, Set):
        # Members are hashable, so hash equality is the structural rule here.
        return isinstance(b, Set) and a == b

    if _is_dataclass_instance(a):
        if type(a) is not type(b):
            return False
        return all(
            equal(getattr(a, f.name), getattr(b, f.name))
            for f in dataclasses.fields(a)
            if f.compare
        )

    if isinstance(b, (Mapping, Set, list, tuple)) or _is_dataclass_instance(b):
        return False

    if is_nan(a) and is_nan(b):
        return True
    return bool(a == b)
