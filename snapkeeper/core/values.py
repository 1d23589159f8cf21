"""Value kinds and the deep-equal comparator used by raw (non-serialized) snapshots."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum
import math
import numbers
import types
from typing import Any


class _Undefined:
    """Marker for "no value", kept distinct from ``None``."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class AnyFunction:
    """Placeholder written into inline snapshots for function values.

    Any callable compares equal to it; there is no way to compare bodies.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        raise TypeError("AnyFunction is a snapshot placeholder and cannot be called")

    def __repr__(self) -> str:
        return "expect.any_function()"


class ValueKind(str, Enum):
    """Discriminator for every value a snapshot can hold."""

    UNDEFINED = "undefined"
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    SYMBOL = "symbol"
    FUNCTION = "function"
    SEQUENCE = "sequence"
    RECORD = "record"
    OTHER = "other"


def kind_of(value: Any) -> ValueKind:
    """Classify ``value``; every Python object maps to exactly one kind."""
    if value is UNDEFINED:
        return ValueKind.UNDEFINED
    if value is None:
        return ValueKind.NULL
    # Enum before bool/int/str: IntEnum and StrEnum members are symbols here.
    if isinstance(value, Enum):
        return ValueKind.SYMBOL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, numbers.Number):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.RECORD
    if isinstance(value, (list, tuple, set, frozenset)):
        return ValueKind.SEQUENCE
    if callable(value):
        return ValueKind.FUNCTION
    if dataclasses.is_dataclass(value):
        return ValueKind.RECORD
    if isinstance(value, Iterable):
        return ValueKind.SEQUENCE
    if hasattr(value, "__dict__"):
        return ValueKind.RECORD
    # Slotted objects without their own repr would serialize with an address.
    if type(value).__repr__ is object.__repr__ and public_slot_names(type(value)):
        return ValueKind.RECORD
    return ValueKind.OTHER


def public_slot_names(klass: type) -> list[str]:
    """Public ``__slots__`` names declared along ``klass``'s MRO."""
    names: list[str] = []
    for base in reversed(klass.__mro__[:-1]):
        slots = vars(base).get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if not name.startswith("_") and name not in names:
                names.append(name)
    return names


def is_nan(value: Any) -> bool:
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, Decimal):
        return value.is_nan()
    return False


def sequence_items(value: Any) -> list[Any]:
    """Items of a SEQUENCE value; sets are ordered by ``repr`` for determinism."""
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    return list(value)


def record_items(value: Any) -> list[tuple[Any, Any]]:
    """Key/value pairs of a RECORD value.

    Objects contribute public instance attributes, set public slots, and
    public non-callable attributes inherited from their classes.
    """
    if isinstance(value, Mapping):
        return list(value.items())
    if dataclasses.is_dataclass(value):
        return [(field.name, getattr(value, field.name)) for field in dataclasses.fields(value)]
    items: dict[str, Any] = {}
    for klass in reversed(type(value).__mro__[:-1]):
        for name, attr in vars(klass).items():
            if name.startswith("_") or callable(attr):
                continue
            if isinstance(attr, (property, staticmethod, classmethod, types.MemberDescriptorType)):
                continue
            items[name] = attr
    for name in public_slot_names(type(value)):
        if hasattr(value, name):
            items[name] = getattr(value, name)
    for name, attr in getattr(value, "__dict__", {}).items():
        if not name.startswith("_"):
            items[name] = attr
    return list(items.items())


def keyed_items(value: Any) -> list[tuple[Any, Any]]:
    """Uniform key/value view over SEQUENCE (index keys) and RECORD values."""
    if kind_of(value) is ValueKind.SEQUENCE:
        return list(enumerate(sequence_items(value)))
    return record_items(value)


def compare(received: Any, expected: Any) -> bool:
    """Deep-compare a received value against an expected snapshot value.

    Any two functions are equal. Records and sequences are equal when every
    key of ``received`` matches the same key of ``expected`` and both sides
    have the same number of keys; the key names of ``expected`` are not
    checked beyond that count. Self-referential values recurse until
    ``RecursionError``.
    """
    kind = kind_of(received)
    if kind is not kind_of(expected):
        return False

    if kind is ValueKind.FUNCTION:
        return True

    if kind is ValueKind.NUMBER and is_nan(received) and is_nan(expected):
        return True

    if kind is ValueKind.SYMBOL:
        return str(received) == str(expected)

    if kind in (ValueKind.SEQUENCE, ValueKind.RECORD):
        received_items = keyed_items(received)
        expected_items = dict(keyed_items(expected))
        for key, item in received_items:
            if not compare(item, expected_items.get(key, UNDEFINED)):
                return False
        return len(received_items) == len(expected_items)

    return received == expected
