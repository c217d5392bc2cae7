"""Tagged per-field patch values.

A patch field is one of ``UNSET`` (leave the stored value alone), ``Clear()``
(reset it to empty) or ``Replace(value)``. Collection-valued fields therefore
never depend on ``None`` versus ``[]`` to mean different things.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")


class _Unset:
    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@dataclass(frozen=True, slots=True)
class Clear:
    """Reset the field to its empty value."""


@dataclass(frozen=True, slots=True)
class Replace(Generic[T]):
    """Overwrite the field with ``value``."""

    value: T


PatchField = Union[_Unset, Clear, Replace[T]]


def is_unset(field: Any) -> bool:
    return field is UNSET


def resolve(field: PatchField[T], current: T, *, empty: Callable[[], T]) -> T:
    """Return the value a field should hold after applying ``field``."""

    if field is UNSET:
        return current
    if isinstance(field, Clear):
        return empty()
    if isinstance(field, Replace):
        return field.value
    raise TypeError(f"Unsupported patch field: {field!r}")


__all__ = ["Clear", "PatchField", "Replace", "UNSET", "is_unset", "resolve"]
