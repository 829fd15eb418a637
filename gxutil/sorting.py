"""In-place sorting of integer lists with fixed-width value ranges."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

__all__ = ["Prioritizer", "sort_int64", "sort_int32", "sort_uint32"]


@runtime_checkable
class Prioritizer(Protocol):
    """Anything that carries an integer priority."""

    @property
    def priority(self) -> int:
        """The priority of this object."""
        ...


def _sort_in_range(values: list[int], low: int, high: int, kind: str) -> None:
    for value in values:
        if not low <= value <= high:
            raise OverflowError(f"{value} is out of range for {kind}")
    values.sort()


def sort_int64(values: list[int]) -> None:
    """Sort a list of signed 64-bit integers in place."""
    _sort_in_range(values, -(2**63), 2**63 - 1, "int64")


def sort_int32(values: list[int]) -> None:
    """Sort a list of signed 32-bit integers in place."""
    _sort_in_range(values, -(2**31), 2**31 - 1, "int32")


def sort_uint32(values: list[int]) -> None:
    """Sort a list of unsigned 32-bit integers in place."""
    _sort_in_range(values, 0, 2**32 - 1, "uint32")