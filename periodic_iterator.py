from __future__ import annotations

"""
Fixed-point phase iterator over a periodic lookup table.

A phase in [0, period) maps onto an index in [0, table_size). The index is
kept as an integer with 16 fractional bits so that stepping it thousands of
times per frame never accumulates floating point drift, and wrapping is a
single mask instead of a modulo.
"""

import numpy as np

FRACTION_BITS = 16
FIXED_ONE = 1 << FRACTION_BITS

# Table sizes are expected to stay reasonably small
MAX_TABLE_BIT = 20


class PeriodicIterator:
    """Cyclic fixed-point index into a power-of-two sized table."""

    __slots__ = ("mask", "increment", "init_offset", "index")

    def __init__(self, table_size: int, period: float, initial_offset: float, delta: float) -> None:
        # round() sends exact .5 ties to the even neighbour
        table_delta = table_size * (delta / period)  # table steps per increment
        self.increment: int = int(round(table_delta * FIXED_ONE))

        offset = table_size * (initial_offset / period)  # initial table position
        self.init_offset: int = int(round(offset * FIXED_ONE))

        # Only the highest set bit is used, so a non power-of-two size
        # silently wraps at the power of two below it.
        self.mask: int = 0
        for bit in range(MAX_TABLE_BIT, -1, -1):
            if table_size & (1 << bit):
                self.mask = (1 << bit) - 1
                break

        self.index: int = self.init_offset

    def copy(self) -> "PeriodicIterator":
        """Return an iterator with the same cadence and position that advances independently."""
        other = PeriodicIterator.__new__(PeriodicIterator)
        other.mask = self.mask
        other.increment = self.increment
        other.init_offset = self.init_offset
        other.index = self.index
        return other

    __copy__ = copy

    def get_index(self) -> int:
        return (self.index >> FRACTION_BITS) & self.mask

    def incr(self) -> None:
        self.index += self.increment

    def decr(self) -> None:
        self.index -= self.increment

    def reset(self) -> None:
        self.index = self.init_offset

    def take(self, count: int) -> np.ndarray:
        """Return the next ``count`` indices and advance past them.

        Equivalent to ``count`` rounds of ``get_index()`` followed by
        ``incr()``, computed in one pass.
        """
        steps = np.arange(count, dtype=np.int64) * self.increment
        indices = ((self.index + steps) >> FRACTION_BITS) & self.mask
        self.index += count * self.increment
        return indices

    def __repr__(self) -> str:
        return (
            f"PeriodicIterator(index={self.get_index()}, mask={self.mask:#x}, "
            f"increment={self.increment}, init_offset={self.init_offset})"
        )
