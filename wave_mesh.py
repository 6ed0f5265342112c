from __future__ import annotations

"""
Procedural wave surface.

The surface is the sum of a low frequency and a high frequency ripple, each
travelling diagonally. Every frame the vertices of one slab at a time are
written straight into the backing storage, so nothing here allocates per
vertex: sine and cosine come from precomputed tables indexed by
PeriodicIterator, and the per-row samples live in a RowCache owned by the
generator.
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from periodic_iterator import PeriodicIterator
from vbo_config import (
    FLOATS_PER_VERTEX,
    HICOEF,
    HIFREQ,
    LOCOEF,
    LOFREQ,
    NORMAL_Z,
    PHASE2_RATE,
    PHASE_LIMIT,
    PHASE_RATE,
    SIN_ARRAY_SIZE,
    STRIP_SIZE,
)

logger = logging.getLogger("vbo.mesh")

TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class SinCosTables:
    """Read-only sine and cosine samples over one full period."""

    sin: np.ndarray
    cos: np.ndarray

    @classmethod
    def build(cls, size: int = SIN_ARRAY_SIZE) -> "SinCosTables":
        steps = np.arange(size, dtype=np.float64) * TWO_PI / size
        sin = np.sin(steps).astype(np.float32)
        cos = np.cos(steps).astype(np.float32)
        sin.flags.writeable = False
        cos.flags.writeable = False
        return cls(sin, cos)

    @property
    def size(self) -> int:
        return len(self.sin)


@dataclass
class WaveIterators:
    """The four phase iterators used for one frame."""

    lo_x: PeriodicIterator
    lo_y: PeriodicIterator
    hi_x: PeriodicIterator
    hi_y: PeriodicIterator


@dataclass
class WaveAnimation:
    """Live animation parameters and the two running phases."""

    hicoef: float = HICOEF
    locoef: float = LOCOEF
    hifreq: float = HIFREQ
    lofreq: float = LOFREQ
    phase_rate: float = PHASE_RATE
    phase2_rate: float = PHASE2_RATE
    phase: float = 0.0
    phase2: float = 0.0

    def advance(self) -> None:
        """Step both phases by their rates, restarting at 0 once past the limit."""
        self.phase += self.phase_rate
        self.phase2 += self.phase2_rate

        if abs(self.phase) > PHASE_LIMIT:
            self.phase = 0.0
        if abs(self.phase2) > PHASE_LIMIT:
            self.phase2 = 0.0

    def iterators(self, tile_size: int, table_size: int = SIN_ARRAY_SIZE) -> WaveIterators:
        """Build this frame's iterators; the Y iterators start in phase with their X twins."""
        lo_x = PeriodicIterator(table_size, TWO_PI, self.phase, (1.0 / tile_size) * self.lofreq * math.pi)
        hi_x = PeriodicIterator(table_size, TWO_PI, self.phase2, (1.0 / tile_size) * self.hifreq * math.pi)
        return WaveIterators(lo_x=lo_x, lo_y=lo_x.copy(), hi_x=hi_x, hi_y=hi_x.copy())


@dataclass
class MeshTopology:
    """Row X positions and strip connectivity for one tile size."""

    tile_size: int
    strip_size: int
    x_positions: np.ndarray
    elements: np.ndarray  # (tile_size - 1, 2 * strip_size) uint32

    @classmethod
    def compute(cls, tile_size: int, strip_size: int = STRIP_SIZE) -> "MeshTopology":
        """Build the position table and one index list per pair of neighbouring rows."""
        x_positions = (np.arange(tile_size, dtype=np.float32) / np.float32(tile_size - 1.0)
                       - np.float32(0.5))

        # list i alternates row i and row i + 1: i*s, (i+1)*s, i*s+1, (i+1)*s+1, ...
        rows = np.arange(tile_size - 1, dtype=np.uint32)[:, None] * strip_size
        columns = np.arange(strip_size, dtype=np.uint32)[None, :]
        elements = np.empty((tile_size - 1, 2 * strip_size), dtype=np.uint32)
        elements[:, 0::2] = rows + columns
        elements[:, 1::2] = rows + strip_size + columns

        logger.debug("Computed topology for tile size %d (%d index lists)", tile_size, len(elements))
        return cls(tile_size, strip_size, x_positions, elements)

    @property
    def num_slabs(self) -> int:
        return self.tile_size // self.strip_size

    @property
    def vertices_per_slab(self) -> int:
        return self.tile_size * self.strip_size


@dataclass
class RowCache:
    """Sine/cosine samples along Y for the rows of one slab."""

    sin_lo: np.ndarray
    cos_lo: np.ndarray
    sin_hi: np.ndarray
    cos_hi: np.ndarray

    @classmethod
    def allocate(cls, strip_size: int = STRIP_SIZE) -> "RowCache":
        return cls(*(np.zeros(strip_size, dtype=np.float32) for _ in range(4)))


@dataclass
class WaveMeshGenerator:
    """Writes interleaved position/normal data for the wave surface, one slab at a time."""

    tables: SinCosTables = field(default_factory=SinCosTables.build)
    strip_size: int = STRIP_SIZE
    row_cache: RowCache = field(init=False)

    def __post_init__(self) -> None:
        self.row_cache = RowCache.allocate(self.strip_size)

    def fill_row_cache(self, iterators: WaveIterators) -> RowCache:
        """Sample Y phases for every row of the slab.

        Rows are visited in reverse. The Y iterators step back once at the
        end so the next slab starts on the last row of this one.
        """
        cache = self.row_cache
        sin, cos = self.tables.sin, self.tables.cos
        lo_y, hi_y = iterators.lo_y, iterators.hi_y
        for j in range(self.strip_size - 1, -1, -1):
            cache.sin_lo[j] = sin[lo_y.get_index()]
            cache.cos_lo[j] = cos[lo_y.get_index()]
            lo_y.incr()
            cache.sin_hi[j] = sin[hi_y.get_index()]
            cache.cos_hi[j] = cos[hi_y.get_index()]
            hi_y.incr()
        lo_y.decr()
        hi_y.decr()
        return cache

    def generate_slab(self, slab: int, vertices: np.ndarray, topology: MeshTopology,
                      animation: WaveAnimation, iterators: WaveIterators) -> int:
        """Fill ``vertices`` with the given slab and return the number of vertices written.

        Vertex ``k * strip_size + m`` holds column ``tile_size - 1 - k`` and
        row ``strip_size - 1 - m`` of the slab. Slabs share their boundary
        row, hence the ``strip_size - 1`` stride between them.
        """
        tile_size = topology.tile_size
        strip = self.strip_size
        count = tile_size * strip

        cache = self.fill_row_cache(iterators)

        lo_index = iterators.lo_x.take(tile_size)
        hi_index = iterators.hi_x.take(tile_size)
        iterators.lo_x.reset()
        iterators.hi_x.reset()

        sin, cos = self.tables.sin, self.tables.cos
        locoef = np.float32(animation.locoef)
        hicoef = np.float32(animation.hicoef)

        j_offset = (strip - 1) * slab
        x = topology.x_positions[::-1]
        y = topology.x_positions[j_offset:j_offset + strip][::-1]

        column_z = (locoef * sin[lo_index] + hicoef * sin[hi_index])[:, None]
        row_z = (locoef * cache.sin_lo + hicoef * cache.sin_hi)[::-1][None, :]
        nx = locoef * -cos[lo_index] + hicoef * -cos[hi_index]
        ny = (locoef * -cache.cos_lo + hicoef * -cache.cos_hi)[::-1]

        out = vertices[:count * FLOATS_PER_VERTEX].reshape(tile_size, strip, FLOATS_PER_VERTEX)
        out[:, :, 0] = x[:, None]
        out[:, :, 1] = y[None, :]
        out[:, :, 2] = column_z + row_z
        out[:, :, 3] = nx[:, None]
        out[:, :, 4] = ny[None, :]
        out[:, :, 5] = NORMAL_Z
        return count
