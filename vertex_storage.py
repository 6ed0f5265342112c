from __future__ import annotations

"""
Backing storage for the wave vertices.

A store is one flat float array. SystemStorage keeps it in ordinary process
memory and hands it to the driver as client-side arrays; the buffer object
store in vertex_buffer_object maps a GPU data store instead. Either store is
cut into equal slabs by SlabRotation.

A store bumps its ``generation`` whenever the memory behind ``floats``
changes (a buffer object may map to a different address from one frame to
the next); SlabRotation compares generations instead of addresses to know
when its slab views are stale.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from vbo_config import (
    BUFFER_LENGTH,
    FLOATS_PER_VERTEX,
    MAX_TILE_SIZE,
    NUM_BUFFERS,
    SIZEOF_FLOAT,
    STRIP_SIZE,
)

logger = logging.getLogger("vbo.storage")


def required_length(num_buffers: int = NUM_BUFFERS,
                    tile_size: int = MAX_TILE_SIZE,
                    strip_size: int = STRIP_SIZE) -> int:
    """Smallest float count whose slabs can each hold a full slab of ``tile_size``."""
    return num_buffers * tile_size * strip_size * FLOATS_PER_VERTEX


def check_length(length: int, num_buffers: int = NUM_BUFFERS) -> None:
    if length < required_length(num_buffers):
        raise ValueError(
            f"buffer length {length} cannot hold {num_buffers} slabs of "
            f"{MAX_TILE_SIZE}x{STRIP_SIZE} vertices"
        )


class VertexStorage:
    """Flat float32 array that slab views are cut from."""

    name = "storage"
    uses_buffer_object = False

    def __init__(self, length: int) -> None:
        self.length = length
        self.generation = 0
        self.floats: Optional[np.ndarray] = None

    def acquire(self) -> np.ndarray:
        """Make ``floats`` writable for the current slab and return it."""
        raise NotImplementedError

    def release(self) -> None:
        """Hand the written data back to the driver."""

    def _replace(self, floats: np.ndarray) -> None:
        self.floats = floats
        self.generation += 1


class SystemStorage(VertexStorage):
    """Vertex data in process memory, uploaded by the driver at draw time."""

    name = "system memory"

    def __init__(self, length: int = BUFFER_LENGTH, num_buffers: int = NUM_BUFFERS) -> None:
        check_length(length, num_buffers)
        super().__init__(length)
        self._replace(np.zeros(length, dtype=np.float32))

    def acquire(self) -> np.ndarray:
        return self.floats


@dataclass
class SlabBuffer:
    """One partition of the backing storage."""

    vertices: np.ndarray
    normals: np.ndarray
    vertex_offset: int  # bytes from the start of the store
    normal_offset: int


@dataclass
class SlabRotation:
    """Slab views over the active storage, reused round robin by slab index."""

    num_buffers: int = NUM_BUFFERS
    buffers: List[SlabBuffer] = field(default_factory=list)
    _storage: Optional[VertexStorage] = field(default=None, repr=False)
    _generation: int = field(default=-1, repr=False)

    def validate(self, storage: VertexStorage) -> bool:
        """Re-slice when the store or its generation changed; True if it did."""
        if storage is self._storage and storage.generation == self._generation:
            return False
        self._setup(storage)
        return True

    def _setup(self, storage: VertexStorage) -> None:
        floats = storage.floats
        slice_size = len(floats) // self.num_buffers
        self.buffers = []
        for i in range(self.num_buffers):
            start = i * slice_size
            vertices = floats[start:start + slice_size]
            self.buffers.append(SlabBuffer(
                vertices=vertices,
                normals=vertices[3:],
                vertex_offset=start * SIZEOF_FLOAT,
                normal_offset=(start + 3) * SIZEOF_FLOAT,
            ))
        self._storage = storage
        self._generation = storage.generation
        logger.debug("Sliced %s into %d buffers of %d floats (generation %d)",
                     storage.name, self.num_buffers, slice_size, storage.generation)

    def buffer_for(self, slab: int) -> SlabBuffer:
        return self.buffers[slab % self.num_buffers]
