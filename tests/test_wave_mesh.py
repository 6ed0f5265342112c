import math

import numpy as np
import pytest

from vbo_config import FLOATS_PER_VERTEX, NORMAL_Z, PHASE_LIMIT, SIN_ARRAY_SIZE, STRIP_SIZE
from wave_mesh import MeshTopology, SinCosTables, WaveAnimation, WaveMeshGenerator


def reference_slab(slab, topology, animation, iterators, tables):
    """Straight per-vertex loop over the same iterators, for comparison."""
    strip = topology.strip_size
    sin, cos = tables.sin, tables.cos
    ysinlo = [0.0] * strip
    ycoslo = [0.0] * strip
    ysinhi = [0.0] * strip
    ycoshi = [0.0] * strip
    lo_x, lo_y, hi_x, hi_y = iterators.lo_x, iterators.lo_y, iterators.hi_x, iterators.hi_y

    for jj in range(strip - 1, -1, -1):
        ysinlo[jj] = sin[lo_y.get_index()]
        ycoslo[jj] = cos[lo_y.get_index()]
        lo_y.incr()
        ysinhi[jj] = sin[hi_y.get_index()]
        ycoshi[jj] = cos[hi_y.get_index()]
        hi_y.incr()
    lo_y.decr()
    hi_y.decr()

    out = []
    j_offset = (strip - 1) * slab
    for i in range(topology.tile_size - 1, -1, -1):
        x = topology.x_positions[i]
        lo, hi = lo_x.get_index(), hi_x.get_index()
        nx = animation.locoef * -cos[lo] + animation.hicoef * -cos[hi]
        for j in range(strip - 1, -1, -1):
            y = topology.x_positions[j + j_offset]
            z = (animation.locoef * (sin[lo] + ysinlo[j]) +
                 animation.hicoef * (sin[hi] + ysinhi[j]))
            ny = animation.locoef * -ycoslo[j] + animation.hicoef * -ycoshi[j]
            out.extend([x, y, z, nx, ny, NORMAL_Z])
        lo_x.incr()
        hi_x.incr()
    lo_x.reset()
    hi_x.reset()
    return np.array(out, dtype=np.float32)


def generate_frame(generator, topology, animation):
    """All slabs of one frame, in drawing order, each into its own array."""
    iterators = animation.iterators(topology.tile_size)
    slabs = {}
    for slab in range(topology.num_slabs - 1, -1, -1):
        vertices = np.zeros(topology.vertices_per_slab * FLOATS_PER_VERTEX, dtype=np.float32)
        generator.generate_slab(slab, vertices, topology, animation, iterators)
        slabs[slab] = vertices
    return slabs


def test_tables_cover_one_period():
    tables = SinCosTables.build()
    assert tables.size == SIN_ARRAY_SIZE
    assert tables.sin[0] == 0.0
    assert tables.cos[0] == 1.0
    assert tables.sin[SIN_ARRAY_SIZE // 4] == pytest.approx(1.0)
    assert not tables.sin.flags.writeable


def test_topology_single_slab_connects_row_zero_to_row_one():
    topology = MeshTopology.compute(48, 48)

    assert topology.num_slabs == 1
    assert topology.elements.shape == (47, 96)
    first = topology.elements[0]
    np.testing.assert_array_equal(first[0::2], np.arange(48))
    np.testing.assert_array_equal(first[1::2], np.arange(48, 96))
    assert list(first[:4]) == [0, 48, 1, 49]
    assert topology.elements.max() == 48 * 48 - 1


def test_topology_x_positions_span_unit_interval():
    topology = MeshTopology.compute(96)
    assert topology.x_positions.dtype == np.float32
    assert len(topology.x_positions) == 96
    assert topology.x_positions[0] == pytest.approx(-0.5)
    assert topology.x_positions[-1] == pytest.approx(0.5)
    assert np.all(np.diff(topology.x_positions) > 0)


def test_animation_advances_and_wraps():
    animation = WaveAnimation()
    animation.advance()
    assert animation.phase == pytest.approx(0.02)
    assert animation.phase2 == pytest.approx(-0.12)

    animation.phase = PHASE_LIMIT - 0.01
    animation.phase2 = -PHASE_LIMIT + 0.05
    animation.advance()
    assert animation.phase == 0.0
    assert animation.phase2 == 0.0


def test_frame_iterators_pair_x_and_y():
    animation = WaveAnimation(phase=1.3, phase2=-0.4)
    iterators = animation.iterators(96)

    assert iterators.lo_y.get_index() == iterators.lo_x.get_index()
    assert iterators.hi_y.get_index() == iterators.hi_x.get_index()
    iterators.lo_y.incr()
    assert iterators.lo_y.index != iterators.lo_x.index

    delta = (1.0 / 96) * animation.lofreq * math.pi
    expected = round(SIN_ARRAY_SIZE * (delta / (2 * math.pi)) * 65536)
    assert iterators.lo_x.increment == expected


def test_slabs_match_per_vertex_reference():
    topology = MeshTopology.compute(2 * STRIP_SIZE)
    animation = WaveAnimation(phase=0.7, phase2=-2.1)
    generator = WaveMeshGenerator()

    fast = animation.iterators(topology.tile_size)
    slow = animation.iterators(topology.tile_size)
    for slab in range(topology.num_slabs - 1, -1, -1):
        vertices = np.zeros(topology.vertices_per_slab * FLOATS_PER_VERTEX, dtype=np.float32)
        written = generator.generate_slab(slab, vertices, topology, animation, fast)
        expected = reference_slab(slab, topology, animation, slow, generator.tables)

        assert written == topology.vertices_per_slab
        np.testing.assert_allclose(vertices, expected, rtol=0, atol=1e-6)

    for name in ("lo_x", "lo_y", "hi_x", "hi_y"):
        assert getattr(fast, name).index == getattr(slow, name).index


def test_slab_leaves_rest_of_buffer_untouched():
    topology = MeshTopology.compute(STRIP_SIZE)
    generator = WaveMeshGenerator()
    count = topology.vertices_per_slab * FLOATS_PER_VERTEX
    vertices = np.full(count + 12, 7.0, dtype=np.float32)

    generator.generate_slab(0, vertices, topology, WaveAnimation(), WaveAnimation().iterators(STRIP_SIZE))

    assert np.all(vertices[count:] == 7.0)
    layout = vertices[:count].reshape(-1, FLOATS_PER_VERTEX)
    assert np.all(layout[:, 5] == np.float32(NORMAL_Z))
    # first vertex is the last column and the last row of the slab
    assert layout[0, 0] == pytest.approx(0.5)
    assert layout[0, 1] == pytest.approx(topology.x_positions[STRIP_SIZE - 1])


def test_neighbouring_slabs_share_boundary_row():
    topology = MeshTopology.compute(2 * STRIP_SIZE)
    slabs = generate_frame(WaveMeshGenerator(), topology, WaveAnimation(phase=0.5, phase2=1.0))

    upper = slabs[1].reshape(topology.tile_size, STRIP_SIZE, FLOATS_PER_VERTEX)
    lower = slabs[0].reshape(topology.tile_size, STRIP_SIZE, FLOATS_PER_VERTEX)
    # last row written for slab 1 is its first row j = 0, which is row j = strip - 1 of slab 0
    np.testing.assert_allclose(upper[:, -1, :], lower[:, 0, :], atol=1e-6)


def test_consecutive_frames_change_smoothly():
    topology = MeshTopology.compute(3 * STRIP_SIZE)
    generator = WaveMeshGenerator()
    animation = WaveAnimation()

    before = generate_frame(generator, topology, animation)
    animation.advance()
    after = generate_frame(generator, topology, animation)

    step = 2 * math.pi / SIN_ARRAY_SIZE
    bound = (2 * animation.locoef * (abs(animation.phase_rate) + 2 * step) +
             2 * animation.hicoef * (abs(animation.phase2_rate) + 2 * step))

    largest = 0.0
    for slab in before:
        z0 = before[slab].reshape(-1, FLOATS_PER_VERTEX)[:, 2]
        z1 = after[slab].reshape(-1, FLOATS_PER_VERTEX)[:, 2]
        largest = max(largest, float(np.max(np.abs(z1 - z0))))

    assert 0.0 < largest <= bound + 1e-6
