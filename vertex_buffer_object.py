from __future__ import annotations

"""
Animated wave surface drawn from a mapped Vertex Buffer Object.

Every frame the whole surface is regenerated on the CPU, one slab at a time,
and written either straight into the mapped data store of a buffer object or
into ordinary process memory that the driver copies at draw time. Switching
between the two ('v') shows how much the copy costs.

Rendering uses the fixed function pipeline in a compatibility context:
- client vertex/normal arrays sourced from the buffer object or from memory
- one glDrawElements call per pair of neighbouring rows
- light 0 as an infinite light or a local viewer light
"""

import argparse
import ctypes
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
from OpenGL import GL as gl  # GL API (functions/constants)
from OpenGL import extensions
import glfw

from controls import ESCAPE, Controls, Primitive, clamp_tile_size
from utilities import BufferUtils, FrameProfiler, MatrixUtils, SystemUtils
from vbo_config import (
    BUFFER_LENGTH,
    FAR_PLANE,
    FOV,
    INFINITE_LIGHT_POSITION,
    LOCAL_LIGHT_POSITION,
    MATERIAL_AMBIENT,
    MATERIAL_DIFFUSE,
    MATERIAL_SHININESS,
    MATERIAL_SPECULAR,
    MODELVIEW_MATRIX,
    NEAR_PLANE,
    NUM_BUFFERS,
    SIZEOF_FLOAT,
    VERTEX_STRIDE,
    WindowHeight,
    WindowTitle,
    WindowWidth,
)
from vertex_storage import SlabRotation, SystemStorage, VertexStorage, check_length
from wave_mesh import MeshTopology, WaveMeshGenerator

VBO_EXTENSION = "GL_ARB_vertex_buffer_object"

GL_PRIMITIVES = {
    Primitive.QUAD_STRIP: gl.GL_QUAD_STRIP,
    Primitive.LINE_STRIP: gl.GL_LINE_STRIP,
    Primitive.POINTS: gl.GL_POINTS,
}


class MappedStorage(VertexStorage):
    """Data store of a dynamic buffer object, mapped write-only for each slab."""

    name = "buffer object"
    uses_buffer_object = True

    def __init__(self, buffer_object: int, length: int = BUFFER_LENGTH) -> None:
        super().__init__(length)
        self.buffer_object = buffer_object
        self._address: Optional[int] = None

    @classmethod
    def allocate(cls, length: int = BUFFER_LENGTH, num_buffers: int = NUM_BUFFERS) -> "MappedStorage":
        """Create the buffer object, size its data store and map it once."""
        logger = logging.getLogger("vbo.storage")
        check_length(length, num_buffers)
        storage = cls(int(gl.glGenBuffers(1)), length)

        gl.glBindBuffer(gl.GL_ARRAY_BUFFER, storage.buffer_object)
        gl.glBufferData(gl.GL_ARRAY_BUFFER, length * SIZEOF_FLOAT, None, gl.GL_DYNAMIC_DRAW)
        storage.acquire()
        storage.release()
        # Unbind; bound again in the render loop
        gl.glBindBuffer(gl.GL_ARRAY_BUFFER, 0)

        logger.info("Allocated %.1f megabytes of fast memory", length * SIZEOF_FLOAT / 1e6)
        return storage

    def acquire(self) -> np.ndarray:
        """Map the bound buffer object, re-wrapping the pointer if the driver moved it."""
        logger = logging.getLogger("vbo.storage")
        pointer = gl.glMapBuffer(gl.GL_ARRAY_BUFFER, gl.GL_WRITE_ONLY)
        address = getattr(pointer, "value", pointer)
        if not address:
            logger.error("glMapBuffer returned null for buffer %d", self.buffer_object)
            raise RuntimeError("Unable to map vertex buffer object")

        if address != self._address:
            self._address = address
            raw = (ctypes.c_float * self.length).from_address(address)
            self._replace(np.ctypeslib.as_array(raw))
            logger.debug("Buffer %d mapped at %#x (generation %d)",
                         self.buffer_object, address, self.generation)
        return self.floats

    def release(self) -> None:
        gl.glUnmapBuffer(gl.GL_ARRAY_BUFFER)

    def delete(self) -> None:
        gl.glDeleteBuffers(1, [self.buffer_object])
        self.floats = None
        self._address = None


def gl_version_at_least(version: Optional[bytes], major: int, minor: int) -> bool:
    """Compare a GL_VERSION string such as b"4.6.0 NVIDIA 535.1" against major.minor."""
    if not version:
        return False
    try:
        parts = version.split()[0].split(b".")
        found = (int(parts[0]), int(parts[1]))
    except (IndexError, ValueError):
        return False
    return found >= (major, minor)


@dataclass
class Engine:
    """glfw window plus the per-frame wave regeneration and draw."""

    # Window dimensions in pixels
    window_width: int = WindowWidth
    window_height: int = WindowHeight

    vbo_enabled: bool = True

    controls: Controls = field(default_factory=Controls)
    generator: WaveMeshGenerator = field(default_factory=WaveMeshGenerator)
    rotation: SlabRotation = field(default_factory=SlabRotation)
    profiler: FrameProfiler = field(default_factory=FrameProfiler)

    topology: Optional[MeshTopology] = None
    system_storage: Optional[SystemStorage] = None
    mapped_storage: Optional[MappedStorage] = None

    window: Optional[object] = None

    def __init__(self, controls: Optional[Controls] = None, vbo_enabled: bool = True) -> None:
        """Initialize GLFW window, OpenGL context and vertex storage."""
        logger = logging.getLogger("vbo.engine")
        self.window_width = WindowWidth
        self.window_height = WindowHeight
        self.vbo_enabled = vbo_enabled
        self.controls = controls if controls is not None else Controls()
        self.generator = WaveMeshGenerator()
        self.rotation = SlabRotation()
        self.profiler = FrameProfiler()
        self.topology = None
        self.system_storage = None
        self.mapped_storage = None
        self.window = None

        if not glfw.init():
            logger.error("Failed to initialize GLFW")
            raise RuntimeError("GLFW initialization failed")

        # Default (compatibility) context: quad strips and client arrays are needed
        self.window = glfw.create_window(
            self.window_width, self.window_height, WindowTitle, None, None
        )
        if not self.window:
            logger.error("Failed to create GLFW window")
            glfw.terminate()
            raise RuntimeError("GLFW window creation failed")

        glfw.make_context_current(self.window)
        # Best framerate, no sync-to-refresh
        glfw.swap_interval(0)
        logger.info("Disabled sync-to-refresh for best framerate")

        try:
            self._require_vertex_buffer_object()
            self._initialize_gl_state()
            self._setup_viewport_and_projection(self.window_width, self.window_height)

            self.mapped_storage = MappedStorage.allocate()
            self.system_storage = SystemStorage()
            self.topology = MeshTopology.compute(self.controls.tile_size)
        except RuntimeError:
            self.shutdown()
            raise

        gl.glEnableClientState(gl.GL_VERTEX_ARRAY)
        gl.glEnableClientState(gl.GL_NORMAL_ARRAY)

        # Callbacks
        glfw.set_window_size_callback(self.window, self.on_resize)
        glfw.set_key_callback(self.window, self.on_key)
        glfw.set_char_callback(self.window, self.on_char)

        logger.info("Created window %dx%d px, vertex data in %s",
                    self.window_width, self.window_height, self.active_storage.name)

    @property
    def active_storage(self) -> VertexStorage:
        return self.mapped_storage if self.vbo_enabled else self.system_storage

    def _require_vertex_buffer_object(self) -> None:
        """Abort unless buffer objects are available (core since GL 1.5)."""
        logger = logging.getLogger("vbo.engine")
        version = gl.glGetString(gl.GL_VERSION)
        logger.info("OpenGL version: %s", version.decode(errors="replace") if version else "unknown")
        if gl_version_at_least(version, 1, 5) or extensions.hasGLExtension(VBO_EXTENSION):
            return
        message = f'OpenGL extension "{VBO_EXTENSION}" not available'
        logger.error(message)
        raise RuntimeError(message)

    def _initialize_gl_state(self) -> None:
        gl.glEnable(gl.GL_DEPTH_TEST)
        gl.glClearColor(0.0, 0.0, 0.0, 0.0)

        gl.glEnable(gl.GL_LIGHT0)
        gl.glEnable(gl.GL_LIGHTING)
        gl.glEnable(gl.GL_NORMALIZE)
        gl.glMaterialfv(gl.GL_FRONT_AND_BACK, gl.GL_AMBIENT, MATERIAL_AMBIENT)
        gl.glMaterialfv(gl.GL_FRONT_AND_BACK, gl.GL_DIFFUSE, MATERIAL_DIFFUSE)
        gl.glMaterialfv(gl.GL_FRONT_AND_BACK, gl.GL_SPECULAR, MATERIAL_SPECULAR)
        gl.glMaterialf(gl.GL_FRONT_AND_BACK, gl.GL_SHININESS, MATERIAL_SHININESS)
        self._apply_lighting_model()

    def _apply_lighting_model(self) -> None:
        if self.controls.infinite_light:
            gl.glLightfv(gl.GL_LIGHT0, gl.GL_POSITION, INFINITE_LIGHT_POSITION)
            gl.glLightModeli(gl.GL_LIGHT_MODEL_LOCAL_VIEWER, 0)
        else:
            gl.glLightfv(gl.GL_LIGHT0, gl.GL_POSITION, LOCAL_LIGHT_POSITION)
            gl.glLightModeli(gl.GL_LIGHT_MODEL_LOCAL_VIEWER, 1)

    def _setup_viewport_and_projection(self, width_px: int, height_px: int) -> None:
        """Setup OpenGL viewport and 3D perspective projection."""
        gl.glViewport(0, 0, width_px, height_px)
        aspect = width_px / height_px if height_px else 1.0
        projection = MatrixUtils.create_perspective_matrix(FOV, aspect, NEAR_PLANE, FAR_PLANE)
        gl.glMatrixMode(gl.GL_PROJECTION)
        gl.glLoadMatrixf(MatrixUtils.to_gl(projection))
        gl.glMatrixMode(gl.GL_MODELVIEW)

    def on_resize(self, _window, width: int, height: int) -> None:
        """Handle window resize events."""
        self.window_width = width
        self.window_height = height
        self._setup_viewport_and_projection(width, height)

    def on_key(self, window, key, scancode, action, mods) -> None:
        """Escape has no character, route it through the same dispatch."""
        if key == glfw.KEY_ESCAPE and action == glfw.PRESS:
            self.controls.dispatch_key(ESCAPE)

    def on_char(self, window, codepoint: int) -> None:
        self.controls.dispatch_key(chr(codepoint))

    def apply_pending_requests(self) -> None:
        """Act on every request raised by input since the previous frame."""
        logger = logging.getLogger("vbo.engine")
        controls = self.controls

        if controls.toggle_vbo.consume():
            self.vbo_enabled = not self.vbo_enabled
            logger.info("Vertex data now in %s", self.active_storage.name)

        if controls.toggle_lighting.consume():
            if controls.lighting_disabled:
                gl.glDisable(gl.GL_LIGHTING)
            else:
                gl.glEnable(gl.GL_LIGHTING)

        if controls.toggle_lighting_model.consume():
            self._apply_lighting_model()

        if controls.recompute_elements.consume():
            self.topology = MeshTopology.compute(controls.tile_size)

        if controls.reset_profiler.consume():
            self.profiler.reset()

    def render_frame(self) -> None:
        """Advance the animation, regenerate every slab and draw it."""
        controls = self.controls
        animation = controls.animation

        if controls.animating:
            animation.advance()

        self.apply_pending_requests()
        topology = self.topology
        iterators = animation.iterators(topology.tile_size)
        storage = self.active_storage
        primitive = GL_PRIMITIVES[controls.primitive]

        gl.glClear(gl.GL_COLOR_BUFFER_BIT | gl.GL_DEPTH_BUFFER_BIT)
        gl.glPushMatrix()
        gl.glLoadMatrixf(MODELVIEW_MATRIX)

        if storage.uses_buffer_object:
            gl.glBindBuffer(gl.GL_ARRAY_BUFFER, storage.buffer_object)
        else:
            gl.glBindBuffer(gl.GL_ARRAY_BUFFER, 0)

        for slab in range(topology.num_slabs - 1, -1, -1):
            storage.acquire()
            self.rotation.validate(storage)
            buffer = self.rotation.buffer_for(slab)

            if storage.uses_buffer_object:
                gl.glVertexPointer(3, gl.GL_FLOAT, VERTEX_STRIDE, BufferUtils.buffer_offset(buffer.vertex_offset))
                gl.glNormalPointer(gl.GL_FLOAT, VERTEX_STRIDE, BufferUtils.buffer_offset(buffer.normal_offset))
            else:
                gl.glVertexPointer(3, gl.GL_FLOAT, VERTEX_STRIDE, buffer.vertices)
                gl.glNormalPointer(gl.GL_FLOAT, VERTEX_STRIDE, buffer.normals)

            try:
                self.generator.generate_slab(slab, buffer.vertices, topology, animation, iterators)
            finally:
                storage.release()

            self._draw_elements(primitive, topology.elements)

        gl.glPopMatrix()

        if controls.profiling:
            self.profiler.frame_rendered(topology.tile_size)

    def _draw_elements(self, primitive: int, elements: np.ndarray) -> None:
        count = elements.shape[1]
        flush = self.controls.flush_each_draw
        for row in elements:
            gl.glDrawElements(primitive, count, gl.GL_UNSIGNED_INT, row)
            if flush:
                gl.glFlush()
        self.profiler.count_draw_calls(len(elements))

    def shutdown(self) -> None:
        """Clean up GL and GLFW resources."""
        if self.mapped_storage is not None:
            self.mapped_storage.delete()
            self.mapped_storage = None
        if self.window is not None:
            glfw.destroy_window(self.window)
            self.window = None
        glfw.terminate()


CONTROLS_HELP = """\
  space  pause/resume animation      v      toggle buffer object / system memory
  w      line strips                 p      points
  d      toggle lighting             i      infinite / local light
  h / H  high ripple amplitude +/-   l / L  low ripple amplitude +/-
  1 / 2  low frequency +/-           3 / 4  high frequency +/-
  5 / 6  phase rate +/-              7 / 8  phase2 rate +/-
  t / T  tile size +/- one strip     r      print frame rate every 30 frames
  f      flush after every draw      q/ESC  quit"""


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vertex Buffer Object wave demo")
    parser.add_argument("--slow", action="store_true",
                        help="start with vertex data in system memory instead of a buffer object")
    parser.add_argument("--tile-size", type=int, default=None,
                        help="initial tile width in vertices (rounded to whole strips)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    SystemUtils.configure_logging(getattr(logging, args.log_level))
    logger = logging.getLogger("vbo")
    logger.info("Dependency versions: %s", SystemUtils.get_dependency_versions())

    print("=== Vertex Buffer Object Demo Starting ===")
    controls = Controls(tile_size=clamp_tile_size(args.tile_size))

    start_time = time.perf_counter()
    frames = 0
    engine = None
    try:
        engine = Engine(controls, vbo_enabled=not args.slow)
        print(f"✓ Engine initialized, vertex data in {engine.active_storage.name}")
        print(f"  Tile: {controls.tile_size}x{controls.tile_size} vertices, "
              f"{engine.topology.num_slabs} slabs")

        print("\n--- Controls ---")
        print(CONTROLS_HELP)

        while not glfw.window_should_close(engine.window):
            if controls.quit.consume():
                glfw.set_window_should_close(engine.window, True)
                continue

            engine.render_frame()
            frames += 1

            glfw.swap_buffers(engine.window)
            glfw.poll_events()
    finally:
        elapsed = time.perf_counter() - start_time
        logger.info("Rendered %d frames in %.1f s", frames, elapsed)
        print("\n=== Shutting Down ===")
        if engine is not None:
            engine.shutdown()
        print("✓ Demo ended")


if __name__ == "__main__":
    main()
