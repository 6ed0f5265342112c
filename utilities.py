import math
import time
import ctypes
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import OpenGL
import glfw
import numpy as np

from vbo_config import PROFILE_FRAMES

"""
Utility functions for the vertex buffer object demo.
Organized into logical sections for different functionality areas.
"""

# =============================================================================
# MATHEMATICAL UTILITIES
# =============================================================================

class MathUtils:
    """Mathematical utility functions."""

    @staticmethod
    def clamp(value: float, min_val: float, max_val: float) -> float:
        """Clamp a value between min and max bounds."""
        return max(min_val, min(value, max_val))

# =============================================================================
# MATRIX OPERATIONS
# =============================================================================

class MatrixUtils:
    """Matrix operations for 3D graphics."""

    @staticmethod
    def create_perspective_matrix(fov: float, aspect: float, near: float, far: float) -> np.ndarray:
        """Create perspective projection matrix (row-major, same as gluPerspective)."""
        f = 1.0 / math.tan(math.radians(fov) / 2.0)
        return np.array([
            [f / aspect, 0, 0, 0],
            [0, f, 0, 0],
            [0, 0, (far + near) / (near - far), (2 * far * near) / (near - far)],
            [0, 0, -1, 0]
        ], dtype=np.float32)

    @staticmethod
    def to_gl(matrix: np.ndarray) -> np.ndarray:
        """Column-major copy for glLoadMatrixf."""
        return np.ascontiguousarray(matrix.T, dtype=np.float32)

# =============================================================================
# OPENGL UTILITIES
# =============================================================================

class BufferUtils:
    """Utilities for OpenGL buffer management."""

    @staticmethod
    def buffer_offset(offset_bytes: int) -> ctypes.c_void_p:
        """Byte offset into the bound buffer object, as a gl*Pointer argument."""
        return ctypes.c_void_p(offset_bytes)

# =============================================================================
# PROFILING
# =============================================================================

@dataclass
class ProfileSample:
    fps: float
    polys_per_frame: float
    million_polys_per_sec: float
    draw_calls_per_frame: float


@dataclass
class FrameProfiler:
    """Frame rate over fixed windows of frames.

    The first frame after a reset only starts the clock; every
    ``window`` frames after that produce a ProfileSample.
    """

    window: int = PROFILE_FRAMES
    clock: Callable[[], float] = time.perf_counter
    frame_count: int = 0
    draw_calls: int = 0
    first_frame: bool = True
    start_time: float = 0.0

    def reset(self) -> None:
        self.frame_count = 0
        self.draw_calls = 0
        self.first_frame = True

    def count_draw_calls(self, count: int = 1) -> None:
        self.draw_calls += count

    def frame_rendered(self, tile_size: int) -> Optional[ProfileSample]:
        logger = logging.getLogger("vbo.profile")
        if self.first_frame:
            self.start_time = self.clock()
            self.first_frame = False
            return None

        self.frame_count += 1
        if self.frame_count < self.window:
            return None

        end_time = self.clock()
        secs = end_time - self.start_time
        fps = self.window / secs if secs > 0 else float("inf")
        ppf = tile_size * tile_size * 2.0
        sample = ProfileSample(
            fps=fps,
            polys_per_frame=ppf,
            million_polys_per_sec=ppf * fps / 1e6,
            draw_calls_per_frame=self.draw_calls / self.window,
        )
        logger.info("fps: %.2f polys/frame: %.0f million polys/sec: %.2f DrawElements calls/frame: %.0f",
                    sample.fps, sample.polys_per_frame, sample.million_polys_per_sec,
                    sample.draw_calls_per_frame)

        self.frame_count = 0
        self.draw_calls = 0
        self.start_time = self.clock()
        return sample

# =============================================================================
# SYSTEM UTILITIES
# =============================================================================

class SystemUtils:
    """System and environment utilities."""

    @staticmethod
    def get_dependency_versions() -> Dict[str, str]:
        """Return versions of key runtime dependencies."""
        return {
            "numpy": np.__version__,
            "OpenGL": getattr(OpenGL, "__version__", "unknown"),
            "glfw": getattr(glfw, "__version__", "unknown"),
        }

    @staticmethod
    def configure_logging(level: int = logging.INFO) -> None:
        """Configure root logger for the application."""
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
