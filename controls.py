from __future__ import annotations

"""
Keyboard state shared between input callbacks and the render loop.

Every typed character toggles an entry in a 256-slot flag table. Requests
that must be acted on exactly once by the render loop (switch storage,
change lighting, rebuild topology, quit) travel through PendingSignal, a
one-shot handshake with a single producer and a single consumer.
"""

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from vbo_config import (
    COEF_STEP,
    DEFAULT_TILE_SIZE,
    FREQ_STEP,
    MAX_TILE_SIZE,
    RATE_STEP,
    STRIP_SIZE,
)
from utilities import MathUtils
from wave_mesh import WaveAnimation

logger = logging.getLogger("vbo.controls")

ESCAPE = "\x1b"


class PendingSignal:
    """One-shot request raised by one thread and consumed by another.

    The lock orders the producer's write before the consumer's read; a
    request raised several times before it is consumed is seen once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending = False

    def raise_signal(self) -> None:
        with self._lock:
            self._pending = True

    def consume(self) -> bool:
        """Return True if the signal was pending, clearing it."""
        with self._lock:
            pending = self._pending
            self._pending = False
            return pending


class Primitive(enum.Enum):
    QUAD_STRIP = "quad_strip"
    LINE_STRIP = "line_strip"
    POINTS = "points"


class KeyFlags:
    """Toggle flag per character code (low 8 bits)."""

    def __init__(self) -> None:
        self._flags = [False] * 256

    def get(self, key: str) -> bool:
        return self._flags[ord(key) & 0xFF]

    def set(self, key: str, value: bool) -> None:
        self._flags[ord(key) & 0xFF] = value

    def toggle(self, key: str) -> bool:
        value = not self.get(key)
        self.set(key, value)
        return value


# (attribute, step) per key; applied to WaveAnimation
ADJUSTMENTS = {
    "h": ("hicoef", COEF_STEP),
    "H": ("hicoef", -COEF_STEP),
    "l": ("locoef", COEF_STEP),
    "L": ("locoef", -COEF_STEP),
    "1": ("lofreq", FREQ_STEP),
    "2": ("lofreq", -FREQ_STEP),
    "3": ("hifreq", FREQ_STEP),
    "4": ("hifreq", -FREQ_STEP),
    "5": ("phase_rate", RATE_STEP),
    "6": ("phase_rate", -RATE_STEP),
    "7": ("phase2_rate", RATE_STEP),
    "8": ("phase2_rate", -RATE_STEP),
}


@dataclass
class Controls:
    """Everything the keyboard can change."""

    animation: WaveAnimation = field(default_factory=WaveAnimation)
    tile_size: int = DEFAULT_TILE_SIZE
    primitive: Primitive = Primitive.QUAD_STRIP
    flags: KeyFlags = field(default_factory=KeyFlags)

    toggle_vbo: PendingSignal = field(default_factory=PendingSignal)
    toggle_lighting: PendingSignal = field(default_factory=PendingSignal)
    toggle_lighting_model: PendingSignal = field(default_factory=PendingSignal)
    recompute_elements: PendingSignal = field(default_factory=PendingSignal)
    reset_profiler: PendingSignal = field(default_factory=PendingSignal)
    quit: PendingSignal = field(default_factory=PendingSignal)

    def __post_init__(self) -> None:
        self.flags.set(" ", True)  # animation on
        self.flags.set("i", True)  # infinite viewer and light

    # Flags read by the render loop
    @property
    def animating(self) -> bool:
        return self.flags.get(" ")

    @property
    def lighting_disabled(self) -> bool:
        return self.flags.get("d")

    @property
    def infinite_light(self) -> bool:
        return self.flags.get("i")

    @property
    def profiling(self) -> bool:
        return self.flags.get("r")

    @property
    def flush_each_draw(self) -> bool:
        return self.flags.get("f")

    def dispatch_key(self, key: str) -> None:
        """Apply one typed character."""
        state = self.flags.toggle(key)

        if key in (ESCAPE, "q"):
            self.quit.raise_signal()

        if key == "r" and state:
            self.reset_profiler.raise_signal()

        if key == "w":
            self.primitive = Primitive.LINE_STRIP if state else Primitive.QUAD_STRIP
        if key == "p":
            self.primitive = Primitive.POINTS if state else Primitive.QUAD_STRIP

        if key == "v":
            self.toggle_vbo.raise_signal()
        if key == "d":
            self.toggle_lighting.raise_signal()
        if key == "i":
            self.toggle_lighting_model.raise_signal()

        adjustment = ADJUSTMENTS.get(key)
        if adjustment is not None:
            name, step = adjustment
            setattr(self.animation, name, getattr(self.animation, name) + step)

        if key == "t" and self.tile_size < MAX_TILE_SIZE:
            self._resize_tile(self.tile_size + STRIP_SIZE)
        if key == "T" and self.tile_size > STRIP_SIZE:
            self._resize_tile(self.tile_size - STRIP_SIZE)

    def _resize_tile(self, tile_size: int) -> None:
        self.tile_size = tile_size
        self.recompute_elements.raise_signal()
        logger.info("tileSize = %d", tile_size)


def clamp_tile_size(requested: Optional[int]) -> int:
    """Round down to whole strips and keep within the supported range."""
    if requested is None:
        return DEFAULT_TILE_SIZE
    tile_size = (requested // STRIP_SIZE) * STRIP_SIZE
    return int(MathUtils.clamp(tile_size, STRIP_SIZE, MAX_TILE_SIZE))
