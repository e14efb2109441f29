"""
Wires render config changes to the sampler and the live ParticleSim.

- count change (or first apply): new sim, current re-seeded with noise
- shape change, same count:      retarget in place, current kept (smooth morph)
- color / size change:           nothing to resample
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
import re

import numpy as np

from control import SnapshotSlot
from params import DEFAULT
from shapes import ShapeType, sample
from sim import ParticleSim, rotate_y

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class ConfigError(ValueError):
    """Rejected render configuration (bad count, size, shape or color)."""


@dataclass(frozen=True)
class RenderConfig:
    color: str = DEFAULT.default_color
    count: int = DEFAULT.default_count
    size: float = DEFAULT.default_size
    shape: ShapeType = ShapeType.parse(DEFAULT.default_shape)

    @property
    def rgb(self) -> tuple[int, int, int]:
        v = self.color.lstrip("#")
        return (int(v[0:2], 16), int(v[2:4], 16), int(v[4:6], 16))

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "count": self.count,
            "size": self.size,
            "shape": self.shape.value,
        }


def validate_config(data, base: RenderConfig | None = None, params=DEFAULT) -> RenderConfig:
    """Merge a JSON-ish mapping over ``base`` and validate it.

    This is the configuration boundary: everything past it assumes a valid
    RenderConfig.
    """
    base = base if base is not None else RenderConfig()
    if not isinstance(data, dict):
        raise ConfigError("config must be a JSON object")

    count = data.get("count", base.count)
    if (isinstance(count, bool) or not isinstance(count, (int, float))
            or (isinstance(count, float) and not count.is_integer())):
        raise ConfigError(f"count must be an integer, got {count!r}")
    count = int(count)
    if count <= 0:
        raise ConfigError(f"count must be positive, got {count}")
    if count > params.max_particles:
        raise ConfigError(f"count must be at most {params.max_particles}, got {count}")

    size = data.get("size", base.size)
    if isinstance(size, bool) or not isinstance(size, (int, float)) or not math.isfinite(size) or size <= 0:
        raise ConfigError(f"size must be a positive number, got {size!r}")

    try:
        shape = ShapeType.parse(data.get("shape", base.shape))
    except ValueError as e:
        raise ConfigError(str(e)) from e

    color = data.get("color", base.color)
    if not isinstance(color, str) or not _HEX_COLOR.match(color):
        raise ConfigError(f"color must look like #rrggbb, got {color!r}")

    return RenderConfig(color=color.lower(), count=count, size=float(size), shape=shape)


@dataclass
class Frame:
    positions: np.ndarray   # (N, 3)
    color: str
    size: float
    count: int
    shape: ShapeType
    rotation_y: float = 0.0  # cosmetic whole-cloud spin, applied by the renderer

    def flat(self) -> list:
        return self.positions.reshape(-1).tolist()

    def presented(self) -> np.ndarray:
        """Positions with rotation_y applied."""
        return rotate_y(self.positions, self.rotation_y)

    def to_dict(self) -> dict:
        return {
            "type": "frame",
            "color": self.color,
            "size": self.size,
            "count": self.count,
            "shape": self.shape.value,
            "rotation_y": self.rotation_y,
            "positions": self.flat(),
        }


class Orchestrator:
    def __init__(self, config: RenderConfig | None = None, params=DEFAULT, rng=None, slot: SnapshotSlot | None = None):
        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng()
        self.slot = slot if slot is not None else SnapshotSlot(params.control_stale_after)
        self.config = None
        self.custom_points = None
        self.sim = None
        self.elapsed = 0.0
        self.apply_config(config if config is not None else RenderConfig())

    def apply_config(self, config: RenderConfig, custom_points=None):
        """Apply an already validated config. Call between ticks, never during one."""
        prev = self.config
        if custom_points is not None:
            self.custom_points = list(custom_points)

        shape_changed = prev is None or prev.shape != config.shape or custom_points is not None
        count_changed = prev is None or self.sim is None or prev.count != config.count
        self.config = config

        if not (shape_changed or count_changed):
            logger.debug("Config change is color/size only: %s", config.to_dict())
            return

        target = sample(config.shape, config.count, self.custom_points, rng=self.rng, params=self.params)

        if count_changed:
            self.sim = ParticleSim(target, params=self.params, rng=self.rng)
            logger.info("Allocated %d particles for %s", config.count, config.shape.value)
        else:
            self.sim.retarget(target)
            logger.info("Retargeted %d particles to %s", config.count, config.shape.value)

    def apply_generated_points(self, points):
        """Switch to the Custom shape using a freshly generated point cloud."""
        self.apply_config(replace(self.config, shape=ShapeType.CUSTOM), custom_points=points)

    def tick(self, dt, elapsed, control=None):
        if control is None:
            control = self.slot.latest()
        self.sim.tick(dt, elapsed, control)
        self.elapsed = elapsed

    @property
    def current(self) -> np.ndarray:
        return self.sim.current

    @property
    def target(self) -> np.ndarray:
        return self.sim.target

    def frame(self, elapsed=None) -> Frame:
        """Snapshot for renderers: unrotated current plus the presentation angle.

        ``elapsed`` defaults to the one passed to the last tick.
        """
        if elapsed is None:
            elapsed = self.elapsed
        return Frame(
            positions=self.sim.current.copy(),
            color=self.config.color,
            size=self.config.size,
            count=self.config.count,
            shape=self.config.shape,
            rotation_y=self.sim.presentation_angle(elapsed),
        )
