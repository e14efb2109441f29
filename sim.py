"""
Particle cloud that relaxes toward a (spinning, gesture-bent) target shape.

State:
- current: Nx3 live positions (what gets drawn)
- target:  Nx3 shape positions (resampled on shape change only)

Per tick, per particle:
1. spin the target around the vertical axis by elapsed * target_spin
2. bend it with the hand force field
3. current += (bent_target - current) * rate * dt
   rate = active_rate while a gesture is active, idle_rate otherwise

The whole-cloud presentation spin (elapsed * frame_spin) is NOT applied to
``current``; renderers ask for presented() or presentation_angle().
"""

from __future__ import annotations

import math

import numpy as np

from control import ControlSignal
import forcefield
from params import DEFAULT


def _finite_or_zero(x) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def rotate_y(points: np.ndarray, angle: float, out=None) -> np.ndarray:
    """Rotate Nx3 points about the y axis: x' = x cos - z sin, z' = x sin + z cos."""
    c, s = math.cos(angle), math.sin(angle)
    if out is None:
        out = np.empty_like(points)
    x = points[:, 0].copy()
    z = points[:, 2].copy()
    out[:, 0] = x * c - z * s
    out[:, 1] = points[:, 1]
    out[:, 2] = x * s + z * c
    return out


class ParticleSim:
    def __init__(self, target, params=DEFAULT, rng=None):
        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng()

        target = np.asarray(target, dtype=np.float64).reshape(-1, 3)
        self.count = int(target.shape[0])
        self.target = target.copy()

        # Scratch buffer for the rotated + bent target
        self._work = np.empty_like(self.target)

        self.reset()

    def reset(self):
        """Re-seed current with uniform noise so the cloud flies in."""
        e = self.params.spawn_extent
        self.current = (self.rng.random((self.count, 3)) * 2.0 - 1.0) * e

    def retarget(self, target):
        target = np.asarray(target, dtype=np.float64).reshape(-1, 3)
        if target.shape[0] != self.count:
            raise ValueError(f"target has {target.shape[0]} points, sim holds {self.count}")
        self.target[:] = target

    def rate_for(self, control: ControlSignal) -> float:
        return self.params.active_rate if control.active else self.params.idle_rate

    def tick(self, dt, elapsed, control: ControlSignal | None = None):
        p = self.params
        control = control if control is not None else ControlSignal.absent()
        dt = max(_finite_or_zero(dt), 0.0)
        elapsed = _finite_or_zero(elapsed)

        if self.count == 0 or dt == 0.0:
            return

        # --- Spin the target (feeds the physics) ---
        self._spin_target(elapsed * p.target_spin)

        # --- Hand force field ---
        forcefield.adjust_all(self._work, self.current, control, dt, params=p, out=self._work)

        # --- Relax ---
        # Never step past the target on long frames
        k = min(self.rate_for(control) * dt, 1.0)
        self.current += (self._work - self.current) * k

    def _spin_target(self, angle):
        rotate_y(self.target, angle, out=self._work)

    def spun_target(self, elapsed) -> np.ndarray:
        """Target after the physics spin only (no force field)."""
        self._spin_target(_finite_or_zero(elapsed) * self.params.target_spin)
        return self._work.copy()

    # ========================= Output =========================

    def presentation_angle(self, elapsed) -> float:
        return _finite_or_zero(elapsed) * self.params.frame_spin

    def presented(self, elapsed) -> np.ndarray:
        """Copy of current with the cosmetic whole-cloud spin applied."""
        return rotate_y(self.current, self.presentation_angle(elapsed))

    def flat_positions(self) -> np.ndarray:
        """3*N interleaved x, y, z view of current."""
        return self.current.reshape(-1)
