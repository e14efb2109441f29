"""
Gesture force field.

The hand never pushes particles directly; it bends the point each particle
is relaxing toward:

- OPEN:    repel targets away from the cursor, falloff max(0, R - d)
- CLOSED:  blend targets 10% toward the cursor (whole field collapses)
- NEUTRAL: nothing
"""

from __future__ import annotations

import math

import numpy as np

from control import Gesture
from params import DEFAULT


def cursor(control, params=DEFAULT):
    """Control position [-1, 1]^2 mapped into world units on the z=0 plane."""
    return (control.x * params.cursor_scale, control.y * params.cursor_scale, 0.0)


def adjust(target, current, control, dt: float, params=DEFAULT):
    """Single particle version. Returns the adjusted target as an (x, y, z) tuple."""
    tx, ty, tz = float(target[0]), float(target[1]), float(target[2])
    if not control.present or control.gesture is Gesture.NEUTRAL:
        return (tx, ty, tz)

    cx, cy, cz = cursor(control, params)
    dx = float(current[0]) - cx
    dy = float(current[1]) - cy
    dz = float(current[2]) - cz
    d = math.sqrt(dx * dx + dy * dy + dz * dz)

    if control.gesture is Gesture.OPEN:
        if d < params.repel_radius:
            force = control.openness * params.repel_gain * max(0.0, params.repel_radius - d) * dt
            return (tx + dx * force, ty + dy * force, tz + dz * force)
        return (tx, ty, tz)

    # CLOSED
    if d < params.attract_radius:
        keep = 1.0 - params.attract_blend
        return (tx * keep + cx * params.attract_blend,
                ty * keep + cy * params.attract_blend,
                tz * keep + cz * params.attract_blend)
    return (tx, ty, tz)


def adjust_all(targets: np.ndarray, current: np.ndarray, control, dt: float, params=DEFAULT, out=None):
    """Vectorised adjust() over (N, 3) buffers. Writes into ``out`` if given."""
    if out is None:
        out = targets.copy()
    elif out is not targets:
        np.copyto(out, targets)

    if not control.present or control.gesture is Gesture.NEUTRAL:
        return out

    c = np.asarray(cursor(control, params), dtype=out.dtype)
    diff = current - c[None, :]
    d = np.sqrt(np.einsum("ij,ij->i", diff, diff))

    if control.gesture is Gesture.OPEN:
        inside = d < params.repel_radius
        if np.any(inside):
            force = control.openness * params.repel_gain * np.maximum(0.0, params.repel_radius - d[inside]) * dt
            out[inside] += diff[inside] * force[:, None]
        return out

    inside = d < params.attract_radius
    if np.any(inside):
        keep = 1.0 - params.attract_blend
        out[inside] = out[inside] * keep + c[None, :] * params.attract_blend
    return out
