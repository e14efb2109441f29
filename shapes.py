"""
Procedural target shapes for the particle cloud.

Every family is sampled independently per particle, so the whole buffer is
drawn in one vectorised pass:

- Heart:     parametric heart surface, scaled 0.15
- Flower:    5-petal rose curve with thickness jitter
- Saturn:    60% ring (r 2.5..4.0, |y| <= 0.05) + sphere r=1.5
- Buddha:    stacked ellipsoids (legs / torso / head) via rejection sampling
- Fireworks: solid ball r=3 (also the fallback)
- Custom:    caller supplied flat [x, y, z, ...] list, tiled cyclically
"""

from __future__ import annotations

import enum
import logging

import numpy as np

from params import DEFAULT

logger = logging.getLogger(__name__)


class ShapeType(str, enum.Enum):
    HEART = "Heart"
    FLOWER = "Flower"
    SATURN = "Saturn"
    FIREWORKS = "Fireworks"
    BUDDHA = "Buddha"
    CUSTOM = "AI Generated"

    @classmethod
    def parse(cls, value) -> "ShapeType":
        """Accept a member, its value ("Saturn") or its name ("saturn", "custom")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"unknown shape: {value!r}")


FALLBACK_SHAPE = ShapeType.FIREWORKS

SATURN_RING_PROB = 0.6
SATURN_RING_MIN = 2.5
SATURN_RING_MAX = 4.0
SATURN_RING_HALF_THICKNESS = 0.05
SATURN_PLANET_RADIUS = 1.5

FIREWORKS_RADIUS = 3.0

HEART_SCALE = 0.15
FLOWER_PETALS = 5

# name, probability, bounding box, quadric denominators, threshold, y offset
# a candidate c is accepted iff sum(c**2 / den) < threshold
BUDDHA_REGIONS = (
    ("legs", 0.4, (4.0, 1.5, 2.5), (4.0, 0.5, 1.5), 1.0, -1.5),
    ("torso", 0.3, (2.0, 2.5, 1.5), (1.0, 1.0, 1.0), 1.2, 0.5),
    ("head", 0.3, (1.2, 1.4, 1.2), (1.0, 1.0, 1.0), 0.5, 2.2),
)


# ========================= Sampling =========================

def sample(shape, count: int, custom_points=None, rng=None, params=DEFAULT) -> np.ndarray:
    """Return a (count, 3) target buffer for ``shape``.

    Never raises for count >= 0. Custom with an unusable point list falls
    back to Fireworks.
    """
    rng = rng if rng is not None else np.random.default_rng()
    n = max(0, int(count))

    try:
        shape = ShapeType.parse(shape)
    except ValueError:
        logger.warning("Unknown shape %r, using %s", shape, FALLBACK_SHAPE.value)
        shape = FALLBACK_SHAPE

    if shape is ShapeType.CUSTOM:
        src = _custom_source(custom_points)
        if src is not None:
            return tile_custom(src, n)
        logger.warning("Custom shape without usable points, falling back to %s", FALLBACK_SHAPE.value)
        shape = FALLBACK_SHAPE

    if shape is ShapeType.HEART:
        return _heart(rng, n)
    if shape is ShapeType.FLOWER:
        return _flower(rng, n)
    if shape is ShapeType.SATURN:
        return _saturn(rng, n)
    if shape is ShapeType.BUDDHA:
        return _buddha(rng, n, params.max_rejection_rounds)
    return _fireworks(rng, n)


def tile_custom(src: np.ndarray, count: int) -> np.ndarray:
    """target[i] = src[i mod k] for a (k, 3) source."""
    idx = np.arange(count) % src.shape[0]
    return src[idx].copy()


def _is_coord(v) -> bool:
    return not isinstance(v, (bool, np.bool_)) and isinstance(v, (int, float, np.integer, np.floating))


def _collect(points, out) -> bool:
    """Append every coordinate of a flat or nested sequence to ``out``; False on a non-numeric entry."""
    for v in points:
        if isinstance(v, (list, tuple, np.ndarray)):
            if not _collect(v, out):
                return False
        elif _is_coord(v):
            out.append(float(v))
        else:
            return False
    return True


def _custom_source(points):
    if isinstance(points, np.ndarray):
        points = np.atleast_1d(points)
    elif not isinstance(points, (list, tuple)):
        return None
    coords = []
    if not _collect(points, coords):
        return None
    flat = np.asarray(coords, dtype=np.float64)
    k = flat.size // 3
    if k == 0:
        return None
    flat = flat[: k * 3]
    if not np.all(np.isfinite(flat)):
        return None
    return flat.reshape(k, 3)


def _heart(rng, n):
    theta = rng.random(n) * np.pi
    phi = rng.random(n) * 2.0 * np.pi
    s3 = np.sin(theta) ** 3
    out = np.empty((n, 3))
    out[:, 0] = 16.0 * s3 * np.sin(phi)
    out[:, 1] = (13.0 * np.cos(theta) - 5.0 * np.cos(2.0 * theta)
                 - 2.0 * np.cos(3.0 * theta) - np.cos(4.0 * theta))
    out[:, 2] = 16.0 * s3 * np.cos(phi)
    out *= HEART_SCALE
    return out


def _flower(rng, n):
    t = rng.random(n) * 2.0 * np.pi
    u = rng.random(n) * 2.0 * np.pi
    r = np.cos(FLOWER_PETALS * t) * np.sin(u) * 2.0
    out = np.empty((n, 3))
    out[:, 0] = r * np.cos(t)
    out[:, 1] = np.cos(u) * 2.0 * (rng.random(n) - 0.5)  # thickness
    out[:, 2] = r * np.sin(t)
    return out


def _saturn(rng, n):
    out = np.empty((n, 3))
    ring = rng.random(n) < SATURN_RING_PROB
    nr = int(ring.sum())
    npl = n - nr

    # Ring
    ang = rng.random(nr) * 2.0 * np.pi
    rad = SATURN_RING_MIN + rng.random(nr) * (SATURN_RING_MAX - SATURN_RING_MIN)
    out[ring, 0] = rad * np.cos(ang)
    out[ring, 1] = (rng.random(nr) - 0.5) * 2.0 * SATURN_RING_HALF_THICKNESS
    out[ring, 2] = rad * np.sin(ang)

    # Planet surface
    lat = np.arccos(2.0 * rng.random(npl) - 1.0)
    lon = rng.random(npl) * 2.0 * np.pi
    planet = ~ring
    out[planet, 0] = SATURN_PLANET_RADIUS * np.cos(lon) * np.sin(lat)
    out[planet, 1] = SATURN_PLANET_RADIUS * np.sin(lon) * np.sin(lat)
    out[planet, 2] = SATURN_PLANET_RADIUS * np.cos(lat)
    return out


def _fireworks(rng, n):
    radius = FIREWORKS_RADIUS * np.cbrt(rng.random(n))
    theta = rng.random(n) * 2.0 * np.pi
    phi = np.arccos(2.0 * rng.random(n) - 1.0)
    out = np.empty((n, 3))
    out[:, 0] = radius * np.sin(phi) * np.cos(theta)
    out[:, 1] = radius * np.sin(phi) * np.sin(theta)
    out[:, 2] = radius * np.cos(phi)
    return out


def _buddha(rng, n, max_rounds):
    out = np.empty((n, 3))
    part = rng.random(n)
    lo = 0.0
    for _, prob, box, den, thresh, y_off in BUDDHA_REGIONS:
        sel = np.flatnonzero((part >= lo) & (part < lo + prob))
        lo += prob
        pts = _rejection_sample(rng, sel.size, box, den, thresh, max_rounds)
        pts[:, 1] += y_off
        out[sel] = pts
    # part can't reach 1.0, but float sums of the probabilities might stop short
    rest = np.flatnonzero(part >= lo)
    if rest.size:
        _, _, box, den, thresh, y_off = BUDDHA_REGIONS[-1]
        pts = _rejection_sample(rng, rest.size, box, den, thresh, max_rounds)
        pts[:, 1] += y_off
        out[rest] = pts
    return out


def _rejection_sample(rng, n, box, den, thresh, max_rounds):
    # Unaccepted leftovers stay at the region centre, which is always inside.
    out = np.zeros((n, 3))
    pending = np.arange(n)
    box = np.asarray(box)
    for _ in range(max(1, int(max_rounds))):
        if pending.size == 0:
            break
        cand = (rng.random((pending.size, 3)) - 0.5) * box
        ok = _quadric(cand, den) < thresh
        out[pending[ok]] = cand[ok]
        pending = pending[~ok]
    if pending.size:
        logger.debug("Rejection sampling capped, %d points left at region centre", pending.size)
    return out


def _quadric(pts, den):
    return (pts[:, 0] ** 2 / den[0]) + (pts[:, 1] ** 2 / den[1]) + (pts[:, 2] ** 2 / den[2])


# ========================= Geometric predicates =========================

def _region(name):
    for region in BUDDHA_REGIONS:
        if region[0] == name:
            return region
    raise KeyError(name)


def in_buddha_region(points, name: str) -> np.ndarray:
    """Boolean mask of points inside the named Buddha body region."""
    _, _, _, den, thresh, y_off = _region(name)
    local = np.asarray(points, dtype=np.float64).reshape(-1, 3).copy()
    local[:, 1] -= y_off
    return _quadric(local, den) < thresh


def in_buddha_legs(points):
    return in_buddha_region(points, "legs")


def in_buddha_torso(points):
    return in_buddha_region(points, "torso")


def in_buddha_head(points):
    return in_buddha_region(points, "head")


def in_saturn_ring(points, eps=1e-9):
    p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    r = np.hypot(p[:, 0], p[:, 2])
    return ((r >= SATURN_RING_MIN - eps) & (r <= SATURN_RING_MAX + eps)
            & (np.abs(p[:, 1]) <= SATURN_RING_HALF_THICKNESS + eps))


def in_saturn_planet(points, eps=1e-6):
    p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return np.abs(np.linalg.norm(p, axis=1) - SATURN_PLANET_RADIUS) <= eps


def in_fireworks(points, eps=1e-9):
    p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return np.linalg.norm(p, axis=1) <= FIREWORKS_RADIUS + eps
