"""Orbiting bodies: reference data and closed-form motion.

Positions are never integrated.  Everything is a function of the elapsed time
and of the frame's :class:`~sinkhole.twist.TwistParams`, so pausing or
dropping frames cannot make a body drift off its ring.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass
from typing import List, Tuple

from .geometry import orbit_world_radius
from .twist import TwistParams

__all__ = [
    "OrbitingBody",
    "BODIES",
    "SPIN_TILT_TABLE",
    "predict_spin_tilt",
    "orbital_position",
    "body_screen_position",
    "spin_rate",
    "spin_angle",
    "BodyOutline",
    "body_outline",
]

Point = Tuple[float, float]


@dataclass(frozen=True)
class OrbitingBody:
    name: str
    radius: float
    visual_size: float
    orbital_period: float
    color: str
    spin_tilt_degrees: float


# Orbital radius -> axial tilt in degrees.
SPIN_TILT_TABLE: Tuple[Tuple[float, float], ...] = (
    (0.2, 0.03),
    (0.3, 177.4),
    (0.45, 23.44),
    (0.6, 25.19),
    (0.9, 3.13),
    (1.2, 26.73),
    (1.5, 97.77),
    (1.8, 28.3),
)

_TILT_RADII = [entry[0] for entry in SPIN_TILT_TABLE]


def predict_spin_tilt(radius: float) -> float:
    """Interpolate the tilt for ``radius``; clamps outside the table."""

    if radius <= _TILT_RADII[0]:
        return SPIN_TILT_TABLE[0][1]
    if radius >= _TILT_RADII[-1]:
        return SPIN_TILT_TABLE[-1][1]
    idx = bisect.bisect_left(_TILT_RADII, radius)
    r1, v1 = SPIN_TILT_TABLE[idx]
    if radius == r1:
        return v1
    r0, v0 = SPIN_TILT_TABLE[idx - 1]
    return v0 + (v1 - v0) * (radius - r0) / (r1 - r0)


def _body(name: str, radius: float, size: float, period: float, color: str) -> OrbitingBody:
    return OrbitingBody(name, radius, size, period, color, predict_spin_tilt(radius))


# Periods are in seconds of animation time.
BODIES: Tuple[OrbitingBody, ...] = (
    _body("Mercury", 0.2, 0.035, 8.8, "#B5B5B5"),
    _body("Venus", 0.3, 0.055, 22.5, "#E8C16A"),
    _body("Earth", 0.45, 0.06, 36.5, "#3AAAFF"),
    _body("Mars", 0.6, 0.045, 68.7, "#D9583B"),
    _body("Jupiter", 0.9, 0.12, 118.6, "#D8B48A"),
    _body("Saturn", 1.2, 0.1, 147.0, "#E3D39B"),
    _body("Uranus", 1.5, 0.08, 184.0, "#8FE3E8"),
    _body("Neptune", 1.8, 0.075, 216.5, "#4A6CFF"),
)


def orbital_position(body: OrbitingBody, elapsed: float) -> Point:
    """Unwarped world position of ``body`` at ``elapsed`` seconds."""

    omega = 2.0 * math.pi / body.orbital_period
    angle = omega * elapsed
    scale = orbit_world_radius(body.radius) / body.radius
    return body.radius * math.cos(angle) * scale, body.radius * math.sin(angle) * scale


def body_screen_position(body: OrbitingBody, elapsed: float, params: TwistParams) -> Point:
    x, y = orbital_position(body, elapsed)
    return params.warp(x, y)


def spin_rate(radius: float, elapsed: float) -> float:
    amplitude = 2.0 + 0.5 * math.sin(0.11 * elapsed)
    exponent = 1.5 + 0.25 * math.sin(0.07 * elapsed)
    return amplitude / (1.0 + radius) ** exponent


def spin_angle(radius: float, elapsed: float) -> float:
    return spin_rate(radius, elapsed) * elapsed


@dataclass
class BodyOutline:
    silhouette: List[Point]
    meridians: List[List[Point]]
    parallels: List[List[Point]]
    fill: str
    glow: str = "#64C8FF"


def body_outline(
    body: OrbitingBody,
    elapsed: float,
    params: TwistParams,
    meridians: int = 12,
    parallels: int = 5,
    samples: int = 36,
) -> BodyOutline:
    """Return the warped globe of ``body``: filled silhouette plus its grid.

    Meridians turn with the spin and the whole globe leans by its axial tilt.
    Parallels sit at ``pi * j / (parallels + 2) - pi / 2`` for
    ``j = 1..parallels``.  The local shape is laid out around the orbital
    position first and every point is then warped, so a body keeps its place
    on its ring however hard the scene twists.
    """

    cx, cy = orbital_position(body, elapsed)
    size = body.visual_size
    tilt = math.radians(body.spin_tilt_degrees)
    cos_t, sin_t = math.cos(tilt), math.sin(tilt)
    spin = spin_angle(body.radius, elapsed)
    half = max(2, samples // 2)

    def _place(dx: float, dy: float) -> Point:
        rx = dx * cos_t - dy * sin_t
        ry = dx * sin_t + dy * cos_t
        return params.warp(cx + rx, cy + ry)

    def _ring(radius: float, dy: float) -> List[Point]:
        return [_place(radius * math.cos(2.0 * math.pi * k / samples), dy) for k in range(samples + 1)]

    silhouette = [
        _place(size * math.cos(2.0 * math.pi * k / samples), size * math.sin(2.0 * math.pi * k / samples))
        for k in range(samples)
    ]

    meridian_lines: List[List[Point]] = []
    for m in range(max(0, meridians)):
        lon = 2.0 * math.pi * m / meridians + spin
        meridian_lines.append(
            [
                _place(math.cos(lon) * math.cos(lat) * size, math.sin(lat) * size)
                for lat in (math.pi * j / half - math.pi / 2.0 for j in range(half + 1))
            ]
        )

    parallel_lines: List[List[Point]] = []
    for j in range(1, max(0, parallels) + 1):
        lat = math.pi * j / (parallels + 2) - math.pi / 2.0
        parallel_lines.append(_ring(abs(math.cos(lat)) * size, math.sin(lat) * size))

    return BodyOutline(silhouette, meridian_lines, parallel_lines, body.color)
