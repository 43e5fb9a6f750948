"""Base geometry of the funnel: disc rings, clip region, grid and orbit rings.

Two coordinate spaces live here:

* screen space (pixels, y down) for the disc stack, the clip region and the
  funnel wall lines, which only depend on the viewport size;
* world space (y up, origin at the funnel mouth) for the grid and the orbit
  rings, which go through :class:`~sinkhole.twist.TwistParams` every frame.

Builders return *unwarped* base geometry that may be cached between frames.
Warping happens in :func:`warp_polylines` / :func:`build_orbit_rings` and is
never cached.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .fields import g_thth
from .twist import TwistParams

__all__ = [
    "DISC_COUNT_MIN",
    "DISC_COUNT_MAX",
    "DiscRing",
    "ClipBoundary",
    "DiscStack",
    "ScreenMapping",
    "OrbitRing",
    "ease_in_expo",
    "tween",
    "build_disc_rings",
    "advance_disc_rings",
    "ring_tilt",
    "build_funnel_lines",
    "grid_max_radius",
    "build_radial_fan",
    "build_concentric_circles",
    "warp_polylines",
    "orbit_world_radius",
    "build_orbit_rings",
]

DISC_COUNT_MIN = 100
DISC_COUNT_MAX = 150
MAX_RING_TWIST = math.pi / 2.0

Point = Tuple[float, float]
Polyline = List[Point]


def ease_in_expo(t: float) -> float:
    return 0.0 if t == 0.0 else 2.0 ** (10.0 * t - 10.0)


def tween(start: float, end: float, p: float, ease=None) -> float:
    factor = ease(p) if ease is not None else p
    return start + (end - start) * factor


def _valid_extent(value: float) -> bool:
    return math.isfinite(value) and value > 0.0


# ---------------------------------------------------------------------------
# Disc stack


@dataclass
class DiscRing:
    """One interpolated ellipse of the funnel; ``w``/``h`` are radii."""

    x: float
    y: float
    w: float
    h: float
    p: float = 0.0

    def extent(self) -> float:
        return max(self.w, self.h)


@dataclass(frozen=True)
class ClipBoundary:
    """Ellipse plus the rectangular skirt above it (screen space)."""

    x: float
    y: float
    w: float
    h: float

    def contains(self, px: float, py: float) -> bool:
        if self.w > 0.0 and self.h > 0.0:
            dx = (px - self.x) / self.w
            dy = (py - self.y) / self.h
            if dx * dx + dy * dy <= 1.0:
                return True
        return (self.x - self.w) <= px <= (self.x + self.w) and 0.0 <= py <= self.y


@dataclass
class DiscStack:
    start: DiscRing
    end: DiscRing
    rings: List[DiscRing] = field(default_factory=list)
    clip: Optional[ClipBoundary] = None
    clip_index: int = -1

    def retween(self, ring: DiscRing) -> DiscRing:
        s, e = self.start, self.end
        ring.x = tween(s.x, e.x, ring.p)
        ring.y = tween(s.y, e.y, ring.p, ease_in_expo)
        ring.w = tween(s.w, e.w, ring.p)
        ring.h = tween(s.h, e.h, ring.p)
        return ring


def build_disc_rings(width: float, height: float, count: int = DISC_COUNT_MIN) -> Optional[DiscStack]:
    """Build the ring stack for a viewport, or ``None`` for a malformed size."""

    if not (_valid_extent(width) and _valid_extent(height)):
        return None
    count = max(DISC_COUNT_MIN, min(DISC_COUNT_MAX, int(count)))
    start = DiscRing(x=width * 0.5, y=height * 0.45, w=width * 0.75, h=height * 0.7, p=0.0)
    end = DiscRing(x=width * 0.5, y=height * 0.95, w=0.0, h=0.0, p=1.0)
    stack = DiscStack(start=start, end=end)

    max_extent = -math.inf
    for i in range(count):
        ring = stack.retween(DiscRing(0.0, 0.0, 0.0, 0.0, p=i / count))
        if ring.extent() > max_extent:
            max_extent = ring.extent()
            stack.clip_index = i
        stack.rings.append(ring)

    widest = stack.rings[stack.clip_index]
    stack.clip = ClipBoundary(widest.x, widest.y, widest.w, widest.h)
    return stack


def advance_disc_rings(stack: DiscStack, speed: float) -> None:
    for ring in stack.rings:
        ring.p = (ring.p + speed) % 1.0
        stack.retween(ring)


def ring_tilt(stack: DiscStack, ring: DiscRing) -> float:
    """Rotation of a ring, growing quadratically toward the funnel throat."""

    span = stack.end.y - stack.start.y
    if span == 0.0:
        return 0.0
    normalized = (ring.y - stack.start.y) / span
    return MAX_RING_TWIST * normalized * normalized


def build_funnel_lines(stack: DiscStack, count: int = 100) -> List[Tuple[Polyline, int]]:
    """Return the funnel wall lines threading every ring.

    Each entry is ``(points, clip_from)`` where ``clip_from`` is the index of
    the first point inside the clip region (``len(points)`` when none is);
    segments from there on are drawn masked by the clip region.
    """

    lines: List[Polyline] = [[] for _ in range(count)]
    step = 2.0 * math.pi / count
    for ring in stack.rings:
        tilt = ring_tilt(stack, ring)
        cos_t = math.cos(tilt)
        sin_t = math.sin(tilt)
        for i in range(count):
            angle = i * step
            dx = math.cos(angle) * ring.w
            dy = math.sin(angle) * ring.h
            lines[i].append((ring.x + dx * cos_t - dy * sin_t, ring.y + dx * sin_t + dy * cos_t))

    result: List[Tuple[Polyline, int]] = []
    for points in lines:
        clip_from = len(points)
        if stack.clip is not None:
            for j, (px, py) in enumerate(points):
                if j and stack.clip.contains(px, py):
                    clip_from = j
                    break
        result.append((points, clip_from))
    return result


# ---------------------------------------------------------------------------
# World space


@dataclass(frozen=True)
class ScreenMapping:
    """Affine map from world units (y up) to screen pixels (y down)."""

    cx: float
    cy: float
    unit: float

    @classmethod
    def for_stack(cls, stack: DiscStack, width: float, height: float, ratio: float = 0.16) -> "ScreenMapping":
        return cls(stack.start.x, stack.start.y, min(width, height) * ratio)

    def to_screen(self, x: float, y: float) -> Point:
        return self.cx + x * self.unit, self.cy - y * self.unit

    def polyline(self, points: Sequence[Point]) -> Polyline:
        return [self.to_screen(px, py) for px, py in points]


def grid_max_radius(zoom: float) -> float:
    zoom = max(zoom, 1e-3)
    return max(1.5, min(12.0, 3.6 / math.sqrt(zoom)))


def build_radial_fan(zoom: float, spokes: int = 48, steps: int = 40) -> List[Polyline]:
    spokes = max(1, int(spokes))
    steps = max(2, int(steps))
    reach = grid_max_radius(zoom)
    fan: List[Polyline] = []
    for i in range(spokes):
        angle = 2.0 * math.pi * i / spokes
        ca, sa = math.cos(angle), math.sin(angle)
        fan.append([(ca * reach * k / steps, sa * reach * k / steps) for k in range(steps + 1)])
    return fan


def build_concentric_circles(zoom: float, count: int = 10, samples: int = 90) -> List[Polyline]:
    count = max(1, int(count))
    samples = max(8, int(samples))
    reach = grid_max_radius(zoom)
    circles: List[Polyline] = []
    for c in range(1, count + 1):
        radius = reach * c / count
        circles.append(
            [
                (radius * math.cos(2.0 * math.pi * k / samples), radius * math.sin(2.0 * math.pi * k / samples))
                for k in range(samples + 1)
            ]
        )
    return circles


def warp_polylines(polylines: Sequence[Sequence[Point]], params: TwistParams) -> List[Polyline]:
    return [params.warp_points(line) for line in polylines]


# ---------------------------------------------------------------------------
# Orbit rings


@dataclass
class OrbitRing:
    name: str
    color: str
    alpha: float
    points: Polyline


def orbit_world_radius(radius: float) -> float:
    """World radius of an orbit: ``3 * sqrt(g_thth(radius))``."""

    return 3.0 * math.sqrt(g_thth(radius))


def build_orbit_rings(bodies, params: TwistParams, samples: int = 90, alpha: float = 0.35) -> List[OrbitRing]:
    samples = max(8, int(samples))
    rings: List[OrbitRing] = []
    for body in bodies:
        radius = orbit_world_radius(body.radius)
        points = [
            params.warp(radius * math.cos(2.0 * math.pi * k / samples), radius * math.sin(2.0 * math.pi * k / samples))
            for k in range(samples)
        ]
        rings.append(OrbitRing(body.name, body.color, alpha, points))
    return rings
