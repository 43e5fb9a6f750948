"""Zoom transition and the hyper-twist warp.

:func:`hyper_twist` is the only non-linear map in the renderer.  Every layer
(grid, rings, bodies, particles) goes through it with the same parameters for
a given frame, which is what keeps the layers aligned while zooming.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .fields import g_rr, g_rth

__all__ = [
    "ZOOM_MIN",
    "ZOOM_MAX",
    "DEFAULT_INTENSITY",
    "transition",
    "hyper_twist",
    "TwistParams",
]

ZOOM_MIN = 0.05
ZOOM_MAX = 5.0
DEFAULT_INTENSITY = 2.5

Point = Tuple[float, float]


def transition(zoom: float, zoom_min: float = ZOOM_MIN, zoom_max: float = ZOOM_MAX) -> float:
    """Map ``zoom`` to a blend factor: 0 at ``zoom_max`` (flat), 1 at ``zoom_min``.

    The value is clamped because easing may briefly push the zoom past its
    bounds.
    """

    span = zoom_max - zoom_min
    if span <= 0.0:
        return 0.0
    value = (zoom_max - zoom) / span
    return max(0.0, min(1.0, value))


def hyper_twist(
    x: float,
    y: float,
    zoom: float,
    intensity: float = DEFAULT_INTENSITY,
    phase_offset: float = 0.0,
) -> Point:
    """Warp ``(x, y)`` by an angle and radius blend controlled by ``zoom``.

    Parameters
    ----------
    x, y:
        Point in world units, origin at the funnel centre.
    zoom:
        Camera zoom, converted with :func:`transition`.
    intensity:
        Multiplier applied to :func:`~sinkhole.fields.g_rth` for the angular
        warp.
    phase_offset:
        Extra rotation, strongest near the centre (``exp(-1.5 r)``).  The scene
        feeds its ever increasing twist phase here.
    """

    r = math.hypot(x, y)
    if r == 0.0:
        return 0.0, 0.0
    t = transition(zoom)
    theta = math.atan2(y, x)
    theta_new = theta + t * (g_rth(r) * intensity + phase_offset * math.exp(-1.5 * r))
    r_new = (1.0 - t) * r + t * r * math.sqrt(g_rr(r))
    return r_new * math.cos(theta_new), r_new * math.sin(theta_new)


@dataclass(frozen=True)
class TwistParams:
    """Warp parameters frozen for the duration of one frame."""

    zoom: float
    intensity: float = DEFAULT_INTENSITY
    phase: float = 0.0

    def warp(self, x: float, y: float) -> Point:
        return hyper_twist(x, y, self.zoom, self.intensity, self.phase)

    def warp_points(self, points: Iterable[Point]) -> List[Point]:
        return [hyper_twist(px, py, self.zoom, self.intensity, self.phase) for px, py in points]

    @property
    def blend(self) -> float:
        return transition(self.zoom)
