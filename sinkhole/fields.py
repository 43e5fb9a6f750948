"""Analytic field functions shared by the warp, the plots and the readout.

The "metric" here is a stylised approximation chosen for its look, not the
output of a solver.  Every function is pure and finite for ``r >= 0`` so the
renderer can call them freely from any layer.
"""

from __future__ import annotations

import math
import sys
from typing import Tuple

__all__ = [
    "g_rr",
    "g_thth",
    "g_rth",
    "metric_determinant_root",
    "phi",
    "grad_phi",
    "phi_radial",
    "phi_radial_prime",
    "ricci_rr",
    "einstein_rr",
    "curvature_scalar",
]


# Smallest positive weight and largest value below 1.  Large radii round to
# the bounds otherwise.
_WEIGHT_FLOOR = sys.float_info.min
_BELOW_ONE = math.nextafter(1.0, 0.0)


def _shifted(r: float) -> Tuple[float, float]:
    """Return ``(r / (1 + r), 1 / (1 + r))`` without overflow, also for ``inf``."""

    if math.isinf(r):
        return 1.0, 0.0
    inv = 1.0 / (1.0 + r)
    return r * inv, inv


def g_rr(r: float) -> float:
    """Radial weight ``(pi r^2 + 16 (r^2 + 2r + 1)^2) / (16 (1 + r)^6)``.

    Evaluated as ``pi q^2 s^4 / 16 + s^2`` with ``q = r/(1+r)`` and
    ``s = 1/(1+r)``, which stays finite for any radius.
    """

    q, s = _shifted(r)
    s2 = s * s
    return max(math.pi * q * q * s2 * s2 / 16.0 + s2, _WEIGHT_FLOOR)


def g_thth(r: float) -> float:
    """Angular weight, 0 at the centre and tending to 1 far away."""

    q, _ = _shifted(r)
    return min(q * q, _BELOW_ONE)


def g_rth(r: float) -> float:
    """Cross term ``-pi r^2 / (1 + r)^4`` driving the angular twist."""

    q, s = _shifted(r)
    return -math.pi * q * q * s * s


def metric_determinant_root(r: float) -> float:
    return math.sqrt(abs(g_rr(r) * g_thth(r)))


def phi(x: float, y: float) -> float:
    return math.exp(-(x * x + y * y))


def grad_phi(x: float, y: float) -> Tuple[float, float]:
    """Return the gradient of :func:`phi`, ``(0, 0)`` at the origin."""

    if x == 0.0 and y == 0.0:
        return 0.0, 0.0
    value = phi(x, y)
    return -2.0 * x * value, -2.0 * y * value


# ---------------------------------------------------------------------------
# Radial potential used by the tensor readout overlay


def phi_radial(r: float) -> float:
    return math.exp(-r * r)


def phi_radial_prime(r: float) -> float:
    return -2.0 * r * math.exp(-r * r)


def _require_positive(r: float) -> float:
    value = float(r)
    if not value > 0.0:
        raise ValueError(f"radius must be > 0, got {r!r}")
    return value


def ricci_rr(r: float) -> float:
    """Return ``-(phi'(r) + phi(r) / r)`` for ``r > 0``."""

    r = _require_positive(r)
    return -(phi_radial_prime(r) + phi_radial(r) / r)


def einstein_rr(r: float) -> float:
    return 0.5 * ricci_rr(r)


def curvature_scalar(r: float) -> float:
    return ricci_rr(r) ** 2
