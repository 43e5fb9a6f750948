"""Diagnostic overlays: field plot, modulation spectrum and tensor readout."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from .fields import (
    curvature_scalar,
    einstein_rr,
    g_rr,
    g_thth,
    metric_determinant_root,
    phi_radial,
    phi_radial_prime,
    ricci_rr,
)

__all__ = [
    "HISTORY_LIMIT",
    "SPECTRUM_MIN_SAMPLES",
    "Rect",
    "PlotCurve",
    "Spectrum",
    "ModulationHistory",
    "field_plot",
    "SpectrumJob",
    "dft_magnitude",
    "spectrum_from_magnitudes",
    "spectrum_plot",
    "tensor_readout",
]

HISTORY_LIMIT = 1024
SPECTRUM_MIN_SAMPLES = 32
PLOT_RANGE = (0.0, 2.0)
READOUT_RADII = (0.3, 0.8, 1.2, 2.0)

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def map(self, u: float, v: float) -> Point:
        """Map ``u, v`` in ``[0, 1]`` to pixels, ``v`` pointing up."""

        return self.x + u * self.w, self.y + (1.0 - v) * self.h


@dataclass
class PlotCurve:
    label: str
    color: str
    points: List[Point]


@dataclass
class Spectrum:
    magnitudes: List[float]
    peak_index: int
    curve: List[Point]
    peak_marker: Point


class ModulationHistory:
    """Bounded FIFO of one scalar per frame; oldest samples fall off."""

    def __init__(self, maxlen: int = HISTORY_LIMIT) -> None:
        self._samples: Deque[float] = deque(maxlen=max(1, int(maxlen)))

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def maxlen(self) -> int:
        return self._samples.maxlen or 0

    def push(self, value: float) -> None:
        if math.isfinite(value):
            self._samples.append(float(value))

    def clear(self) -> None:
        self._samples.clear()

    def values(self) -> List[float]:
        return list(self._samples)


def field_plot(rect: Rect, samples: int = 120) -> List[PlotCurve]:
    """Sample the metric weights over ``r`` in ``[0, 2]`` into ``rect``."""

    samples = max(2, int(samples))
    lo, hi = PLOT_RANGE
    radii = [lo + (hi - lo) * i / (samples - 1) for i in range(samples)]
    series = (
        ("g_rr", "#FF6B6B", [g_rr(r) for r in radii]),
        ("g_θθ", "#6BCBFF", [g_thth(r) for r in radii]),
        ("√|g_rr·g_θθ|", "#B8FF6B", [metric_determinant_root(r) for r in radii]),
    )
    top = max(max(values) for _, _, values in series) or 1.0
    curves: List[PlotCurve] = []
    for label, color, values in series:
        points = [rect.map(i / (samples - 1), value / top) for i, value in enumerate(values)]
        curves.append(PlotCurve(label, color, points))
    return curves


@lru_cache(maxsize=8)
def _twiddles(n: int) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    angles = [2.0 * math.pi * m / n for m in range(n)]
    return tuple(math.cos(a) for a in angles), tuple(math.sin(a) for a in angles)


class SpectrumJob:
    """Direct DFT of a frozen sample window, computed a few bins at a time.

    The twiddle factors ``exp(-2 pi i m / N)`` come from a table shared by all
    jobs of the same length, so the summation loop does no trigonometry.
    """

    def __init__(self, samples: Sequence[float]) -> None:
        self.samples: List[float] = [float(v) for v in samples]
        self.magnitudes: List[float] = []

    @property
    def bin_count(self) -> int:
        n = len(self.samples)
        return n // 2 + 1 if n else 0

    @property
    def done(self) -> bool:
        return len(self.magnitudes) >= self.bin_count

    def advance(self, bins: int) -> bool:
        """Compute up to ``bins`` more bins; return whether the job is done."""

        samples = self.samples
        n = len(samples)
        if not n:
            return True
        cos_t, sin_t = _twiddles(n)
        stop = min(self.bin_count, len(self.magnitudes) + max(1, int(bins)))
        for k in range(len(self.magnitudes), stop):
            re = 0.0
            im = 0.0
            m = 0
            for value in samples:
                re += value * cos_t[m]
                im -= value * sin_t[m]
                m += k
                if m >= n:
                    m -= n
            self.magnitudes.append(math.hypot(re, im))
        return self.done

    def run(self) -> List[float]:
        self.advance(self.bin_count)
        return self.magnitudes


def dft_magnitude(samples: Sequence[float]) -> List[float]:
    """Magnitudes of bins ``0..N//2`` by direct summation."""

    return SpectrumJob(samples).run()


def spectrum_from_magnitudes(mags: Sequence[float], rect: Rect) -> Spectrum:
    # The DC bin only reflects the mean radius.
    peak = max(range(1, len(mags)), key=mags.__getitem__)
    top = max(mags[1:]) or 1.0
    last = len(mags) - 1
    curve = [rect.map(k / last, min(1.0, mag / top)) for k, mag in enumerate(mags)]
    marker = rect.map(peak / last, min(1.0, mags[peak] / top))
    return Spectrum(list(mags), peak, curve, marker)


def spectrum_plot(history: Iterable[float], rect: Rect) -> Optional[Spectrum]:
    values = list(history)
    if len(values) < SPECTRUM_MIN_SAMPLES:
        return None
    return spectrum_from_magnitudes(dft_magnitude(values), rect)


def tensor_readout(radii: Sequence[float] = READOUT_RADII) -> str:
    blocks = []
    for r in radii:
        blocks.append(
            "\n".join(
                (
                    f"r = {r:.2f}",
                    f"φ = {phi_radial(r):.5f}",
                    f"φ' = {phi_radial_prime(r):.5f}",
                    f"R_rr = {ricci_rr(r):.5f}",
                    f"G_rr = {einstein_rr(r):.5f}",
                    f"K = {curvature_scalar(r):.5f}",
                )
            )
        )
    return "\n\n".join(blocks)
