"""Scene aggregate: owns camera, viewport, geometry and pools, produces frames.

The host surface calls :meth:`Scene.resize`, :meth:`Scene.wheel` and
:meth:`Scene.focus_on` from its event handlers and :meth:`Scene.tick` once
per display refresh.  ``tick`` is synchronous: it advances every simulation
by one frame and returns a :class:`FrameDrawing` the host paints as is.

Everything drawn in a frame is warped with the single
:class:`~sinkhole.twist.TwistParams` built at the start of that tick.
"""

from __future__ import annotations

import copy
import math
import os
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .bodies import BODIES, OrbitingBody, body_outline, body_screen_position
from .control.config import DEFAULTS, LIMITS
from .diagnostics import (
    SPECTRUM_MIN_SAMPLES,
    ModulationHistory,
    Rect,
    Spectrum,
    SpectrumJob,
    field_plot,
    spectrum_from_magnitudes,
    tensor_readout,
)
from .geometry import (
    ClipBoundary,
    DiscStack,
    ScreenMapping,
    advance_disc_rings,
    build_concentric_circles,
    build_disc_rings,
    build_funnel_lines,
    build_orbit_rings,
    build_radial_fan,
    grid_max_radius,
    ring_tilt,
    warp_polylines,
)
from .particles import POOL_FACTORIES, ParticlePool
from .twist import ZOOM_MAX, ZOOM_MIN, TwistParams

__all__ = [
    "SCALE_MIN",
    "SCALE_MAX",
    "ViewportState",
    "CameraState",
    "Stroke",
    "Dot",
    "EllipseShape",
    "TextBlock",
    "FrameDrawing",
    "Scene",
]

SCALE_MIN = 0.1
SCALE_MAX = 4.0

Point = Tuple[float, float]


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def _coerce_float(value: object, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off", ""}:
            return False
        return default
    return bool(value)


def _env_flag(name: str) -> bool:
    return _coerce_bool(os.environ.get(name))


# ---------------------------------------------------------------------------
# State


@dataclass
class ViewportState:
    width: float = 0.0
    height: float = 0.0
    pixel_density: float = 1.0


@dataclass
class CameraState:
    zoom: float = 1.0
    global_scale: float = 1.0
    twist_strength: float = 2.5
    twist_phase: float = 0.0
    target_zoom: Optional[float] = None

    def params(self) -> TwistParams:
        return TwistParams(self.zoom, self.twist_strength, self.twist_phase)


# ---------------------------------------------------------------------------
# Drawing primitives handed to the host


@dataclass
class Stroke:
    points: List[Point]
    color: str
    alpha: float = 1.0
    width: float = 1.0
    closed: bool = False
    clipped: bool = False
    fill: Optional[str] = None


@dataclass
class Dot:
    x: float
    y: float
    radius: float
    color: str
    alpha: float = 1.0


@dataclass
class EllipseShape:
    x: float
    y: float
    w: float
    h: float
    angle: float
    color: str
    alpha: float = 1.0
    width: float = 1.0
    clipped: bool = False


@dataclass
class TextBlock:
    x: float
    y: float
    text: str
    color: str = "#86EFAC"


Primitive = Union[Stroke, Dot, EllipseShape, TextBlock]


@dataclass
class FrameDrawing:
    """One frame of output.

    ``scene`` primitives live in viewport pixels and are subject to the global
    scale; ``overlay`` primitives are painted afterwards, unscaled.
    """

    width: float
    height: float
    pixel_density: float
    global_scale: float
    clip: Optional[ClipBoundary] = None
    scene: List[Primitive] = field(default_factory=list)
    overlay: List[Primitive] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scene


class Scene:
    """Owned aggregate of all mutable renderer state."""

    def __init__(self, params: Optional[Mapping[str, object]] = None, rng: Optional[random.Random] = None) -> None:
        self.state: Dict[str, dict] = copy.deepcopy(DEFAULTS)
        self.viewport = ViewportState()
        self.camera = CameraState()
        self.stack: Optional[DiscStack] = None
        self.mapping: Optional[ScreenMapping] = None
        self.funnel_lines: List[Tuple[List[Point], int]] = []
        self.history = ModulationHistory()
        self.pools: Dict[str, ParticlePool] = {}
        self.bodies: Tuple[OrbitingBody, ...] = BODIES
        self.frame_index = 0
        self.elapsed = 0.0
        self._rng = rng
        self._last_clock: Optional[float] = None
        self._grid_key: Optional[tuple] = None
        self._grid_base: Tuple[list, list] = ([], [])
        self._spectrum: Optional[Spectrum] = None
        self._spectrum_frame = -1
        self._spectrum_job: Optional[SpectrumJob] = None
        self._tensor_text = tensor_readout()
        if params:
            self.merge_state(params)
        self.history = ModulationHistory(self._int("diagnostics", "historySize", 1024))
        self._sync_camera_from_state()
        self._rebuild_pools()

    # ------------------------------------------------------------------ helpers
    @property
    def debug_enabled(self) -> bool:
        return self._flag("system", "debug", False) or _env_flag("SINKHOLE_DEBUG")

    def _debug(self, message: str) -> None:
        if self.debug_enabled:
            print(f"[Sinkhole][DEBUG] {message}", flush=True)

    def _warn(self, message: str) -> None:
        print(f"[Sinkhole][WARN] {message}", file=sys.stderr)

    def _section(self, name: str) -> dict:
        section = self.state.get(name)
        return section if isinstance(section, dict) else {}

    def _number(self, section: str, key: str, fallback: float) -> float:
        value = _coerce_float(self._section(section).get(key), fallback)
        bounds = LIMITS.get(f"{section}.{key}")
        if bounds is not None:
            value = clamp(value, bounds[0], bounds[1])
        return value

    def _int(self, section: str, key: str, fallback: int) -> int:
        value = self._number(section, key, fallback)
        return int(round(value)) if math.isfinite(value) else int(fallback)

    def _flag(self, section: str, key: str, fallback: bool = True) -> bool:
        return _coerce_bool(self._section(section).get(key), fallback)

    # ------------------------------------------------------------------ configuration
    def merge_state(self, payload: Mapping[str, object]) -> None:
        for key, value in payload.items():
            if key not in self.state or not isinstance(self.state[key], dict) or not isinstance(value, Mapping):
                self.state[key] = value  # type: ignore[assignment]
                continue
            for sub_key, sub_value in value.items():
                if isinstance(self.state[key].get(sub_key), dict) and isinstance(sub_value, Mapping):
                    self.state[key][sub_key].update(sub_value)
                else:
                    self.state[key][sub_key] = sub_value

    def set_params(self, payload: Mapping[str, object]) -> None:
        if not isinstance(payload, Mapping):
            return
        self.merge_state(payload)
        if "camera" in payload:
            self._sync_camera_from_state()
        if "particles" in payload or "system" in payload:
            self._rebuild_pools()
        if "discs" in payload:
            self._rebuild_base_geometry()
        if "diagnostics" in payload:
            self.history = ModulationHistory(self._int("diagnostics", "historySize", 1024))
            self._spectrum = None
            self._spectrum_job = None

    def _sync_camera_from_state(self) -> None:
        self.camera.zoom = self._number("camera", "zoom", 1.0)
        self.camera.global_scale = self._number("camera", "globalScale", 1.0)
        self.camera.twist_strength = self._number("camera", "twistStrength", 2.5)

    def _rebuild_pools(self) -> None:
        seed = self._section("system").get("seed")
        cfg = self._section("particles")
        self.pools = {}
        for index, (name, factory) in enumerate(POOL_FACTORIES.items()):
            pool_cfg = cfg.get(name)
            if not isinstance(pool_cfg, Mapping) or not _coerce_bool(pool_cfg.get("enabled")):
                continue
            spec = factory(
                capacity=int(_coerce_float(pool_cfg.get("capacity"), 0)),
                batch=int(_coerce_float(pool_cfg.get("batch"), 1)),
            )
            if self._rng is not None:
                rng = random.Random(self._rng.random())
            elif seed is not None:
                rng = random.Random(f"{seed}:{index}")
            else:
                rng = random.Random()
            pool = ParticlePool(spec, rng)
            if self.stack is not None:
                pool.fill()
            self.pools[name] = pool
        self._debug(f"pools active: {sorted(self.pools)}")

    # ------------------------------------------------------------------ host entry points
    def resize(self, width: float, height: float, pixel_density: float = 1.0) -> bool:
        """Record the new viewport and rebuild cached base geometry.

        Returns ``False`` (keeping the previous geometry) for a malformed size.
        """

        width = _coerce_float(width, 0.0)
        height = _coerce_float(height, 0.0)
        if not (math.isfinite(width) and math.isfinite(height)) or width <= 0.0 or height <= 0.0:
            self._warn(f"ignoring viewport {width!r}x{height!r}")
            return False
        density = _coerce_float(pixel_density, 1.0)
        if not math.isfinite(density) or density <= 0.0:
            density = 1.0
        self.viewport = ViewportState(width, height, min(density, self._number("system", "dprClamp", 2.0)))
        self._rebuild_base_geometry()
        for pool in self.pools.values():
            pool.clear()
            pool.fill()
        self._debug(f"resize {width:.0f}x{height:.0f} dpr={self.viewport.pixel_density:.2f}")
        return True

    def _rebuild_base_geometry(self) -> None:
        width, height = self.viewport.width, self.viewport.height
        stack = build_disc_rings(width, height, self._int("discs", "count", 100))
        if stack is None:
            return
        self.stack = stack
        self.mapping = ScreenMapping.for_stack(stack, width, height, self._number("system", "worldUnitRatio", 0.16))
        self.funnel_lines = build_funnel_lines(stack, self._int("discs", "funnelLines", 100))
        self._grid_key = None

    def wheel(self, delta_y: float, modifier_held: bool = False) -> None:
        if delta_y == 0:
            return
        step = self._number("camera", "zoomStep", 1.05)
        factor = step if delta_y < 0 else 1.0 / step
        if modifier_held:
            self.camera.global_scale = clamp(self.camera.global_scale * factor, SCALE_MIN, SCALE_MAX)
            return
        self.camera.target_zoom = None
        self.camera.zoom = clamp(self.camera.zoom * factor, ZOOM_MIN, ZOOM_MAX)

    def focus_on(self, body_index: int) -> float:
        """Ease the zoom toward ``3 / radius`` of the selected body."""

        if not 0 <= body_index < len(self.bodies):
            raise IndexError(f"no body at index {body_index!r}")
        body = self.bodies[body_index]
        target = clamp(3.0 / body.radius, ZOOM_MIN, ZOOM_MAX)
        self.camera.target_zoom = target
        self._debug(f"focus {body.name} target_zoom={target:.3f}")
        return target

    def release_focus(self) -> None:
        self.camera.target_zoom = None

    # ------------------------------------------------------------------ frame loop
    def _advance_clock(self, dt: Optional[float]) -> None:
        if dt is None:
            now = time.perf_counter()
            dt = 0.0 if self._last_clock is None else now - self._last_clock
            self._last_clock = now
        self.elapsed += max(0.0, float(dt))

    def _advance_camera(self) -> None:
        cam = self.camera
        cam.twist_phase += self._number("camera", "twistPhaseSpeed", 0.01)
        if cam.target_zoom is not None:
            easing = self._number("camera", "focusEasing", 0.1)
            cam.zoom = clamp(cam.zoom + (cam.target_zoom - cam.zoom) * easing, ZOOM_MIN, ZOOM_MAX)

    def tick(self, dt: Optional[float] = None) -> FrameDrawing:
        """Advance one frame and return what to draw.

        ``dt`` is the elapsed animation time in seconds; when omitted the wall
        clock is used.
        """

        self._advance_clock(dt)
        self._advance_camera()
        self.frame_index += 1

        vp = self.viewport
        frame = FrameDrawing(vp.width, vp.height, vp.pixel_density, self.camera.global_scale)
        params = self.camera.params()

        self._update_discs(frame, params)
        self._update_particles(frame, params)
        if self.stack is None or self.mapping is None:
            return frame
        if self._flag("orbits", "enabled"):
            self._draw_orbit_rings(frame, params)
        if self._flag("orbits", "bodies"):
            self._draw_bodies(frame, params)
        self._draw_diagnostics(frame)
        return frame

    # ------------------------------------------------------------------ layers
    def _update_discs(self, frame: FrameDrawing, params: TwistParams) -> None:
        stack = self.stack
        if stack is None or self.mapping is None:
            return
        advance_disc_rings(stack, self._number("discs", "speed", 0.001))
        frame.clip = stack.clip

        color = str(self._section("discs").get("color", "#444444"))
        width = self._number("discs", "lineWidth", 2.0)
        start = stack.start
        frame.scene.append(EllipseShape(start.x, start.y, start.w, start.h, 0.0, color, width=width))
        stride = self._int("discs", "ringStride", 5)
        clip_w = stack.clip.w if stack.clip is not None else math.inf
        for i, ring in enumerate(stack.rings):
            if i % stride:
                continue
            frame.scene.append(
                EllipseShape(
                    ring.x, ring.y, ring.w, ring.h, ring_tilt(stack, ring), color,
                    width=width, clipped=ring.w < clip_w - 5.0,
                )
            )
        for points, clip_from in self.funnel_lines:
            head = points[: clip_from + 1]
            if len(head) > 1:
                frame.scene.append(Stroke(head, color, width=width))
            tail = points[clip_from:]
            if len(tail) > 1:
                frame.scene.append(Stroke(tail, color, width=width, clipped=True))

        if self._flag("grid", "enabled"):
            self._draw_grid(frame, params)

    def _grid_base_for(self, zoom: float) -> Tuple[list, list]:
        key = (
            round(grid_max_radius(zoom), 6),
            self._int("grid", "spokes", 48),
            self._int("grid", "steps", 40),
            self._int("grid", "circles", 10),
            self._int("grid", "samples", 90),
        )
        if key != self._grid_key:
            _, spokes, steps, circles, samples = key
            self._grid_base = (
                build_radial_fan(zoom, spokes, steps),
                build_concentric_circles(zoom, circles, samples),
            )
            self._grid_key = key
        return self._grid_base

    def _draw_grid(self, frame: FrameDrawing, params: TwistParams) -> None:
        mapping = self.mapping
        fan, circles = self._grid_base_for(params.zoom)
        color = str(self._section("grid").get("color", "#6A6A9A"))
        alpha = self._number("grid", "alpha", 0.35)
        width = self._number("grid", "lineWidth", 1.0)
        for line in warp_polylines(fan, params):
            frame.scene.append(Stroke(mapping.polyline(line), color, alpha, width))
        for line in warp_polylines(circles, params):
            frame.scene.append(Stroke(mapping.polyline(line), color, alpha, width, closed=True))

    def _update_particles(self, frame: FrameDrawing, params: TwistParams) -> None:
        total = 0.0
        count = 0
        clip = self.stack.clip if self.stack is not None else None
        for pool in self.pools.values():
            pool.step()
            if self.mapping is None:
                continue
            for particle, (wx, wy) in pool.positions():
                total += math.hypot(wx, wy)
                count += 1
                sx, sy = self.mapping.to_screen(*params.warp(wx, wy))
                if clip is not None and not clip.contains(sx, sy):
                    continue
                frame.scene.append(Dot(sx, sy, particle.size * 0.5, particle.color, clamp(particle.alpha, 0.0, 1.0)))
        if count:
            self.history.push(total / count)
        if self.frame_index % 300 == 0:
            self._debug("pool sizes " + ", ".join(f"{name}={len(pool)}" for name, pool in self.pools.items()))

    def _draw_orbit_rings(self, frame: FrameDrawing, params: TwistParams) -> None:
        rings = build_orbit_rings(
            self.bodies,
            params,
            self._int("orbits", "samples", 90),
            self._number("orbits", "alpha", 0.35),
        )
        for ring in rings:
            frame.scene.append(Stroke(self.mapping.polyline(ring.points), ring.color, ring.alpha, 1.0, closed=True))

    def _draw_bodies(self, frame: FrameDrawing, params: TwistParams) -> None:
        mapping = self.mapping
        meridians = self._int("orbits", "meridians", 12)
        parallels = self._int("orbits", "parallels", 5)
        for body in self.bodies:
            outline = body_outline(body, self.elapsed, params, meridians, parallels)
            silhouette = mapping.polyline(outline.silhouette)
            frame.scene.append(Stroke(silhouette, outline.glow, 0.2, 6.0, closed=True))
            frame.scene.append(Stroke(silhouette, body.color, 0.9, 1.5, closed=True, fill=outline.fill))
            for line in outline.meridians + outline.parallels:
                frame.scene.append(Stroke(mapping.polyline(line), "#FFFFFF", 0.3, 0.75))
            sx, sy = mapping.to_screen(*body_screen_position(body, self.elapsed, params))
            frame.scene.append(Dot(sx, sy, 1.5, body.color))

    def _draw_diagnostics(self, frame: FrameDrawing) -> None:
        inset_w = self._number("diagnostics", "insetWidth", 220)
        inset_h = self._number("diagnostics", "insetHeight", 110)
        margin = self._number("diagnostics", "margin", 12)
        height = self.viewport.height
        width = self.viewport.width

        if self._flag("diagnostics", "fieldPlot"):
            rect = Rect(margin, height - margin - inset_h, inset_w, inset_h)
            frame.overlay.append(_frame_rect(rect))
            for curve in field_plot(rect):
                frame.overlay.append(Stroke(curve.points, curve.color, 0.9, 1.25))

        if self._flag("diagnostics", "spectrum"):
            rect = Rect(width - margin - inset_w, height - margin - inset_h, inset_w, inset_h)
            self._advance_spectrum(rect)
            if self._spectrum is not None:
                frame.overlay.append(_frame_rect(rect))
                frame.overlay.append(Stroke(self._spectrum.curve, "#FFD166", 0.9, 1.25))
                mx, my = self._spectrum.peak_marker
                frame.overlay.append(Dot(mx, my, 3.0, "#EF476F"))
                frame.overlay.append(TextBlock(rect.x + 4, rect.y + 12, f"peak k={self._spectrum.peak_index}", "#FFD166"))

        if self._flag("diagnostics", "tensorReadout"):
            frame.overlay.append(TextBlock(margin + 4, margin + 12, self._tensor_text))

    def _advance_spectrum(self, rect: Rect) -> None:
        """Refresh the spectrum every ``spectrumInterval`` ticks.

        The DFT of the history snapshot is spread over the interval so no
        single tick pays for all of it.  The previous spectrum stays on screen
        until the new one is complete.
        """

        interval = self._int("diagnostics", "spectrumInterval", 15)
        job = self._spectrum_job
        if job is None:
            due = self._spectrum is None or self.frame_index - self._spectrum_frame >= interval
            if not due or len(self.history) < SPECTRUM_MIN_SAMPLES:
                return
            job = self._spectrum_job = SpectrumJob(self.history.values())
            self._spectrum_frame = self.frame_index
        if job.advance(math.ceil(job.bin_count / interval)):
            self._spectrum = spectrum_from_magnitudes(job.magnitudes, rect)
            self._spectrum_job = None

    @property
    def transparent(self) -> bool:
        return self._flag("system", "transparent", False)

    @property
    def frame_interval_ms(self) -> int:
        return self._int("system", "frameIntervalMs", 16)

    # ------------------------------------------------------------------ queries
    def pool_sizes(self) -> Dict[str, int]:
        return {name: len(pool) for name, pool in self.pools.items()}

    @property
    def spectrum(self) -> Optional[Spectrum]:
        return self._spectrum


def _frame_rect(rect: Rect) -> Stroke:
    corners = [(rect.x, rect.y), (rect.x + rect.w, rect.y), (rect.x + rect.w, rect.y + rect.h), (rect.x, rect.y + rect.h)]
    return Stroke(corners, "#FFFFFF", 0.25, 1.0, closed=True)
