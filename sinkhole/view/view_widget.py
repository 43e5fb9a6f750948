"""Qt host surface for the sinkhole scene.

The widget owns a :class:`~sinkhole.scene.Scene`, drives it from a
``QTimer`` and paints the :class:`~sinkhole.scene.FrameDrawing` returned by
each tick with ``QPainter``.  It does not compute any geometry itself:

* ``resizeEvent`` forwards the viewport size and device pixel ratio;
* ``wheelEvent`` forwards the scroll gesture (Ctrl held: global scale);
* keys ``1``-``8`` focus a body, ``0`` releases the focus.

Two backends share the same behaviour, a ``QOpenGLWidget`` when a GL context
can be created and a plain raster ``QWidget`` otherwise.
"""

from __future__ import annotations

import math
import os
import sys
from typing import Mapping, Optional, Tuple

from PyQt5 import QtCore, QtGui, QtWidgets

from ..geometry import ClipBoundary
from ..scene import Dot, EllipseShape, FrameDrawing, Scene, Stroke, TextBlock

__all__ = ["SinkholeViewWidget"]


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _color(value: str, alpha: float = 1.0) -> QtGui.QColor:
    color = QtGui.QColor(value)
    if not color.isValid():
        color = QtGui.QColor("white")
    color.setAlphaF(clamp01(alpha))
    return color


def _clip_path(clip: ClipBoundary) -> QtGui.QPainterPath:
    path = QtGui.QPainterPath()
    path.addEllipse(QtCore.QRectF(clip.x - clip.w, clip.y - clip.h, clip.w * 2.0, clip.h * 2.0))
    path.addRect(QtCore.QRectF(clip.x - clip.w, 0.0, clip.w * 2.0, clip.y))
    path.setFillRule(QtCore.Qt.WindingFill)
    return path


# ---------------------------------------------------------------------------
# OpenGL helpers


def _create_opengl_functions() -> Tuple[Optional[object], Optional[BaseException]]:
    """Return ``(gl, error)``; ``gl`` is ``None`` when no function table is usable."""

    factory = getattr(QtGui, "QOpenGLFunctions", None)
    if factory is None:
        return None, AttributeError("PyQt5.QtGui has no attribute 'QOpenGLFunctions'")
    try:
        gl = factory()
        gl.initializeOpenGLFunctions()
    except Exception as exc:  # pragma: no cover - depends on bindings and GL state
        return None, exc
    return gl, None


# ---------------------------------------------------------------------------
# Painting


def _draw_stroke(painter: QtGui.QPainter, item: Stroke) -> None:
    if len(item.points) < 2:
        return
    pen = QtGui.QPen(_color(item.color, item.alpha), item.width)
    painter.setPen(pen)
    painter.setBrush(_color(item.fill, item.alpha) if item.fill else QtCore.Qt.NoBrush)
    polygon = QtGui.QPolygonF([QtCore.QPointF(x, y) for x, y in item.points])
    if item.closed:
        painter.drawPolygon(polygon)
    else:
        painter.drawPolyline(polygon)


def _draw_ellipse(painter: QtGui.QPainter, item: EllipseShape) -> None:
    if item.w <= 0.0 or item.h <= 0.0:
        return
    painter.save()
    painter.translate(item.x, item.y)
    painter.rotate(math.degrees(item.angle))
    painter.setPen(QtGui.QPen(_color(item.color, item.alpha), item.width))
    painter.setBrush(QtCore.Qt.NoBrush)
    painter.drawEllipse(QtCore.QRectF(-item.w, -item.h, item.w * 2.0, item.h * 2.0))
    painter.restore()


def _draw_dot(painter: QtGui.QPainter, item: Dot) -> None:
    painter.setPen(QtCore.Qt.NoPen)
    painter.setBrush(_color(item.color, item.alpha))
    r = max(0.25, item.radius)
    painter.drawEllipse(QtCore.QRectF(item.x - r, item.y - r, r * 2.0, r * 2.0))


def _draw_text(painter: QtGui.QPainter, item: TextBlock) -> None:
    painter.setPen(_color(item.color))
    metrics = painter.fontMetrics()
    y = item.y
    for line in item.text.split("\n"):
        painter.drawText(QtCore.QPointF(item.x, y), line)
        y += metrics.height()


def _paint_items(painter: QtGui.QPainter, items, clip_path: Optional[QtGui.QPainterPath]) -> None:
    for item in items:
        clipped = bool(getattr(item, "clipped", False)) and clip_path is not None
        if clipped:
            painter.save()
            painter.setClipPath(clip_path, QtCore.Qt.IntersectClip)
        if isinstance(item, Stroke):
            _draw_stroke(painter, item)
        elif isinstance(item, EllipseShape):
            _draw_ellipse(painter, item)
        elif isinstance(item, Dot):
            _draw_dot(painter, item)
        elif isinstance(item, TextBlock):
            _draw_text(painter, item)
        if clipped:
            painter.restore()


class _ViewWidgetBase:
    """Common behaviour shared by both the OpenGL and raster backends."""

    def _init_view_widget(self) -> None:
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, False)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self._gl: Optional[object] = None
        self.scene = Scene()
        self._frame: Optional[FrameDrawing] = None
        self._transparent = False
        self._timer = QtCore.QTimer(self)
        self._frame_interval_ms = 16
        self._timer.timeout.connect(self._advance)
        self._timer.start(self._frame_interval_ms)

    def _apply_frame_interval(self, interval_ms: int) -> None:
        """Update the refresh interval used by the frame timer."""

        interval_ms = max(int(interval_ms), 0)
        if interval_ms == self._frame_interval_ms and self._timer.isActive() == (interval_ms > 0):
            return
        self._frame_interval_ms = interval_ms
        if interval_ms <= 0:
            if self._timer.isActive():
                self._timer.stop()
            return
        if self._timer.isActive():
            self._timer.setInterval(interval_ms)
        else:
            self._timer.start(interval_ms)

    def _advance(self) -> None:
        self._frame = self.scene.tick()
        self.update()

    def stop(self) -> None:
        """Cancel the pending tick; nothing else is in flight."""

        self._timer.stop()

    def _apply_clear_color(self) -> None:
        if self._gl is None:
            return
        alpha = 0.0 if self._transparent else 1.0
        self._gl.glClearColor(0.0, 0.0, 0.0, alpha)

    # ------------------------------------------------------------------ API
    def set_params(self, payload: Mapping[str, object]) -> None:
        self.scene.set_params(payload)
        self._apply_frame_interval(self.scene.frame_interval_ms)
        transparent = self.scene.transparent
        if transparent != self._transparent:
            self.set_transparent(transparent)

    def set_transparent(self, enabled: bool) -> None:  # pragma: no cover - simple setter
        self._transparent = bool(enabled)
        self.setAttribute(QtCore.Qt.WA_NoSystemBackground, enabled)
        self.setAttribute(QtCore.Qt.WA_TranslucentBackground, enabled)
        self.setAutoFillBackground(not enabled)
        self._apply_clear_color()
        self.update()

    def _sync_viewport(self) -> None:
        ratio = self.devicePixelRatioF() if hasattr(self, "devicePixelRatioF") else 1.0
        self.scene.resize(self.width(), self.height(), ratio)

    # ------------------------------------------------------------------ input
    def _handle_wheel(self, event: QtGui.QWheelEvent) -> None:
        delta = event.angleDelta().y()
        if delta == 0:
            delta = event.angleDelta().x()
        if delta == 0:
            event.ignore()
            return
        modifier = bool(event.modifiers() & (QtCore.Qt.ControlModifier | QtCore.Qt.MetaModifier))
        # Qt reports "away from the user" as positive; the scene expects DOM sign.
        self.scene.wheel(-delta, modifier)
        event.accept()

    def _handle_key(self, event: QtGui.QKeyEvent) -> bool:
        key = event.key()
        if QtCore.Qt.Key_1 <= key <= QtCore.Qt.Key_8:
            index = key - QtCore.Qt.Key_1
            if index < len(self.scene.bodies):
                self.scene.focus_on(index)
                event.accept()
                return True
        if key == QtCore.Qt.Key_0:
            self.scene.release_focus()
            event.accept()
            return True
        return False

    # ------------------------------------------------------------------ rendering
    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        painter.setRenderHint(QtGui.QPainter.Antialiasing, True)
        if self._transparent:
            painter.setCompositionMode(QtGui.QPainter.CompositionMode_Source)
            painter.fillRect(self.rect(), QtCore.Qt.transparent)
            painter.setCompositionMode(QtGui.QPainter.CompositionMode_SourceOver)
        else:
            painter.fillRect(self.rect(), QtGui.QColor("black"))

        frame = self._frame
        if frame is None:
            return

        clip_path = _clip_path(frame.clip) if frame.clip is not None else None
        painter.save()
        cx = frame.width / 2.0
        cy = frame.height / 2.0
        painter.translate(cx, cy)
        painter.scale(frame.global_scale, frame.global_scale)
        painter.translate(-cx, -cy)
        _paint_items(painter, frame.scene, clip_path)
        painter.restore()

        font = QtGui.QFont("monospace")
        font.setStyleHint(QtGui.QFont.Monospace)
        font.setPointSizeF(8.0)
        painter.setFont(font)
        _paint_items(painter, frame.overlay, None)


class _OpenGLViewWidget(QtWidgets.QOpenGLWidget, _ViewWidgetBase):
    """OpenGL-backed renderer when the system can create a GL context."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QOpenGLWidget.__init__(self, parent)
        self._gl: Optional[object] = None
        self._init_view_widget()

    def initializeGL(self) -> None:  # pragma: no cover - requires GUI context
        self._gl, error = _create_opengl_functions()
        if error is not None:  # pragma: no cover - depends on bindings/runtime
            print(
                f"[Sinkhole][WARN] OpenGL initialisation failed: {error}. Falling back to raster clear handling.",
                file=sys.stderr,
            )
        self._apply_clear_color()

    def paintGL(self) -> None:  # pragma: no cover - requires GUI context
        if self._gl is not None:
            # GL_COLOR_BUFFER_BIT
            self._gl.glClear(0x00004000)
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._sync_viewport()
        self.update()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        self._handle_wheel(event)

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # type: ignore[override]
        if not self._handle_key(event):
            super().keyPressEvent(event)


class _RasterViewWidget(QtWidgets.QWidget, _ViewWidgetBase):
    """Fallback renderer using the traditional raster ``QWidget`` backend."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QWidget.__init__(self, parent)
        self._init_view_widget()

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._sync_viewport()
        self.update()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        self._handle_wheel(event)

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # type: ignore[override]
        if not self._handle_key(event):
            super().keyPressEvent(event)


def _should_use_opengl(force_backend: Optional[str]) -> bool:
    """Pick the backend: explicit argument, then ``SINKHOLE_FORCE_BACKEND``."""

    for choice in (force_backend, os.environ.get("SINKHOLE_FORCE_BACKEND")):
        choice = (choice or "").strip().lower()
        if choice in ("raster", "opengl"):
            return choice == "opengl"
    return hasattr(QtWidgets, "QOpenGLWidget")


def SinkholeViewWidget(
    parent: Optional[QtWidgets.QWidget] = None,
    *,
    force_backend: Optional[str] = None,
) -> QtWidgets.QWidget:
    """Create the funnel view, falling back to raster painting without OpenGL.

    The returned widget carries ``backend_name`` (``"opengl"`` or ``"raster"``).
    """

    if _should_use_opengl(force_backend):
        try:
            widget = _OpenGLViewWidget(parent)
        except Exception as exc:
            print(f"[Sinkhole][WARN] OpenGL view unavailable ({exc!r}), painting with QPainter only.", file=sys.stderr)
        else:
            widget.backend_name = "opengl"
            return widget
    widget = _RasterViewWidget(parent)
    widget.backend_name = "raster"
    return widget
