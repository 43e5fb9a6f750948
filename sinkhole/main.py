# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import io
import os
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

# --- autorise l'exécution directe ---
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEBUG_MARKER = "[Sinkhole][DEBUG]"


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    details = str(exc)
    message_lines = [
        "Impossible de lancer Sinkhole : l'import de PyQt5 a échoué.",
        "Vérifiez que PyQt5 est installé et que les bibliothèques OpenGL requises sont disponibles.",
    ]
    if "libGL.so.1" in details:
        message_lines.append(
            "Indice : la bibliothèque système libGL.so.1 est manquante. Installez les paquets Mesa/OpenGL appropriés."
        )
    message_lines.append(f"Erreur d'origine : {details}")
    raise SystemExit("\n".join(message_lines)) from exc


class _DebugSilencer(io.TextIOBase):
    """Drop ``[Sinkhole][DEBUG]`` lines on their way to ``stream``.

    Partial writes are held back until their line is complete so a debug line
    printed in pieces is still recognised.
    """

    def __init__(self, stream: io.TextIOBase, marker: str) -> None:
        super().__init__()
        self._stream = stream
        self._marker = marker
        self._pending = ""

    def write(self, text: str) -> int:  # type: ignore[override]
        lines = (self._pending + text).splitlines(keepends=True)
        self._pending = lines.pop() if lines and not lines[-1].endswith("\n") else ""
        for line in lines:
            if self._marker not in line:
                self._stream.write(line)
        return len(text)

    def flush(self) -> None:  # type: ignore[override]
        pending, self._pending = self._pending, ""
        if pending and self._marker not in pending:
            self._stream.write(pending)
        self._stream.flush()

    def __getattr__(self, name):
        return getattr(self._stream, name)


def _install_debug_silencer(marker: str = DEBUG_MARKER) -> None:
    if marker and not isinstance(sys.stdout, _DebugSilencer):
        sys.stdout = _DebugSilencer(sys.stdout, marker)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sinkhole", description="Animated funnel renderer.")
    parser.add_argument("--headless", action="store_true", help="build the scene, run a few ticks and exit")
    parser.add_argument("--frames", type=int, default=120, help="ticks to run in headless mode")
    parser.add_argument("--backend", choices=("opengl", "raster"), default=None)
    parser.add_argument("--debug", action="store_true", help="print engine diagnostics")
    parser.add_argument("--seed", type=int, default=None, help="seed the particle pools")
    parser.add_argument("--zoom", type=float, default=None)
    parser.add_argument("--with-sink", action="store_true", help="enable the sink pool")
    parser.add_argument("--with-spiral", action="store_true", help="enable the spiral pool")
    return parser.parse_args(argv)


def _params_from_args(args: argparse.Namespace) -> dict:
    params: dict = {"system": {"debug": bool(args.debug), "seed": args.seed}}
    if args.zoom is not None:
        params["camera"] = {"zoom": args.zoom}
    particles: dict = {}
    if args.with_sink:
        particles["sink"] = {"enabled": True}
    if args.with_spiral:
        particles["spiral"] = {"enabled": True}
    if particles:
        params["particles"] = particles
    return params


def _run_headless(params: dict, frames: int) -> int:
    from sinkhole.scene import Scene

    scene = Scene(params)
    if not scene.resize(1280, 800, 1.0):
        return 1
    for _ in range(max(0, frames)):
        scene.tick(1.0 / 60.0)
    sizes = ", ".join(f"{name}={size}" for name, size in scene.pool_sizes().items())
    print(f"[Sinkhole] {frames} frames, zoom={scene.camera.zoom:.3f}, pools: {sizes}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Start the application and return the exit code.

    With ``--headless`` no Qt object is created: the scene runs a fixed
    number of ticks at 60 Hz and the process exits.
    """

    args = _parse_args(argv)
    debug = args.debug or os.environ.get("SINKHOLE_DEBUG", "").strip().lower() in {"1", "true", "yes"}
    if not debug:
        _install_debug_silencer()
    params = _params_from_args(args)

    if args.headless:
        return _run_headless(params, args.frames)

    try:
        from PyQt5 import QtCore, QtWidgets
        from PyQt5.QtCore import Qt
    except ImportError as exc:  # pragma: no cover - dépendances environnementales
        _handle_qt_import_error(exc)

    from sinkhole.view.view_widget import SinkholeViewWidget

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv[:1])

    class ViewWindow(QtWidgets.QMainWindow):
        def __init__(self) -> None:
            super().__init__(None)
            self.setWindowTitle("Sinkhole")
            self.view = SinkholeViewWidget(self, force_backend=args.backend)
            self.view.set_params(params)
            self.setCentralWidget(self.view)
            QtWidgets.QShortcut(Qt.Key_Escape, self, activated=self.close)
            screen = app.primaryScreen()
            if screen is not None:
                geometry = screen.geometry()
                width = int(geometry.width() * 0.8)
                height = int(geometry.height() * 0.8)
                left = geometry.left() + (geometry.width() - width) // 2
                top = geometry.top() + (geometry.height() - height) // 2
                self.setGeometry(left, top, width, height)

        def closeEvent(self, event) -> None:  # type: ignore[override]
            self.view.stop()
            super().closeEvent(event)

    window = ViewWindow()
    window.show()
    QtCore.QTimer.singleShot(0, window.view.setFocus)
    return int(app.exec_())


if __name__ == "__main__":
    sys.exit(main())
