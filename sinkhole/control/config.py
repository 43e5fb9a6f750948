DEFAULTS = dict(
    camera=dict(
        zoom=1.0, globalScale=1.0, twistStrength=2.5,
        twistPhaseSpeed=0.01, focusEasing=0.1, zoomStep=1.05,
    ),
    discs=dict(
        count=100, speed=0.001, ringStride=5, funnelLines=100,
        color="#444444", lineWidth=2.0,
    ),
    grid=dict(
        enabled=True, spokes=48, steps=40, circles=10, samples=90,
        color="#6A6A9A", alpha=0.35, lineWidth=1.0,
    ),
    orbits=dict(enabled=True, bodies=True, samples=90, alpha=0.35, meridians=12, parallels=5),
    particles=dict(
        stream=dict(enabled=True, capacity=100, batch=10),
        resonator=dict(enabled=True, capacity=60, batch=6),
        sink=dict(enabled=False, capacity=80, batch=8),
        spiral=dict(enabled=False, capacity=120, batch=12),
    ),
    diagnostics=dict(
        fieldPlot=True, spectrum=True, tensorReadout=True,
        spectrumInterval=15, historySize=1024,
        insetWidth=220, insetHeight=110, margin=12,
    ),
    system=dict(
        frameIntervalMs=16, transparent=False, dprClamp=2.0,
        debug=False, seed=None, worldUnitRatio=0.16,
    ),
)

# Bounds applied to numeric parameters before they reach the engine.
LIMITS = {
    "camera.zoom": (0.05, 5.0),
    "camera.globalScale": (0.1, 4.0),
    "camera.focusEasing": (0.0, 1.0),
    "camera.zoomStep": (1.0001, 2.0),
    "discs.count": (100, 150),
    "discs.ringStride": (1, 50),
    "grid.spokes": (1, 360),
    "grid.steps": (2, 400),
    "grid.circles": (1, 100),
    "grid.samples": (8, 720),
    "orbits.samples": (8, 720),
    "orbits.meridians": (0, 48),
    "orbits.parallels": (0, 24),
    "diagnostics.spectrumInterval": (1, 600),
    "diagnostics.historySize": (32, 1024),
    "system.dprClamp": (0.5, 4.0),
}
