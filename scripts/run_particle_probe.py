import os, sys
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from sinkhole.scene import Scene

# Every pool on, fixed seed so runs are comparable
scene = Scene({
    'system': {'seed': 11},
    'particles': {'sink': {'enabled': True}, 'spiral': {'enabled': True}},
})
scene.resize(1280, 800, 1.0)

size_log = []
for frame in range(1200):
    scene.tick(1.0 / 60.0)
    size_log.append(scene.pool_sizes())

print('Total frames:', len(size_log))
print('Final pool sizes:', size_log[-1])
for name, pool in scene.pools.items():
    peak = max(entry[name] for entry in size_log)
    print(f'{name}: peak={peak} bound={pool.max_size}', 'OK' if peak <= pool.max_size else 'OVER')
print('History samples:', len(scene.history))
spectrum = scene.spectrum
print('Spectrum peak bin:', spectrum.peak_index if spectrum else None)
