import math

import pytest

from sinkhole.diagnostics import (
    HISTORY_LIMIT,
    ModulationHistory,
    Rect,
    SpectrumJob,
    dft_magnitude,
    field_plot,
    spectrum_plot,
    tensor_readout,
)

RECT = Rect(10.0, 20.0, 200.0, 100.0)


def _inside(rect, point):
    x, y = point
    return rect.x - 1e-9 <= x <= rect.x + rect.w + 1e-9 and rect.y - 1e-9 <= y <= rect.y + rect.h + 1e-9


def test_history_is_bounded():
    history = ModulationHistory()
    assert history.maxlen == HISTORY_LIMIT == 1024
    for i in range(3000):
        history.push(float(i))
        assert len(history) <= 1024
    values = history.values()
    assert len(values) == 1024
    assert values[0] == 3000 - 1024
    assert values[-1] == 2999.0


def test_history_ignores_non_finite_samples():
    history = ModulationHistory(8)
    history.push(float("nan"))
    history.push(float("inf"))
    history.push(1.5)
    assert history.values() == [1.5]


def test_field_plot_curves_fit_inset():
    curves = field_plot(RECT, samples=50)
    assert [curve.label for curve in curves] == ["g_rr", "g_θθ", "√|g_rr·g_θθ|"]
    for curve in curves:
        assert len(curve.points) == 50
        assert all(_inside(RECT, point) for point in curve.points)
        assert curve.points[0][0] == pytest.approx(RECT.x)
        assert curve.points[-1][0] == pytest.approx(RECT.x + RECT.w)


def test_dft_of_constant_is_dc_only():
    mags = dft_magnitude([2.0] * 16)
    assert len(mags) == 9
    assert mags[0] == pytest.approx(32.0)
    assert all(m == pytest.approx(0.0, abs=1e-9) for m in mags[1:])


def test_dft_peak_of_pure_tone():
    n = 64
    samples = [1.0 + math.cos(2 * math.pi * 8 * i / n) for i in range(n)]
    mags = dft_magnitude(samples)
    assert mags[8] == pytest.approx(n / 2)
    spectrum = spectrum_plot(samples, RECT)
    assert spectrum is not None
    assert spectrum.peak_index == 8
    assert len(spectrum.curve) == n // 2 + 1
    assert _inside(RECT, spectrum.peak_marker)


def test_spectrum_needs_enough_samples():
    assert spectrum_plot([0.5] * 31, RECT) is None
    assert spectrum_plot([], RECT) is None


def test_tensor_readout_blocks():
    text = tensor_readout()
    blocks = text.split("\n\n")
    assert len(blocks) == 4
    assert blocks[0].splitlines()[0] == "r = 0.30"
    assert "φ = 0.91393" in blocks[0]
    assert blocks[-1].splitlines()[0] == "r = 2.00"


def test_spectrum_job_in_chunks_matches_full_dft():
    samples = [math.sin(0.3 * i) + 0.2 * math.cos(1.7 * i) for i in range(100)]
    job = SpectrumJob(samples)
    assert job.bin_count == 51
    steps = 0
    while not job.advance(7):
        steps += 1
        assert len(job.magnitudes) == 7 * steps
    assert steps == 7
    expected = [
        math.hypot(
            sum(v * math.cos(2 * math.pi * k * i / 100) for i, v in enumerate(samples)),
            sum(v * math.sin(2 * math.pi * k * i / 100) for i, v in enumerate(samples)),
        )
        for k in range(51)
    ]
    assert job.magnitudes == pytest.approx(expected, abs=1e-9)
    assert dft_magnitude(samples) == pytest.approx(expected, abs=1e-9)


def test_empty_spectrum_job_is_done():
    job = SpectrumJob([])
    assert job.advance(5)
    assert job.magnitudes == []
