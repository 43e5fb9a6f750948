import math

import pytest

from sinkhole.bodies import (
    BODIES,
    SPIN_TILT_TABLE,
    body_outline,
    body_screen_position,
    orbital_position,
    predict_spin_tilt,
    spin_angle,
)
from sinkhole.fields import g_thth
from sinkhole.twist import TwistParams


def test_spin_tilt_exact_anchor():
    assert predict_spin_tilt(0.45) == 23.44
    assert predict_spin_tilt(0.2) == 0.03


def test_spin_tilt_clamps():
    assert predict_spin_tilt(2.0) == 28.3
    assert predict_spin_tilt(0.01) == 0.03


@pytest.mark.parametrize("radius,tilt", SPIN_TILT_TABLE)
def test_spin_tilt_every_anchor(radius, tilt):
    assert predict_spin_tilt(radius) == tilt


def test_spin_tilt_interpolates_linearly():
    (r0, v0), (r1, v1) = SPIN_TILT_TABLE[2], SPIN_TILT_TABLE[3]
    mid = (r0 + r1) / 2
    assert predict_spin_tilt(mid) == pytest.approx((v0 + v1) / 2)


def test_body_table():
    assert len(BODIES) == 8
    assert [body.radius for body in BODIES] == sorted(body.radius for body in BODIES)
    for body in BODIES:
        assert body.spin_tilt_degrees == predict_spin_tilt(body.radius)


def test_orbital_position_is_closed_form():
    earth = BODIES[2]
    scale = 3.0 * math.sqrt(g_thth(earth.radius))
    assert orbital_position(earth, 0.0) == pytest.approx((scale, 0.0))
    quarter = orbital_position(earth, earth.orbital_period / 4)
    assert quarter[0] == pytest.approx(0.0, abs=1e-12)
    assert quarter[1] == pytest.approx(scale)
    # Periodic: a full period brings the body back.
    again = orbital_position(earth, earth.orbital_period * 3)
    assert again == pytest.approx(orbital_position(earth, 0.0))


def test_body_position_far_zoom_is_unwarped():
    params = TwistParams(5.0, 2.5, 9.0)
    for body in BODIES:
        assert body_screen_position(body, 12.5, params) == pytest.approx(orbital_position(body, 12.5))


def test_spin_is_independent_of_orbit():
    assert spin_angle(0.45, 0.0) == 0.0
    assert spin_angle(0.2, 10.0) > spin_angle(1.8, 10.0)


def test_body_outline_is_finite():
    params = TwistParams(0.05, 2.5, 3.0)
    for body in BODIES:
        outline = body_outline(body, 42.0, params)
        assert len(outline.silhouette) == 36
        assert len(outline.meridians) == 12
        assert len(outline.parallels) == 5
        assert outline.fill == body.color
        lines = outline.meridians + outline.parallels
        for x, y in outline.silhouette + [point for line in lines for point in line]:
            assert math.isfinite(x) and math.isfinite(y)


def test_body_grid_sits_on_the_flat_globe():
    body = BODIES[2]
    outline = body_outline(body, 0.0, TwistParams(5.0), meridians=4, parallels=1, samples=24)
    cx, cy = orbital_position(body, 0.0)
    size = body.visual_size
    for x, y in outline.silhouette:
        assert math.hypot(x - cx, y - cy) == pytest.approx(size)
    # A single parallel sits at latitude -pi/6.
    tilt = math.radians(body.spin_tilt_degrees)
    for x, y in outline.parallels[0]:
        local_y = -(x - cx) * math.sin(tilt) + (y - cy) * math.cos(tilt)
        assert local_y == pytest.approx(-0.5 * size)
    for line in outline.meridians:
        assert len(line) == 13
        for x, y in line:
            assert math.hypot(x - cx, y - cy) <= size + 1e-12


def test_body_outline_without_grid():
    outline = body_outline(BODIES[0], 1.0, TwistParams(1.0), meridians=0, parallels=0)
    assert outline.meridians == []
    assert outline.parallels == []
    assert outline.silhouette
