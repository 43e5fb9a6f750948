import math

import pytest

from sinkhole.bodies import BODIES, body_screen_position
from sinkhole.geometry import (
    ClipBoundary,
    advance_disc_rings,
    build_concentric_circles,
    build_disc_rings,
    build_funnel_lines,
    build_orbit_rings,
    build_radial_fan,
    ease_in_expo,
    grid_max_radius,
    orbit_world_radius,
    ring_tilt,
    warp_polylines,
)
from sinkhole.twist import TwistParams, hyper_twist


def test_ease_in_expo_endpoints():
    assert ease_in_expo(0.0) == 0.0
    assert ease_in_expo(1.0) == 1.0
    assert ease_in_expo(0.5) < 0.5


@pytest.mark.parametrize("size", [(0, 600), (800, 0), (-5, 600), (800, -1), (float("nan"), 600), (800, float("inf"))])
def test_malformed_viewport_skips_rebuild(size):
    assert build_disc_rings(*size) is None


def test_disc_stack_layout():
    stack = build_disc_rings(800, 600)
    assert len(stack.rings) == 100
    assert (stack.start.x, stack.start.y, stack.start.w, stack.start.h) == pytest.approx((400.0, 270.0, 600.0, 420.0))
    assert (stack.end.x, stack.end.y, stack.end.w, stack.end.h) == pytest.approx((400.0, 570.0, 0.0, 0.0))
    assert [ring.p for ring in stack.rings[:3]] == [0.0, 0.01, 0.02]
    # The first ring is the widest one and defines the clip region.
    assert stack.clip_index == 0
    clip = stack.clip
    assert (clip.x, clip.y, clip.w, clip.h) == (stack.start.x, stack.start.y, stack.start.w, stack.start.h)


def test_disc_count_is_clamped():
    assert len(build_disc_rings(800, 600, count=10).rings) == 100
    assert len(build_disc_rings(800, 600, count=400).rings) == 150
    assert len(build_disc_rings(800, 600, count=120).rings) == 120


def test_rings_bunch_toward_the_mouth():
    stack = build_disc_rings(800, 600)
    ys = [ring.y for ring in stack.rings]
    gaps = [b - a for a, b in zip(ys, ys[1:])]
    assert gaps[0] < gaps[-1]


def test_base_geometry_is_reproducible():
    a = build_disc_rings(1024, 768)
    b = build_disc_rings(1024, 768)
    assert a.rings == b.rings
    assert a.clip == b.clip
    assert build_funnel_lines(a) == build_funnel_lines(b)


def test_advance_wraps_progress():
    stack = build_disc_rings(800, 600)
    for _ in range(1500):
        advance_disc_rings(stack, 0.001)
    for ring in stack.rings:
        assert 0.0 <= ring.p < 1.0
        assert ring.w == pytest.approx(600.0 * (1.0 - ring.p))


def test_ring_tilt_grows_toward_throat():
    stack = build_disc_rings(800, 600)
    assert ring_tilt(stack, stack.start) == 0.0
    assert ring_tilt(stack, stack.end) == pytest.approx(math.pi / 2)


def test_clip_contains():
    clip = ClipBoundary(400.0, 270.0, 600.0, 420.0)
    assert clip.contains(400.0, 270.0)
    assert clip.contains(-150.0, 10.0)  # skirt above the ellipse
    assert not clip.contains(1050.0, 590.0)


def test_funnel_lines_shape():
    stack = build_disc_rings(800, 600)
    lines = build_funnel_lines(stack, count=24)
    assert len(lines) == 24
    for points, clip_from in lines:
        assert len(points) == len(stack.rings)
        assert 1 <= clip_from <= len(points)


def test_radial_fan_reaches_grid_radius():
    fan = build_radial_fan(1.0, spokes=12, steps=10)
    assert len(fan) == 12
    reach = grid_max_radius(1.0)
    for spoke in fan:
        assert spoke[0] == (0.0, 0.0)
        assert math.hypot(*spoke[-1]) == pytest.approx(reach)


def test_grid_radius_grows_when_zooming_in():
    assert grid_max_radius(0.05) >= grid_max_radius(1.0) >= grid_max_radius(5.0)
    assert grid_max_radius(0.05) <= 12.0


def test_concentric_circles():
    circles = build_concentric_circles(2.0, count=4, samples=16)
    assert len(circles) == 4
    reach = grid_max_radius(2.0)
    for idx, circle in enumerate(circles, start=1):
        for point in circle:
            assert math.hypot(*point) == pytest.approx(reach * idx / 4)


def test_warped_grid_matches_transform():
    params = TwistParams(0.2, 2.5, 1.7)
    fan = build_radial_fan(0.2, spokes=4, steps=5)
    warped = warp_polylines(fan, params)
    for base, line in zip(fan, warped):
        assert line == [hyper_twist(x, y, 0.2, 2.5, 1.7) for x, y in base]


def test_orbit_rings_and_bodies_share_the_warp():
    params = TwistParams(0.3, 2.5, 0.8)
    rings = build_orbit_rings(BODIES, params, samples=90)
    assert len(rings) == 8
    for body, ring in zip(BODIES, rings):
        assert len(ring.points) == 90
        radius = orbit_world_radius(body.radius)
        assert ring.points[0] == params.warp(radius, 0.0)
        # At t=0 every body sits on the first sample of its ring.
        bx, by = body_screen_position(body, 0.0, params)
        assert bx == pytest.approx(ring.points[0][0])
        assert by == pytest.approx(ring.points[0][1])
