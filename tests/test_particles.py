import math
import random

import pytest

from sinkhole.particles import (
    POOL_FACTORIES,
    RESONATOR_OUTER,
    Particle,
    ParticlePool,
    Phase,
    PoolSpec,
    Transition,
    resonator_spec,
    sink_spec,
    stream_spec,
)


@pytest.mark.parametrize("name", sorted(POOL_FACTORIES))
def test_pool_never_exceeds_capacity_plus_batch(name):
    pool = ParticlePool(POOL_FACTORIES[name](), random.Random(1234))
    bound = pool.spec.capacity + pool.spec.batch
    for _ in range(3000):
        pool.step()
        assert len(pool) <= bound


@pytest.mark.parametrize("name", sorted(POOL_FACTORIES))
def test_pool_positions_are_finite(name):
    pool = ParticlePool(POOL_FACTORIES[name](), random.Random(99))
    for _ in range(500):
        pool.step()
    for _, (x, y) in pool.positions():
        assert math.isfinite(x) and math.isfinite(y)


def test_emission_tops_up_in_batches_only_below_capacity():
    pool = ParticlePool(stream_spec(capacity=25, batch=10), random.Random(0))
    assert pool.emit() == 10
    assert pool.emit() == 10
    assert pool.emit() == 10
    assert len(pool) == 30
    assert pool.emit() == 0
    assert len(pool) == 30


def test_fill_reaches_capacity():
    pool = ParticlePool(stream_spec(capacity=100, batch=10), random.Random(0))
    pool.fill()
    assert len(pool) == 100


def test_stream_recycles_instead_of_shrinking():
    pool = ParticlePool(stream_spec(capacity=100, batch=10), random.Random(5))
    pool.fill()
    for _ in range(1500):
        pool.step()
        assert len(pool) == 100
    assert all(p.alpha > 0.0 for p in pool)


def test_resonator_escapes_exactly_at_threshold_frame():
    pool = ParticlePool(resonator_spec(capacity=1, batch=1), random.Random(0))
    particle = pool.add(Particle(r=0.5, velocity=0.02, angular_velocity=0.01, alpha=1.0, phase=Phase.RESONATE))
    expected = math.ceil(round((RESONATOR_OUTER - 0.5) / 0.02, 9))
    assert expected == 5550

    for _ in range(expected - 1):
        pool.step()
        assert particle.phase is Phase.RESONATE
    assert particle.r < RESONATOR_OUTER

    pool.step()
    assert particle.phase is Phase.ESCAPE
    assert particle in pool.particles


def test_escaped_particles_fade_out_and_leave():
    pool = ParticlePool(resonator_spec(capacity=1, batch=1), random.Random(0))
    particle = pool.add(Particle(r=200.0, velocity=0.5, alpha=0.5, phase=Phase.ESCAPE))
    for _ in range(60):
        pool.step()
    assert particle not in pool.particles


def test_resonator_bounces_below_inner_threshold():
    pool = ParticlePool(resonator_spec(capacity=1, batch=1), random.Random(0))
    particle = pool.add(Particle(r=4.0, velocity=-0.5, alpha=1.0, phase=Phase.RESONATE))
    pool.step()
    assert particle.r == pytest.approx(3.5)
    assert particle.velocity == 0.5
    assert particle.phase is Phase.RESONATE


def test_sink_cycles_through_its_phases():
    pool = ParticlePool(sink_spec(capacity=1, batch=1), random.Random(3))
    particle = pool.add(Particle(r=0.5, velocity=0.01, angular_velocity=0.01, alpha=1.0, phase=Phase.DESCEND))
    seen = [particle.phase]
    for _ in range(2000):
        pool.step()
        if particle.phase is not seen[-1]:
            seen.append(particle.phase)
        if len(seen) == 5:
            break
    assert seen == [Phase.DESCEND, Phase.IMPACT, Phase.RETURN, Phase.ASCEND, Phase.DESCEND]
    # Respawned at the rim, fully visible again.
    assert particle.r > 1.0
    assert particle.alpha == 1.0
    assert particle.lift == 0.0


def test_transition_to_none_removes_particle():
    spec = PoolSpec(
        name="probe",
        capacity=0,
        batch=1,
        spawn=lambda rng: Particle(),
        kinematics={Phase.DESCEND: lambda p: setattr(p, "r", p.r - 1.0)},
        transitions=(Transition(Phase.DESCEND, lambda p: p.r < 0.0, None),),
        position=lambda p: (p.r, 0.0),
    )
    pool = ParticlePool(spec)
    keep = pool.add(Particle(r=5.0, phase=Phase.DESCEND))
    drop = pool.add(Particle(r=0.5, phase=Phase.DESCEND))
    pool.step()
    assert pool.particles == [keep]
    assert drop not in pool.particles


def test_first_matching_transition_wins():
    order = []
    spec = PoolSpec(
        name="probe",
        capacity=0,
        batch=1,
        spawn=lambda rng: Particle(),
        kinematics={},
        transitions=(
            Transition(Phase.ASCEND, lambda p: True, Phase.IMPACT, action=lambda p: order.append("first")),
            Transition(Phase.ASCEND, lambda p: True, Phase.RETURN, action=lambda p: order.append("second")),
        ),
        position=lambda p: (0.0, 0.0),
    )
    pool = ParticlePool(spec)
    particle = pool.add(Particle(phase=Phase.ASCEND))
    pool.step()
    assert particle.phase is Phase.IMPACT
    assert order == ["first"]


def test_faded_particles_are_pruned():
    pool = ParticlePool(sink_spec(capacity=0, batch=1), random.Random(0))
    pool.add(Particle(r=0.01, alpha=0.001, phase=Phase.ASCEND))
    pool.step()
    assert len(pool) == 0
