"""Capacity-bounded particle pools driven by small phase machines.

Every effect (ascending stream, resonator, sink, spiral) is the same
:class:`ParticlePool` loop configured by a :class:`PoolSpec`:

1. top the pool up with one batch when it is below capacity;
2. move each particle with the kinematics of its current :class:`Phase`;
3. run the transitions registered for that phase, first matching guard wins;
4. drop particles that are faded out or that a transition removed.

Positions are produced in world units by ``PoolSpec.position`` and
are warped by the scene like any other layer.
"""

from __future__ import annotations

import enum
import math
import random
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

__all__ = [
    "Phase",
    "Particle",
    "Transition",
    "PoolSpec",
    "ParticlePool",
    "CROSSING_EPS",
    "stream_spec",
    "resonator_spec",
    "sink_spec",
    "spiral_spec",
    "POOL_FACTORIES",
]

Point = Tuple[float, float]

# Absorbs float accumulation when a radius is compared with a threshold.
CROSSING_EPS = 1e-9


class Phase(enum.Enum):
    ASCEND = "ascend"
    RESONATE = "resonate"
    ESCAPE = "escape"
    DESCEND = "descend"
    IMPACT = "impact"
    RETURN = "return"


@dataclass
class Particle:
    r: float = 0.0
    angle: float = 0.0
    lift: float = 0.0
    velocity: float = 0.0
    angular_velocity: float = 0.0
    alpha: float = 1.0
    color: str = "#FFFFFF"
    size: float = 1.5
    drift: float = 0.0
    phase: Phase = Phase.ASCEND
    age: int = 0

    def reset_from(self, other: "Particle") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))


Guard = Callable[[Particle], bool]
Action = Callable[[Particle], None]


@dataclass(frozen=True)
class Transition:
    """Guarded edge of a pool's phase machine.

    ``target`` is the next phase, or ``None`` to remove the particle.  When
    ``recycle`` is set the particle is re-spawned in place instead (the pool
    size does not change).  ``action`` runs before the phase is switched.
    """

    source: Phase
    guard: Guard
    target: Optional[Phase]
    action: Optional[Action] = None
    recycle: bool = False


@dataclass
class PoolSpec:
    name: str
    capacity: int
    batch: int
    spawn: Callable[[random.Random], Particle]
    kinematics: Mapping[Phase, Action]
    transitions: Sequence[Transition]
    position: Callable[[Particle], Point]
    _by_phase: Dict[Phase, List[Transition]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.capacity = max(0, int(self.capacity))
        self.batch = max(1, int(self.batch))
        for transition in self.transitions:
            self._by_phase.setdefault(transition.source, []).append(transition)

    def transitions_for(self, phase: Phase) -> List[Transition]:
        return self._by_phase.get(phase, [])


class ParticlePool:
    """One independently managed set of particles."""

    def __init__(self, spec: PoolSpec, rng: Optional[random.Random] = None) -> None:
        self.spec = spec
        self.rng = rng if rng is not None else random.Random()
        self.particles: List[Particle] = []

    def __len__(self) -> int:
        return len(self.particles)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self.particles)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def max_size(self) -> int:
        return self.spec.capacity + self.spec.batch

    def clear(self) -> None:
        self.particles.clear()

    def add(self, particle: Particle) -> Particle:
        self.particles.append(particle)
        return particle

    def emit(self) -> int:
        """Add one batch when below capacity; return how many were added."""

        if len(self.particles) >= self.spec.capacity:
            return 0
        for _ in range(self.spec.batch):
            self.particles.append(self.spec.spawn(self.rng))
        return self.spec.batch

    def fill(self) -> None:
        while len(self.particles) < self.spec.capacity:
            self.emit()

    def step(self) -> None:
        self.emit()
        survivors: List[Particle] = []
        for particle in self.particles:
            mover = self.spec.kinematics.get(particle.phase)
            if mover is not None:
                mover(particle)
            particle.age += 1
            if not self._apply_transitions(particle):
                continue
            if particle.alpha <= 0.0:
                continue
            survivors.append(particle)
        self.particles = survivors

    def _apply_transitions(self, particle: Particle) -> bool:
        for transition in self.spec.transitions_for(particle.phase):
            if not transition.guard(particle):
                continue
            if transition.action is not None:
                transition.action(particle)
            if transition.recycle:
                particle.reset_from(self.spec.spawn(self.rng))
                return True
            if transition.target is None:
                return False
            particle.phase = transition.target
            return True
        return True

    def positions(self) -> Iterator[Tuple[Particle, Point]]:
        position = self.spec.position
        for particle in self.particles:
            yield particle, position(particle)


# ---------------------------------------------------------------------------
# Pool definitions

STREAM_HEIGHT = 2.6


def stream_spec(capacity: int = 100, batch: int = 10) -> PoolSpec:
    """Particles rising from the funnel mouth, spreading and fading."""

    def spawn(rng: random.Random) -> Particle:
        return Particle(
            r=rng.uniform(0.0, 0.05),
            angle=0.0 if rng.random() < 0.5 else math.pi,
            lift=0.0,
            velocity=0.008 + rng.random() * 0.016,
            alpha=0.3 + rng.random() * 0.7,
            size=0.5 + rng.random() * 3.5,
            drift=rng.uniform(0.0, 0.006),
            color="#FFFFFF",
            phase=Phase.ASCEND,
        )

    def ascend(p: Particle) -> None:
        p.lift += p.velocity
        p.r += p.drift
        p.alpha -= 0.004

    transitions = (
        Transition(Phase.ASCEND, lambda p: p.lift > STREAM_HEIGHT or p.alpha <= 0.0, Phase.ASCEND, recycle=True),
    )
    return PoolSpec(
        name="stream",
        capacity=capacity,
        batch=batch,
        spawn=spawn,
        kinematics={Phase.ASCEND: ascend},
        transitions=transitions,
        position=lambda p: (p.r * math.cos(p.angle), p.lift),
    )


RESONATOR_OUTER = 111.5
RESONATOR_INNER = 5.0
RESONATOR_UNIT = 0.02
RESONATE_FADE = 0.0001
ESCAPE_FADE = 0.01


def _reflect(p: Particle) -> None:
    p.velocity = -p.velocity


def resonator_spec(capacity: int = 60, batch: int = 6, unit: float = RESONATOR_UNIT) -> PoolSpec:
    """Orbiting particles whose radius grows until they break free.

    Radii are counted in resonator units; ``unit`` converts them to world
    units for drawing.
    """

    def spawn(rng: random.Random) -> Particle:
        return Particle(
            r=rng.uniform(0.5, 8.0),
            angle=rng.uniform(0.0, 2.0 * math.pi),
            velocity=rng.uniform(0.05, 0.25),
            angular_velocity=rng.uniform(0.01, 0.04),
            alpha=1.0,
            size=1.0 + rng.random() * 1.5,
            color="#FFB347",
            phase=Phase.RESONATE,
        )

    def resonate(p: Particle) -> None:
        p.r += p.velocity
        p.angle += p.angular_velocity
        p.alpha -= RESONATE_FADE

    def escape(p: Particle) -> None:
        p.velocity *= 1.01
        p.r += p.velocity
        p.angle += p.angular_velocity * 0.5
        p.alpha -= ESCAPE_FADE

    transitions = (
        Transition(Phase.RESONATE, lambda p: p.r >= RESONATOR_OUTER - CROSSING_EPS, Phase.ESCAPE),
        Transition(Phase.RESONATE, lambda p: p.r < RESONATOR_INNER and p.velocity < 0.0, Phase.RESONATE, action=_reflect),
    )
    return PoolSpec(
        name="resonator",
        capacity=capacity,
        batch=batch,
        spawn=spawn,
        kinematics={Phase.RESONATE: resonate, Phase.ESCAPE: escape},
        transitions=transitions,
        position=lambda p: (p.r * unit * math.cos(p.angle), p.r * unit * math.sin(p.angle)),
    )


SINK_OUTER = 2.4
SINK_IMPACT = 0.12
SINK_RETURN_ALPHA = 0.35
SINK_CORE = 0.02
SINK_ASCEND_HEIGHT = 1.2


def sink_spec(capacity: int = 80, batch: int = 8) -> PoolSpec:
    """Descend, impact, return to the core, then rise and start over."""

    def spawn(rng: random.Random) -> Particle:
        return Particle(
            r=SINK_OUTER * rng.uniform(0.85, 1.0),
            angle=rng.uniform(0.0, 2.0 * math.pi),
            velocity=rng.uniform(0.002, 0.006),
            angular_velocity=rng.uniform(0.004, 0.012),
            alpha=1.0,
            size=1.0 + rng.random() * 2.0,
            color="#9FD8FF",
            phase=Phase.DESCEND,
        )

    def descend(p: Particle) -> None:
        p.velocity *= 1.01
        p.r = max(0.0, p.r - p.velocity)
        p.angle += p.angular_velocity / (p.r + 0.2)

    def impact(p: Particle) -> None:
        p.velocity *= 0.85
        p.r = max(0.0, p.r - p.velocity)
        p.alpha -= 0.03

    def return_to_core(p: Particle) -> None:
        p.r *= 0.9
        p.angle += p.angular_velocity * 2.0

    def ascend(p: Particle) -> None:
        p.lift += 0.01
        p.alpha -= 0.002

    transitions = (
        Transition(Phase.DESCEND, lambda p: p.r <= SINK_IMPACT, Phase.IMPACT),
        Transition(Phase.IMPACT, lambda p: p.alpha <= SINK_RETURN_ALPHA, Phase.RETURN),
        Transition(Phase.RETURN, lambda p: p.r <= SINK_CORE, Phase.ASCEND),
        Transition(Phase.ASCEND, lambda p: p.lift >= SINK_ASCEND_HEIGHT, Phase.DESCEND, recycle=True),
    )
    return PoolSpec(
        name="sink",
        capacity=capacity,
        batch=batch,
        spawn=spawn,
        kinematics={
            Phase.DESCEND: descend,
            Phase.IMPACT: impact,
            Phase.RETURN: return_to_core,
            Phase.ASCEND: ascend,
        },
        transitions=transitions,
        position=lambda p: (p.r * math.cos(p.angle), p.r * math.sin(p.angle) * 0.35 + p.lift),
    )


SPIRAL_CORE = 0.05


def spiral_spec(capacity: int = 120, batch: int = 12) -> PoolSpec:
    """Inward spiral that respawns at the rim once it reaches the core."""

    def spawn(rng: random.Random) -> Particle:
        return Particle(
            r=rng.uniform(1.6, 2.2),
            angle=rng.uniform(0.0, 2.0 * math.pi),
            velocity=rng.uniform(0.002, 0.005),
            angular_velocity=rng.uniform(0.006, 0.015),
            alpha=0.4 + rng.random() * 0.6,
            size=0.8 + rng.random() * 1.2,
            color="#C89BFF",
            phase=Phase.DESCEND,
        )

    def descend(p: Particle) -> None:
        p.r = max(0.0, p.r - p.velocity * (0.5 + p.r))
        p.angle += p.angular_velocity / (p.r + 0.1)

    transitions = (Transition(Phase.DESCEND, lambda p: p.r <= SPIRAL_CORE, Phase.DESCEND, recycle=True),)
    return PoolSpec(
        name="spiral",
        capacity=capacity,
        batch=batch,
        spawn=spawn,
        kinematics={Phase.DESCEND: descend},
        transitions=transitions,
        position=lambda p: (p.r * math.cos(p.angle), p.r * math.sin(p.angle)),
    )


POOL_FACTORIES: Dict[str, Callable[..., PoolSpec]] = {
    "stream": stream_spec,
    "resonator": resonator_spec,
    "sink": sink_spec,
    "spiral": spiral_spec,
}
