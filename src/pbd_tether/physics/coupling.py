"""
Kinematic Coupling & Reaction Feedback
======================================
Couples the chain's root to an externally driven body.

The anchor particle is pinned to the supplied pose every tick, and the
supplied velocity is embedded in the Verlet state without giving the
anchor any mass:

    x0      = p
    x0_prev = p - v * dt

While the anchor is immovable, every constraint that would have moved it
hands its would-be correction to the ReactionAccumulator instead. The
accumulated sum is exposed as a clamped velocity kick the owning body may
consume - the chain tugs on its owner without ever moving the pin itself.
"""

import numpy as np

from .particle_chain import ParticleChain


class KinematicCoupling:
    """Pins the anchor particle to an externally supplied pose."""

    @staticmethod
    def pin(chain: ParticleChain,
            position: np.ndarray,
            velocity: np.ndarray,
            dt: float):
        position = np.asarray(position, dtype=np.float64)
        velocity = np.asarray(velocity, dtype=np.float64)
        chain.positions[0] = position
        chain.previous[0] = position - velocity * dt


class ReactionAccumulator:
    """Sum of hypothetical corrections against the fixed anchor."""

    def __init__(self):
        self._sum = np.zeros(2, dtype=np.float64)

    @property
    def vector(self) -> np.ndarray:
        return self._sum.copy()

    @property
    def magnitude(self) -> float:
        return float(np.linalg.norm(self._sum))

    def reset(self):
        self._sum[:] = 0.0

    def add(self, correction: np.ndarray):
        self._sum += correction

    def pop_velocity_kick(self, dt: float, kick_gain: float, kick_clamp: float) -> np.ndarray:
        """
        Convert the accumulated correction into a velocity impulse.

        Returns reaction * kick_gain / dt, magnitude-clamped to kick_clamp,
        and clears the accumulator.
        """
        reaction = self._sum.copy()
        self.reset()

        if dt <= 0:
            return np.zeros(2)

        kick = reaction * kick_gain / dt
        magnitude = np.linalg.norm(kick)
        if magnitude > kick_clamp:
            kick *= kick_clamp / magnitude
        return kick
