"""
Particle Chain
==============
Struct-of-arrays storage for the tether particles.

    positions[i]     current position (Verlet x)
    previous[i]      previous position (Verlet x_prev)
    inverse_mass[i]  0 marks a kinematically fixed particle

Index 0 is the anchor-coupled end, index N-1 is the tip. Arrays are sized
once at construction and mutated in place; particles are never added or
removed.
"""

import numpy as np
from typing import Sequence


DEFAULT_LAYOUT_DIRECTION = np.array([0.0, -1.0])


class ParticleChain:
    """Fixed-size path graph of Verlet particles."""

    def __init__(self, count: int, base_segment_length: float):
        if count < 2:
            raise ValueError(f"A chain needs at least 2 particles, got {count}")

        self.count = int(count)
        self.base_segment_length = float(base_segment_length)

        self.positions = np.zeros((self.count, 2), dtype=np.float64)
        self.previous = np.zeros((self.count, 2), dtype=np.float64)
        self.inverse_mass = np.ones(self.count, dtype=np.float64)

    @property
    def anchor_index(self) -> int:
        return 0

    @property
    def tip_index(self) -> int:
        return self.count - 1

    @property
    def anchor(self) -> np.ndarray:
        """Live view of the anchor particle position."""
        return self.positions[0]

    @property
    def tip(self) -> np.ndarray:
        """Live view of the tip particle position."""
        return self.positions[-1]

    def initialize_at(self,
                      anchor: Sequence[float],
                      direction: Sequence[float] = DEFAULT_LAYOUT_DIRECTION):
        """
        Lay the particles out along `direction` from the anchor, one base
        segment apart, with zero implicit velocity.
        """
        anchor = np.asarray(anchor, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)

        offsets = np.arange(self.count, dtype=np.float64)[:, None] * self.base_segment_length
        self.positions[:] = anchor + offsets * direction
        self.previous[:] = self.positions

    def lay_along(self, direction: np.ndarray, spacing: float):
        """Re-seed every free particle along a ray from the anchor, at rest."""
        offsets = np.arange(self.count, dtype=np.float64)[:, None] * spacing
        self.positions[1:] = self.positions[0] + (offsets * direction)[1:]
        self.previous[:] = self.positions

    def collapse_to(self, point: Sequence[float]):
        """Snap every particle (and its Verlet history) onto one point."""
        point = np.array(point, dtype=np.float64)
        self.positions[:] = point
        self.previous[:] = point

    def is_collapsed(self) -> bool:
        """True when every particle sits exactly on the anchor."""
        return bool(np.all(self.positions == self.positions[0]) and
                    np.all(self.previous == self.positions[0]))

    def velocity(self, index: int) -> np.ndarray:
        """Implicit per-substep displacement of one particle."""
        return self.positions[index] - self.previous[index]

    def segment_lengths(self) -> np.ndarray:
        """Distance between every adjacent pair."""
        return np.linalg.norm(np.diff(self.positions, axis=0), axis=1)

    def distances_from_anchor(self) -> np.ndarray:
        return np.linalg.norm(self.positions - self.positions[0], axis=1)

    def copy_positions(self) -> np.ndarray:
        return self.positions.copy()
