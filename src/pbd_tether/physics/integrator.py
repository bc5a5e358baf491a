"""
Verlet Integrator
=================
Advances free particles by one substep.

    v      = (x - x_prev) * (1 - drag)
    a      = gravity [+ anchor spring]
    x_prev = x
    x      = x + v + a * h^2

The anchor spring only applies to the anchor particle when it is weakly
coupled (SpringAnchor). It is a damped spring toward the supplied anchor
pose:

    a_spring = (-k * (x0 - rest) - c * v0 / h) * inverse_mass_0

Particles with inverse mass 0 are skipped; their state is owned by the
kinematic coupling.
"""

import numpy as np
from typing import Optional

from .config import AnchorMode, SpringAnchor
from .particle_chain import ParticleChain


class VerletIntegrator:
    """Semi-implicit Verlet step with linear drag."""

    def __init__(self, gravity: np.ndarray, drag: float):
        self.gravity = np.array(gravity, dtype=np.float64)
        self.drag = float(drag)

    def integrate(self,
                  chain: ParticleChain,
                  h: float,
                  anchor_mode: AnchorMode,
                  anchor_rest: Optional[np.ndarray] = None):
        free = chain.inverse_mass > 0.0
        if not np.any(free):
            return

        velocity = (chain.positions - chain.previous) * (1.0 - self.drag)
        acceleration = np.broadcast_to(self.gravity, velocity.shape).copy()

        if isinstance(anchor_mode, SpringAnchor) and anchor_rest is not None and free[0] and h > 0:
            offset = chain.positions[0] - anchor_rest
            anchor_velocity = velocity[0] / h
            force = -anchor_mode.stiffness * offset - anchor_mode.damping * anchor_velocity
            acceleration[0] += force * chain.inverse_mass[0]

        chain.previous[free] = chain.positions[free]
        chain.positions[free] += velocity[free] + acceleration[free] * h * h
