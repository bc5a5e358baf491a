"""
Rotation Advector
=================
Drags the chain around a spinning anchor.

Each substep the anchor turns by

    dtheta = omega * spin_advection_factor * h

and every non-anchor particle is rotated rigidly about the anchor by the
same angle. Both x and x_prev are rotated so the advection itself adds no
implicit velocity.

On top of the rigid turn a small tangential "swirl" impulse is injected:

    dv_i = dtheta * gain * perp(r_i) * max(0, 1 - falloff * i / (N-1))

clamped to `spin_vel_clamp` per particle so distal particles never whip.
The impulse is written into x_prev (x_prev -= dv).
"""

import numpy as np

from .particle_chain import ParticleChain


SWIRL_THRESHOLD = 1e-8


def rotation_matrix(theta: float) -> np.ndarray:
    """Standard counter-clockwise 2D rotation."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


class RotationAdvector:
    """Rigid anchor-driven rotation plus distance-attenuated swirl."""

    def __init__(self,
                 spin_advection_factor: float,
                 spin_impulse_gain: float,
                 spin_falloff: float,
                 spin_vel_clamp: float):
        self.spin_advection_factor = spin_advection_factor
        self.spin_impulse_gain = spin_impulse_gain
        self.spin_falloff = spin_falloff
        self.spin_vel_clamp = spin_vel_clamp

    def advect(self,
               chain: ParticleChain,
               pivot: np.ndarray,
               angular_velocity: float,
               h: float) -> float:
        """
        Rotate free particles about `pivot` for one substep.

        Returns the applied angle.
        """
        dtheta = angular_velocity * self.spin_advection_factor * h
        if dtheta == 0.0:
            return 0.0

        pivot = np.array(pivot, dtype=np.float64)
        R = rotation_matrix(dtheta)

        # Row vectors, so multiply by R^T
        chain.positions[1:] = pivot + (chain.positions[1:] - pivot) @ R.T
        chain.previous[1:] = pivot + (chain.previous[1:] - pivot) @ R.T

        if abs(dtheta) >= SWIRL_THRESHOLD and self.spin_impulse_gain > 0:
            self._swirl(chain, pivot, dtheta)

        return dtheta

    def _swirl(self, chain: ParticleChain, pivot: np.ndarray, dtheta: float):
        r = chain.positions[1:] - pivot
        dv = dtheta * self.spin_impulse_gain * np.column_stack((-r[:, 1], r[:, 0]))

        if self.spin_falloff > 0:
            t = np.arange(1, chain.count, dtype=np.float64) / (chain.count - 1)
            weight = np.maximum(0.0, 1.0 - self.spin_falloff * t)
            dv *= weight[:, None]

        magnitude = np.linalg.norm(dv, axis=1)
        over = magnitude > self.spin_vel_clamp
        if np.any(over):
            dv[over] *= (self.spin_vel_clamp / (magnitude[over] + 1e-9))[:, None]

        chain.previous[1:] -= dv
