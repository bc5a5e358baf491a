"""
Angular Regulator
=================
Bounds how fast the chain can wind around its anchor.

For every non-anchor particle the implicit velocity v = x - x_prev is split
into radial and tangential parts about the anchor:

    v_r = (v . r_hat) r_hat
    v_t = (v . t_hat) t_hat,    t_hat = perp(r_hat)

The tangential part is damped by `angular_friction` and clamped to

    |v_t| <= angular_speed_clamp_factor * |omega| * r      (per second)

which is applied per substep as a displacement bound of
factor * |omega| * r * h. The radial part passes through untouched, and
x_prev is rewritten so the next integration sees the regulated velocity.

Particles sitting on the anchor (r ~ 0) get plain isotropic damping.
"""

import numpy as np

from .particle_chain import ParticleChain


MIN_RADIUS = 1e-6


class AngularRegulator:
    """Tangential friction and angular-speed clamp about the anchor."""

    def __init__(self, angular_friction: float, angular_speed_clamp_factor: float):
        self.angular_friction = angular_friction
        self.angular_speed_clamp_factor = angular_speed_clamp_factor

    def max_tangential_speed(self, angular_velocity: float, radius):
        """Tangential speed bound (units/s) at a given radius."""
        return self.angular_speed_clamp_factor * abs(angular_velocity) * radius

    def regulate(self,
                 chain: ParticleChain,
                 pivot: np.ndarray,
                 angular_velocity: float,
                 h: float):
        x = chain.positions[1:]
        v = x - chain.previous[1:]
        r = x - np.asarray(pivot, dtype=np.float64)
        radius = np.linalg.norm(r, axis=1)
        keep = 1.0 - self.angular_friction

        regulated = v * keep

        on_axis = radius < MIN_RADIUS
        off_axis = ~on_axis
        if np.any(off_axis):
            r_hat = r[off_axis] / radius[off_axis, None]
            t_hat = np.column_stack((-r_hat[:, 1], r_hat[:, 0]))

            vr = np.einsum('ij,ij->i', v[off_axis], r_hat)
            vt = np.einsum('ij,ij->i', v[off_axis], t_hat) * keep

            vt_max = self.max_tangential_speed(angular_velocity, radius[off_axis]) * h
            vt = np.clip(vt, -vt_max, vt_max)

            regulated[off_axis] = vr[:, None] * r_hat + vt[:, None] * t_hat

        chain.previous[1:] = x - regulated
