"""
Anchor Body Entity
==================
The rigid 2D body that carries the tether's root.

The body is driven by forces and torques, integrated semi-implicitly, and
exposes the world pose of its anchor point - the kinematic input the
tether needs every tick:

    r_anchor = R(theta) @ anchor_offset
    p_anchor = p_com + r_anchor
    v_anchor = v_com + omega x r_anchor

It also consumes the tether's reaction as a velocity kick, so the chain
tugs its owner without ever moving the anchor pin directly.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..physics import rotation_matrix


@dataclass
class AnchorBodyConfig:
    """Configuration for the anchor-carrying body"""
    mass: float = 4.0                      # kg
    radius: float = 24.0                   # disk radius for inertia
    linear_damping: float = 0.0            # 1/s
    angular_damping: float = 0.0           # 1/s
    anchor_offset: np.ndarray = field(
        default_factory=lambda: np.array([0.0, -40.0])  # body frame
    )
    kick_response: float = 1.0             # fraction of tether kick applied

    def __post_init__(self):
        self.anchor_offset = np.array(self.anchor_offset, dtype=np.float64).reshape(2)
        if self.mass <= 0:
            raise ValueError(f"mass must be > 0, got {self.mass}")
        if self.radius <= 0:
            raise ValueError(f"radius must be > 0, got {self.radius}")
        if self.linear_damping < 0 or self.angular_damping < 0:
            raise ValueError("damping must be >= 0")

    @property
    def inertia(self) -> float:
        """Solid disk moment of inertia"""
        return 0.5 * self.mass * self.radius ** 2


def omega_cross_r(omega: float, r: np.ndarray) -> np.ndarray:
    """Planar omega x r (omega along +z)."""
    return np.array([-omega * r[1], omega * r[0]])


class AnchorBody:
    """
    Rigid body whose anchor point roots the tether.

    Responsibilities:
    - Accumulate forces/torques from the host
    - Integrate linear and angular motion
    - Report anchor pose and velocity in world frame
    - Absorb the tether's reaction kick
    """

    def __init__(self,
                 config: Optional[AnchorBodyConfig] = None,
                 position: Tuple[float, float] = (0.0, 0.0),
                 angle: float = 0.0):
        self.config = config or AnchorBodyConfig()

        self.position = np.array(position, dtype=np.float64)
        self.velocity = np.zeros(2)
        self.angle = float(angle)
        self.angular_velocity = 0.0

        self.force = np.zeros(2)
        self.torque = 0.0

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def apply_force(self, force: np.ndarray):
        self.force += np.asarray(force, dtype=np.float64)

    def apply_torque(self, torque: float):
        self.torque += float(torque)

    def anchor_offset_world(self) -> np.ndarray:
        """Anchor offset rotated into the world frame."""
        return rotation_matrix(self.angle) @ self.config.anchor_offset

    def anchor_pose(self) -> Tuple[np.ndarray, np.ndarray]:
        """World position and velocity of the anchor point."""
        r = self.anchor_offset_world()
        position = self.position + r
        velocity = self.velocity + omega_cross_r(self.angular_velocity, r)
        return position, velocity

    def facing(self) -> np.ndarray:
        """Unit vector from the body centre toward the anchor point."""
        r = self.anchor_offset_world()
        norm = np.linalg.norm(r)
        if norm < 1e-9:
            return np.array([np.cos(self.angle), np.sin(self.angle)])
        return r / norm

    def update(self, dt: float) -> Dict:
        """
        Semi-implicit Euler step, then clear accumulated force/torque.

        Returns updated state info.
        """
        cfg = self.config

        acceleration = self.force / cfg.mass
        self.velocity += acceleration * dt
        self.velocity *= max(0.0, 1.0 - cfg.linear_damping * dt)
        self.position += self.velocity * dt

        angular_acceleration = self.torque / cfg.inertia
        self.angular_velocity += angular_acceleration * dt
        self.angular_velocity *= max(0.0, 1.0 - cfg.angular_damping * dt)
        self.angle += self.angular_velocity * dt

        self.force = np.zeros(2)
        self.torque = 0.0

        return {
            'position': self.position.copy(),
            'velocity': self.velocity.copy(),
            'speed': self.speed,
            'angle': self.angle,
            'angular_velocity': self.angular_velocity,
        }

    def apply_velocity_kick(self, kick: np.ndarray):
        """Add the tether's velocity impulse to the body."""
        self.velocity += np.asarray(kick, dtype=np.float64) * self.config.kick_response

    def get_status_report(self) -> Dict:
        """Get comprehensive status for UI/telemetry"""
        anchor, anchor_velocity = self.anchor_pose()
        return {
            'position': {'x': self.position[0], 'y': self.position[1]},
            'velocity': {'x': self.velocity[0], 'y': self.velocity[1], 'speed': self.speed},
            'orientation': {
                'angle': np.degrees(self.angle),
                'angular_velocity': self.angular_velocity,
            },
            'anchor': {
                'x': anchor[0],
                'y': anchor[1],
                'speed': float(np.linalg.norm(anchor_velocity)),
            },
        }
