"""
Tether Configuration
====================
Construction-time parameters for the PBD tether chain.

All tuning lives in a single dataclass that is validated eagerly: a bad
value fails loudly when the config is built, never in the middle of a
simulation step.

Anchor coupling is a tagged variant rather than scattered flags:

    FixedAnchor              - hard kinematic pin, inverse mass 0
    SpringAnchor(k, c, m)    - weakly coupled anchor particle pulled
                               toward the supplied anchor pose
"""

import numpy as np
from dataclasses import dataclass, field, fields
from typing import Dict, Union


@dataclass(frozen=True)
class FixedAnchor:
    """Anchor particle is pinned to the supplied pose every tick."""
    inverse_mass: float = 0.0


@dataclass(frozen=True)
class SpringAnchor:
    """Anchor particle is dynamic and sprung toward the supplied pose."""
    stiffness: float
    damping: float
    mass: float

    @property
    def inverse_mass(self) -> float:
        return 1.0 / self.mass


AnchorMode = Union[FixedAnchor, SpringAnchor]


@dataclass
class TetherConfig:
    """
    Tuning for a single tether chain.

    Speeds are per tick unless `speeds_are_per_second` is set, in which
    case they are multiplied by the tick's dt.
    """
    # Topology
    particle_count: int = 60
    base_segment_length: float = 2.0

    # Solver
    iterations: int = 8
    substeps: int = 2
    stretch_stiffness: float = 0.9
    bend_stiffness: float = 0.25

    # Environment
    gravity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    drag: float = 0.1

    # Length driver
    max_scale: float = 3.2
    extend_speed: float = 0.14
    retract_speed: float = 0.035
    speeds_are_per_second: bool = False
    epsilon_scale: float = 0.02
    min_shoot_scale: float = 0.2

    # Alignment motor
    align_k: float = 0.3
    align_fade: float = 0.86
    align_while_spinning_factor: float = 0.5

    # Spin coupling
    spin_advection_factor: float = 1.0
    spin_impulse_gain: float = 0.05
    spin_falloff: float = 0.6
    spin_vel_clamp: float = 0.25

    # Anti-overspin
    angular_speed_clamp_factor: float = 1.2
    angular_friction: float = 0.18

    # Soft stretch cap
    max_extra_stretch_per_segment: float = 5.0

    # Anchor coupling
    anchor_mass: float = 0.0            # 0 = fully kinematic
    use_anchor_spring: bool = False
    anchor_spring_stiffness: float = 0.25
    anchor_spring_damping: float = 0.65
    keep_collapsed_locked: bool = True

    # Reaction feedback
    kick_gain: float = 1.0
    kick_clamp: float = 50.0

    # Tip attach / retract
    max_stick_frames: int = 30
    reference_fps: float = 60.0
    retract_assist: float = 0.08
    seed_along_aim_on_launch: bool = True
    hold_reach_while_extending: bool = True   # free tip never recoils along the aim

    def __post_init__(self):
        self.gravity = np.array(self.gravity, dtype=np.float64).reshape(2)
        self.validate()

    def validate(self):
        """Raise ValueError on any nonsensical setting."""
        if int(self.particle_count) != self.particle_count or self.particle_count < 2:
            raise ValueError(f"particle_count must be an integer >= 2, got {self.particle_count}")
        if int(self.iterations) != self.iterations or self.iterations < 1:
            raise ValueError(f"iterations must be an integer >= 1, got {self.iterations}")
        if int(self.substeps) != self.substeps or self.substeps < 1:
            raise ValueError(f"substeps must be an integer >= 1, got {self.substeps}")
        if int(self.max_stick_frames) != self.max_stick_frames or self.max_stick_frames < 0:
            raise ValueError(f"max_stick_frames must be an integer >= 0, got {self.max_stick_frames}")

        if not np.all(np.isfinite(self.gravity)):
            raise ValueError(f"gravity must be finite, got {self.gravity}")

        unit_interval = {
            'stretch_stiffness': self.stretch_stiffness,
            'bend_stiffness': self.bend_stiffness,
            'align_k': self.align_k,
            'align_fade': self.align_fade,
            'align_while_spinning_factor': self.align_while_spinning_factor,
            'retract_assist': self.retract_assist,
        }
        for name, value in unit_interval.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        half_open = {
            'drag': self.drag,
            'angular_friction': self.angular_friction,
        }
        for name, value in half_open.items():
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1), got {value}")

        positive = {
            'base_segment_length': self.base_segment_length,
            'max_scale': self.max_scale,
            'reference_fps': self.reference_fps,
        }
        for name, value in positive.items():
            if not value > 0.0:
                raise ValueError(f"{name} must be > 0, got {value}")

        non_negative = {
            'extend_speed': self.extend_speed,
            'retract_speed': self.retract_speed,
            'epsilon_scale': self.epsilon_scale,
            'min_shoot_scale': self.min_shoot_scale,
            'spin_advection_factor': self.spin_advection_factor,
            'spin_impulse_gain': self.spin_impulse_gain,
            'spin_falloff': self.spin_falloff,
            'spin_vel_clamp': self.spin_vel_clamp,
            'angular_speed_clamp_factor': self.angular_speed_clamp_factor,
            'max_extra_stretch_per_segment': self.max_extra_stretch_per_segment,
            'anchor_mass': self.anchor_mass,
            'anchor_spring_stiffness': self.anchor_spring_stiffness,
            'anchor_spring_damping': self.anchor_spring_damping,
            'kick_gain': self.kick_gain,
            'kick_clamp': self.kick_clamp,
        }
        for name, value in non_negative.items():
            if not value >= 0.0:
                raise ValueError(f"{name} must be >= 0, got {value}")

        if self.epsilon_scale >= self.max_scale:
            raise ValueError(
                f"epsilon_scale ({self.epsilon_scale}) must be below max_scale ({self.max_scale})"
            )
        if self.min_shoot_scale > self.max_scale:
            raise ValueError(
                f"min_shoot_scale ({self.min_shoot_scale}) exceeds max_scale ({self.max_scale})"
            )
        if self.use_anchor_spring and self.anchor_mass <= 0.0:
            raise ValueError("use_anchor_spring requires anchor_mass > 0")

    @property
    def anchor_mode(self) -> AnchorMode:
        """Anchor coupling selected by this configuration."""
        if self.use_anchor_spring:
            return SpringAnchor(
                stiffness=self.anchor_spring_stiffness,
                damping=self.anchor_spring_damping,
                mass=self.anchor_mass
            )
        return FixedAnchor()

    @property
    def full_length(self) -> float:
        """Chain length at max_scale with every segment at rest."""
        return (self.particle_count - 1) * self.base_segment_length * self.max_scale

    @classmethod
    def from_dict(cls, values: Dict) -> 'TetherConfig':
        """Build a config from a plain mapping (e.g. a YAML section)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown tether config keys: {unknown}")
        return cls(**values)

    def to_dict(self) -> Dict:
        """Plain mapping of every option (gravity as a list)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values['gravity'] = self.gravity.tolist()
        return values
