"""
Tether Chain
============
Deterministic PBD simulation of a chain whose root is driven by an
external kinematic body.

Per tick:

    1. reset reaction
    2. couple the anchor (pin, or move the spring rest point)
    3. advance the ScaleDriver (may collapse the chain)
    4. `substeps` x { integrate -> rotate/swirl -> regulate -> solve }
    5. hold the free tip's reach while extending without spin
    6. expose tip position and a poppable velocity kick

The caller supplies dt and the anchor pose (position, linear velocity,
angular velocity) every tick and reads back particle positions. Nothing
here draws or logs, and instances share no mutable data.
"""

import numpy as np
from typing import Dict, Optional, Sequence

from .config import TetherConfig, FixedAnchor, SpringAnchor
from .particle_chain import ParticleChain, DEFAULT_LAYOUT_DIRECTION
from .integrator import VerletIntegrator
from .rotation import RotationAdvector
from .angular import AngularRegulator
from .constraints import ConstraintSolver
from .scale_driver import ScaleDriver, ChainPhase, SPIN_EPSILON
from .coupling import KinematicCoupling, ReactionAccumulator


# Reach hold never exceeds the rest reach by more than this fraction
REACH_HOLD_SLACK = 0.01


class TetherChain:
    """
    Extendable, steerable tether rooted on a kinematic anchor.

    Particle 0 follows the anchor, particle N-1 is the tip. The chain
    shoots out along an aim direction on launch, winds with the anchor
    while it spins, and collapses back onto the anchor after retracting.
    """

    def __init__(self, config: Optional[TetherConfig] = None):
        self.config = config or TetherConfig()
        cfg = self.config

        self.chain = ParticleChain(cfg.particle_count, cfg.base_segment_length)
        self.anchor_mode = cfg.anchor_mode
        self.chain.inverse_mass[0] = self.anchor_mode.inverse_mass

        self.driver = ScaleDriver(cfg)
        self.integrator = VerletIntegrator(cfg.gravity, cfg.drag)
        self.advector = RotationAdvector(
            spin_advection_factor=cfg.spin_advection_factor,
            spin_impulse_gain=cfg.spin_impulse_gain,
            spin_falloff=cfg.spin_falloff,
            spin_vel_clamp=cfg.spin_vel_clamp
        )
        self.regulator = AngularRegulator(
            angular_friction=cfg.angular_friction,
            angular_speed_clamp_factor=cfg.angular_speed_clamp_factor
        )
        self.solver = ConstraintSolver(
            iterations=cfg.iterations,
            stretch_stiffness=cfg.stretch_stiffness,
            bend_stiffness=cfg.bend_stiffness,
            max_extra_stretch=cfg.max_extra_stretch_per_segment,
            align_k=cfg.align_k,
            align_while_spinning_factor=cfg.align_while_spinning_factor,
            retract_assist=cfg.retract_assist
        )
        self._reaction = ReactionAccumulator()

        self._aim = DEFAULT_LAYOUT_DIRECTION.copy()
        self._anchor_rest = np.zeros(2)
        self._reach_floor: Optional[float] = None
        self.angular_velocity = 0.0
        self.angular_phase = 0.0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> ChainPhase:
        return self.driver.phase

    @property
    def scale(self) -> float:
        return self.driver.scale

    @property
    def rest_length(self) -> float:
        """Current rest length between adjacent particles."""
        return self.config.base_segment_length * self.driver.scale

    @property
    def align_gain(self) -> float:
        return self.driver.align_gain

    @property
    def tip_attached(self) -> bool:
        return self.driver.tip_attached

    @property
    def aim_direction(self) -> np.ndarray:
        return self._aim.copy()

    @property
    def positions(self) -> np.ndarray:
        """Copy of every particle position, anchor first."""
        return self.chain.copy_positions()

    @property
    def reaction(self) -> np.ndarray:
        """Correction accumulated against the anchor so far this tick."""
        return self._reaction.vector

    def tip_position(self) -> np.ndarray:
        return self.chain.tip.copy()

    def is_idle(self) -> bool:
        return self.driver.is_idle

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def initialize_at(self, anchor_position: Sequence[float]):
        """Lay the chain out behind the anchor with zero velocity."""
        anchor_position = np.asarray(anchor_position, dtype=np.float64)
        self.chain.initialize_at(anchor_position, DEFAULT_LAYOUT_DIRECTION)
        self._anchor_rest = anchor_position.copy()

    def set_aim_direction(self, direction: Sequence[float]):
        direction = np.asarray(direction, dtype=np.float64).reshape(2)
        norm = np.linalg.norm(direction)
        if not np.isfinite(norm) or norm < 1e-12:
            raise ValueError(f"Aim direction must be a finite non-zero vector, got {direction}")
        self._aim = direction / norm
        self._reach_floor = None

    def set_aim_from_angle(self, theta: float):
        self.set_aim_direction((np.cos(theta), np.sin(theta)))

    def launch(self) -> bool:
        """
        Shoot the chain out along the aim direction.

        From a collapsed start the particles are seeded along the aim ray
        at the launch rest length (when `seed_along_aim_on_launch`).
        """
        from_idle = self.driver.phase is ChainPhase.IDLE
        if not self.driver.launch():
            return False
        if from_idle and self.config.seed_along_aim_on_launch:
            self.chain.lay_along(self._aim, self.rest_length)
        self._reach_floor = None
        return True

    def start_retract(self) -> bool:
        return self.driver.start_retract()

    def attach_tip(self):
        """Stick the tip and kill its residual velocity."""
        self.driver.attach_tip()
        tip = self.chain.tip_index
        self.chain.previous[tip] = self.chain.positions[tip]

    def detach_tip(self):
        self.driver.detach_tip()

    def request(self, command: str):
        """Dispatch a named command (scripted hosts, config-driven demos)."""
        handlers = {
            'launch': self.launch,
            'retract': self.start_retract,
            'attach': self.attach_tip,
            'detach': self.detach_tip,
        }
        if command not in handlers:
            raise ValueError(f"Unknown tether command '{command}'. Available: {sorted(handlers)}")
        return handlers[command]()

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def step(self,
             dt: float,
             anchor_position: Sequence[float],
             anchor_velocity: Sequence[float],
             anchor_angular_velocity: float):
        """Advance the whole system by one tick."""
        cfg = self.config
        dt = float(dt)
        anchor_position = np.asarray(anchor_position, dtype=np.float64)
        anchor_velocity = np.asarray(anchor_velocity, dtype=np.float64)
        omega = float(anchor_angular_velocity)

        self._reaction.reset()
        self.angular_velocity = omega

        if dt <= 0:
            self._couple_anchor(anchor_position, anchor_velocity, 0.0)
            return

        self._couple_anchor(anchor_position, anchor_velocity, dt)
        collapse = self.driver.advance(dt, omega)
        self.angular_phase += omega * dt

        if collapse:
            if cfg.keep_collapsed_locked:
                KinematicCoupling.pin(self.chain, anchor_position, anchor_velocity, dt)
                self.chain.collapse_to(anchor_position)
                return
            self.chain.collapse_to(self.chain.positions[0])

        steps = cfg.substeps
        h = dt / steps
        rotating = self.driver.is_moving and self.driver.scale > cfg.epsilon_scale

        for _ in range(steps):
            self.integrator.integrate(self.chain, h, self.anchor_mode, self._anchor_rest)

            pivot = self.chain.positions[0].copy()
            if rotating:
                self.advector.advect(self.chain, pivot, omega, h)
            self.regulator.regulate(self.chain, pivot, omega, h)

            self.solver.solve(
                self.chain,
                rest_length=self.rest_length,
                phase=self.driver.phase,
                tip_attached=self.driver.tip_attached,
                align_gain=self.driver.align_gain,
                aim_direction=self._aim,
                angular_velocity=omega,
                reaction=self._reaction
            )

        if self._holds_reach(omega):
            self._hold_tip_extent()
        else:
            self._reach_floor = None

        if self.driver.is_idle:
            self.chain.collapse_to(self.chain.positions[0])
            self._reaction.reset()

    def tip_extent(self) -> float:
        """Signed distance of the tip from the anchor along the aim."""
        return float(np.dot(self.chain.tip - self.chain.anchor, self._aim))

    def _holds_reach(self, omega: float) -> bool:
        return (self.config.hold_reach_while_extending
                and self.driver.phase is ChainPhase.EXTENDING
                and not self.driver.tip_attached
                and abs(omega) <= SPIN_EPSILON)

    def _hold_tip_extent(self):
        """
        Ratchet the free tip's extent along the aim.

        Once the length stops growing the solver settles the overshoot
        back toward the rest reach; the tip keeps the furthest extent it
        reached instead, capped just above the rest reach. The shift is
        written into x_prev too so it adds no velocity.
        """
        extent = self.tip_extent()
        if self._reach_floor is None or extent >= self._reach_floor:
            self._reach_floor = extent
            return

        ceiling = (self.chain.count - 1) * self.rest_length * (1.0 + REACH_HOLD_SLACK)
        floor = min(self._reach_floor, ceiling)
        if extent < floor:
            shift = (floor - extent) * self._aim
            tip = self.chain.tip_index
            self.chain.positions[tip] += shift
            self.chain.previous[tip] += shift

    def _couple_anchor(self, position: np.ndarray, velocity: np.ndarray, dt: float):
        if isinstance(self.anchor_mode, SpringAnchor):
            self._anchor_rest = position.copy()
        else:
            KinematicCoupling.pin(self.chain, position, velocity, dt)

    def pop_velocity_kick(self, dt: float) -> np.ndarray:
        """Consume the accumulated anchor reaction as a velocity impulse."""
        return self._reaction.pop_velocity_kick(dt, self.config.kick_gain, self.config.kick_clamp)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def get_status_report(self) -> Dict:
        """Snapshot for UI/telemetry"""
        tip = self.tip_position()
        return {
            'phase': self.phase.value,
            'scale': self.scale,
            'rest_length': self.rest_length,
            'align_gain': self.align_gain,
            'tip_attached': self.tip_attached,
            'tip': {'x': tip[0], 'y': tip[1]},
            'reach': float(np.linalg.norm(tip - self.chain.anchor)),
            'aim': self._aim.tolist(),
            'angular_phase': self.angular_phase,
            'anchor_mode': 'fixed' if isinstance(self.anchor_mode, FixedAnchor) else 'spring',
            'reaction': self._reaction.magnitude,
        }
