"""
Scale Driver
============
State machine governing the chain's length multiplier and motor gain.

    IDLE --launch--> EXTENDING --retract / stuck tip--> RETRACTING
      ^                                                     |
      +--------------- scale <= epsilon_scale (collapse) ---+

Each tick (unit = dt when speeds are per second, else 1):

    EXTENDING   scale = min(scale + extend_speed * unit, max_scale)
    RETRACTING  scale = max(scale - retract_speed * unit, 0)
    IDLE        scale decays the same way until collapsed

align_gain fades by align_fade every tick and is capped at
align_k * spin_factor while the chain is moving.
"""

from enum import Enum

from .config import TetherConfig


SPIN_EPSILON = 1e-6


class ChainPhase(Enum):
    """Operating phase of the tether"""
    IDLE = "idle"                # Collapsed onto the anchor
    EXTENDING = "extending"      # Shooting out along the aim ray
    RETRACTING = "retracting"    # Reeling back in


class ScaleDriver:
    """Drives scale, phase, motor gain and the tip-stick timer."""

    def __init__(self, config: TetherConfig):
        self.config = config

        self.phase = ChainPhase.IDLE
        self.scale = 0.0
        self.align_gain = 0.0
        self.tip_attached = False
        self.stick_frames = 0.0

    @property
    def is_collapsed(self) -> bool:
        return self.scale <= self.config.epsilon_scale

    @property
    def is_idle(self) -> bool:
        return self.phase is ChainPhase.IDLE and self.is_collapsed

    @property
    def is_moving(self) -> bool:
        return self.phase in (ChainPhase.EXTENDING, ChainPhase.RETRACTING)

    def launch(self) -> bool:
        """
        Start extending.

        Allowed from IDLE and RETRACTING (re-launch). Returns False when the
        chain is already extending.
        """
        if self.phase is ChainPhase.EXTENDING:
            return False

        cfg = self.config
        self.scale = min(max(self.scale, cfg.min_shoot_scale), cfg.max_scale)
        self.align_gain = cfg.align_k
        self.tip_attached = False
        self.stick_frames = 0.0
        self.phase = ChainPhase.EXTENDING
        return True

    def start_retract(self) -> bool:
        """Switch EXTENDING -> RETRACTING. Returns False otherwise."""
        if self.phase is not ChainPhase.EXTENDING:
            return False
        self.phase = ChainPhase.RETRACTING
        return True

    def attach_tip(self):
        self.tip_attached = True
        self.stick_frames = 0.0

    def detach_tip(self):
        self.tip_attached = False
        self.stick_frames = 0.0

    def collapse(self):
        """Enter the collapsed IDLE state."""
        self.phase = ChainPhase.IDLE
        self.scale = 0.0
        self.align_gain = 0.0
        self.tip_attached = False
        self.stick_frames = 0.0

    def advance(self, dt: float, angular_velocity: float) -> bool:
        """
        Advance one tick.

        Returns True when the chain must be collapsed onto the anchor.
        """
        cfg = self.config
        unit = dt if cfg.speeds_are_per_second else 1.0
        spinning = abs(angular_velocity) > SPIN_EPSILON
        spin_factor = cfg.align_while_spinning_factor if spinning else 1.0
        collapse = False

        if self.phase is ChainPhase.EXTENDING:
            self.scale = min(self.scale + cfg.extend_speed * unit, cfg.max_scale)
        elif self.phase is ChainPhase.RETRACTING:
            self.scale = max(self.scale - cfg.retract_speed * unit, 0.0)
            if self.scale <= cfg.epsilon_scale:
                collapse = True
        else:
            # Idle but still stretched: self-heal toward the collapsed state
            if self.scale > cfg.epsilon_scale:
                self.scale = max(self.scale - cfg.retract_speed * unit, 0.0)
            if self.scale <= cfg.epsilon_scale:
                collapse = True

        self.align_gain *= cfg.align_fade
        if self.is_moving:
            self.align_gain = min(self.align_gain, cfg.align_k * spin_factor)

        if self.tip_attached and not collapse:
            self.stick_frames += dt * cfg.reference_fps if cfg.speeds_are_per_second else 1.0
            if self.stick_frames > cfg.max_stick_frames and self.phase is ChainPhase.EXTENDING:
                self.start_retract()

        if collapse:
            self.collapse()
        return collapse
