"""
Constraint Solver
=================
Gauss-Seidel position projection for the tether chain.

Every pass applies, in order:

1. Stretch      (i, i+1) toward rest = base * scale, `stretch_stiffness`
2. Max stretch  (i, i+1) only beyond rest + max_extra, stiffness 1.0
3. Bend         (i, i+2) toward 2 * rest, `bend_stiffness`
4. Alignment    pull particle i toward anchor + aim * rest * i
                (extending, tip free)
5. Retract      pull the attached tip toward the anchor
   assist       (retracting only)

Pair projection (PBD distance constraint):

    d     = x_j - x_i
    corr  = stiffness * (|d| - L) / |d| * d
    x_i  += corr * w_i / (w_i + w_j)
    x_j  -= corr * w_j / (w_i + w_j)

A fixed anchor (w = 0) takes no share. Its would-be correction, scaled by
the other endpoint's share, goes to the reaction accumulator instead.
Zero or non-finite separations skip that one application.
"""

import math
import numpy as np
from typing import Optional

from .particle_chain import ParticleChain
from .coupling import ReactionAccumulator
from .scale_driver import ChainPhase


SPIN_EPSILON = 1e-6
MIN_ALIGN_GAIN = 1e-4


class ConstraintSolver:
    """Fixed-iteration projection of stretch, bend and motor constraints."""

    def __init__(self,
                 iterations: int,
                 stretch_stiffness: float,
                 bend_stiffness: float,
                 max_extra_stretch: float,
                 align_k: float,
                 align_while_spinning_factor: float,
                 retract_assist: float):
        self.iterations = int(iterations)
        self.stretch_stiffness = stretch_stiffness
        self.bend_stiffness = bend_stiffness
        self.max_extra_stretch = max_extra_stretch
        self.align_k = align_k
        self.align_while_spinning_factor = align_while_spinning_factor
        self.retract_assist = retract_assist

    def solve(self,
              chain: ParticleChain,
              rest_length: float,
              phase: ChainPhase,
              tip_attached: bool,
              align_gain: float,
              aim_direction: np.ndarray,
              angular_velocity: float,
              reaction: Optional[ReactionAccumulator] = None):
        rest = max(0.0, rest_length)
        n = chain.count
        motor_gain = self.effective_align_gain(align_gain, angular_velocity)
        motor_on = (phase is ChainPhase.EXTENDING and not tip_attached
                    and rest > 0 and motor_gain > MIN_ALIGN_GAIN)
        assist_on = (phase is ChainPhase.RETRACTING and tip_attached
                     and rest > 0 and self.retract_assist > 0)

        for _ in range(self.iterations):
            if rest > 0:
                for i in range(n - 1):
                    self.project_distance(chain, i, i + 1, rest, self.stretch_stiffness, reaction)

            for i in range(n - 1):
                self.project_max_stretch(chain, i, i + 1, rest, self.max_extra_stretch, reaction)

            if rest > 0 and self.bend_stiffness > 0:
                for i in range(n - 2):
                    self.project_distance(chain, i, i + 2, 2.0 * rest, self.bend_stiffness, reaction)

            if motor_on:
                self.apply_alignment(chain, rest, aim_direction, motor_gain)

            if assist_on:
                tip = chain.tip_index
                chain.positions[tip] += (chain.positions[0] - chain.positions[tip]) * self.retract_assist

    def effective_align_gain(self, align_gain: float, angular_velocity: float) -> float:
        """Motor gain, capped lower while the anchor spins."""
        if abs(angular_velocity) > SPIN_EPSILON:
            return min(align_gain, self.align_k * self.align_while_spinning_factor)
        return align_gain

    def apply_alignment(self,
                        chain: ParticleChain,
                        rest: float,
                        aim_direction: np.ndarray,
                        gain: float):
        """Blend free particles toward evenly spaced points on the aim ray."""
        index = np.arange(chain.count, dtype=np.float64)[:, None]
        goals = chain.positions[0] + aim_direction * rest * index
        free = chain.inverse_mass > 0.0
        free[0] = False
        chain.positions[free] += (goals[free] - chain.positions[free]) * gain

    def project_distance(self,
                         chain: ParticleChain,
                         i: int,
                         j: int,
                         rest: float,
                         stiffness: float,
                         reaction: Optional[ReactionAccumulator] = None) -> bool:
        """Project one pair toward `rest`. Returns False when skipped."""
        return self._project(chain, i, j, rest, stiffness, reaction, cap_only=False)

    def project_max_stretch(self,
                            chain: ParticleChain,
                            i: int,
                            j: int,
                            rest: float,
                            max_extra: float,
                            reaction: Optional[ReactionAccumulator] = None) -> bool:
        """Hard-clamp one pair to at most rest + max_extra."""
        return self._project(chain, i, j, rest + max_extra, 1.0, reaction, cap_only=True)

    def _project(self,
                 chain: ParticleChain,
                 i: int,
                 j: int,
                 target: float,
                 stiffness: float,
                 reaction: Optional[ReactionAccumulator],
                 cap_only: bool) -> bool:
        w1 = chain.inverse_mass[i]
        w2 = chain.inverse_mass[j]
        wsum = w1 + w2
        if wsum == 0:
            return False

        pos = chain.positions
        dx = pos[j, 0] - pos[i, 0]
        dy = pos[j, 1] - pos[i, 1]
        d2 = dx * dx + dy * dy
        if d2 == 0 or not math.isfinite(d2):
            return False

        d = math.sqrt(d2)
        if cap_only and d <= target:
            return False

        scale = stiffness * (d - target) / d
        cx = scale * dx
        cy = scale * dy

        if w1 > 0:
            share = w1 / wsum
            pos[i, 0] += cx * share
            pos[i, 1] += cy * share
        elif reaction is not None and i == chain.anchor_index:
            share = w2 / wsum
            reaction.add(np.array([cx * share, cy * share]))

        if w2 > 0:
            share = w2 / wsum
            pos[j, 0] -= cx * share
            pos[j, 1] -= cy * share
        elif reaction is not None and j == chain.anchor_index:
            share = w1 / wsum
            reaction.add(np.array([-cx * share, -cy * share]))

        return True
