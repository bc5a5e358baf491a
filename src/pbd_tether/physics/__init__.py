"""
Physics Module
==============
Core simulation of the PBD tether chain.

Submodules:
- config: TetherConfig and anchor coupling modes
- particle_chain: Verlet particle storage
- integrator, rotation, angular: per-substep particle updates
- constraints: Gauss-Seidel stretch/bend/motor projection
- scale_driver: Idle / Extending / Retracting state machine
- coupling: kinematic anchor pin and reaction feedback
- tether_chain: the public TetherChain simulation type
"""

from .config import (
    TetherConfig,
    AnchorMode,
    FixedAnchor,
    SpringAnchor
)

from .particle_chain import ParticleChain

from .integrator import VerletIntegrator

from .rotation import RotationAdvector, rotation_matrix

from .angular import AngularRegulator

from .scale_driver import ChainPhase, ScaleDriver

from .coupling import KinematicCoupling, ReactionAccumulator

from .constraints import ConstraintSolver

from .tether_chain import TetherChain

__all__ = [
    # Config
    'TetherConfig',
    'AnchorMode',
    'FixedAnchor',
    'SpringAnchor',
    # Particles
    'ParticleChain',
    # Substep stages
    'VerletIntegrator',
    'RotationAdvector',
    'rotation_matrix',
    'AngularRegulator',
    'ConstraintSolver',
    # State machine
    'ChainPhase',
    'ScaleDriver',
    # Anchor coupling
    'KinematicCoupling',
    'ReactionAccumulator',
    # Simulation
    'TetherChain',
]
