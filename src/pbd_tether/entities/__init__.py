"""
Entities Module
===============
Host-side bodies that feed the tether and consume its output.

- AnchorBody: rigid body carrying the tether's root
- CatchTarget: drifting body the tether tip can capture
"""

from .anchor_body import AnchorBody, AnchorBodyConfig, omega_cross_r
from .catch_target import CatchTarget, TargetBounds

__all__ = [
    'AnchorBody',
    'AnchorBodyConfig',
    'omega_cross_r',
    'CatchTarget',
    'TargetBounds',
]
