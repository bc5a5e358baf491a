"""
PBD Tether
==========
Position-based simulation of an extendable tether rooted on a kinematic,
spinning anchor.

A deterministic particle-chain solver with launch/retract control, an
alignment motor, spin advection and anchor reaction feedback.
"""

__version__ = "0.1.0"
__author__ = "PBD Tether Development Team"
