"""
Catch Target Entity
===================
A small drifting body the tether tip can capture.

While free it drifts and bounces elastically off an optional bounding
box. Once caught it becomes sticky and simply rides the tip until the
host releases it.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass
class TargetBounds:
    """Axis-aligned box the free target bounces inside"""
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    def __post_init__(self):
        if self.x_max <= self.x_min or self.y_max <= self.y_min:
            raise ValueError(f"Degenerate target bounds: {self}")


class CatchTarget:
    """Drifting, catchable target."""

    def __init__(self,
                 position: Tuple[float, float],
                 velocity: Tuple[float, float] = (0.0, 0.0),
                 radius: float = 12.0,
                 bounds: Optional[TargetBounds] = None):
        if radius <= 0:
            raise ValueError(f"radius must be > 0, got {radius}")

        self.position = np.array(position, dtype=np.float64)
        self.velocity = np.array(velocity, dtype=np.float64)
        self.radius = float(radius)
        self.bounds = bounds
        self.sticky = False
        self.catch_count = 0

    def update(self, dt: float):
        """Drift while free; sticky targets are positioned by the host."""
        if self.sticky:
            return

        self.position += self.velocity * dt

        if self.bounds is None:
            return

        b, r = self.bounds, self.radius
        for axis, low, high in ((0, b.x_min, b.x_max), (1, b.y_min, b.y_max)):
            if self.position[axis] < low + r:
                self.position[axis] = low + r
                self.velocity[axis] *= -1
            elif self.position[axis] > high - r:
                self.position[axis] = high - r
                self.velocity[axis] *= -1

    def within_reach(self, point: np.ndarray, catch_radius: float) -> bool:
        reach = catch_radius + self.radius
        offset = np.asarray(point, dtype=np.float64) - self.position
        return float(np.dot(offset, offset)) <= reach * reach

    def stick_to(self, point: np.ndarray):
        """Latch onto a point (the tether tip)."""
        if not self.sticky:
            self.catch_count += 1
        self.sticky = True
        self.position = np.array(point, dtype=np.float64)

    def release(self):
        self.sticky = False
        self.velocity = np.zeros(2)

    def get_status_report(self) -> Dict:
        return {
            'position': {'x': self.position[0], 'y': self.position[1]},
            'sticky': self.sticky,
            'catches': self.catch_count,
        }
