"""
PBD Tether - Main Simulation
============================
Host loop wiring the tether chain to an anchor body and a catch target.

This simulation demonstrates:
1. Launching the tether along the body's facing direction
2. Spinning the anchor while the tether is out
3. Capturing a drifting target with the tip and reeling it in
4. Feeding the tether's reaction back into the anchor body
"""

import numpy as np
import yaml
import time
from pathlib import Path
from typing import Dict, Optional

# Physics
from .physics import TetherChain, TetherConfig, ChainPhase

# Entities
from .entities import AnchorBody, AnchorBodyConfig, CatchTarget, TargetBounds


class TetherSimulation:
    """
    Main simulation controller for the tether host.

    Orchestrates:
    - Anchor body integration
    - Tether stepping with the anchor pose
    - Reaction feedback into the body
    - Target capture and release
    """

    def __init__(self, config_path: Optional[str] = None):
        # Load configuration
        if config_path:
            with open(config_path, 'r') as f:
                self.config = yaml.safe_load(f)
        else:
            self.config = self._default_config()

        # Anchor body
        body_cfg = dict(self.config['anchor_body'])
        start_position = body_cfg.pop('start_position', (0.0, 0.0))
        start_angle = body_cfg.pop('start_angle', 0.0)
        self.body = AnchorBody(
            AnchorBodyConfig(**body_cfg),
            position=tuple(start_position),
            angle=float(start_angle)
        )

        # Tether
        self.tether_config = TetherConfig.from_dict(self.config.get('chain', {}))
        self.tether = TetherChain(self.tether_config)
        anchor, _ = self.body.anchor_pose()
        self.tether.initialize_at(anchor)

        # Target
        target_cfg = self.config['target']
        bounds = target_cfg.get('bounds')
        self.target = CatchTarget(
            position=tuple(target_cfg['position']),
            velocity=tuple(target_cfg.get('velocity', (0.0, 0.0))),
            radius=target_cfg.get('radius', 12.0),
            bounds=TargetBounds(*bounds) if bounds else None
        )
        self.catch_radius = target_cfg.get('catch_radius', 4.0)

        # Simulation state
        self.time = 0.0
        self.dt = self.config['simulation']['timestep']
        self.running = False
        self.last_kick = np.zeros(2)

        # Pending host inputs, consumed every step
        self._force = np.zeros(2)
        self._torque = 0.0

    def _default_config(self) -> Dict:
        """Default configuration if no file provided"""
        return {
            'chain': {
                'particle_count': 60,
                'base_segment_length': 2.0,
                'iterations': 8,
                'substeps': 2,
            },
            'anchor_body': {
                'mass': 4.0,
                'radius': 24.0,
                'linear_damping': 0.5,
                'angular_damping': 0.5,
                'anchor_offset': [0.0, -40.0],
                'kick_response': 0.05,
                'start_position': [0.0, 0.0],
                'start_angle': 0.0,
            },
            'target': {
                'position': [0.0, -200.0],
                'velocity': [20.0, 0.0],
                'radius': 12.0,
                'catch_radius': 4.0,
                'bounds': [-400.0, -400.0, 400.0, 400.0],
            },
            'simulation': {
                'timestep': 1.0 / 60.0,
                'duration': 10.0,
            }
        }

    # ------------------------------------------------------------------
    # Host inputs
    # ------------------------------------------------------------------

    def command(self, force: Optional[np.ndarray] = None, torque: float = 0.0):
        """Queue force/torque on the anchor body for the next step."""
        if force is not None:
            self._force += np.asarray(force, dtype=np.float64)
        self._torque += float(torque)

    def launch(self) -> bool:
        """Fire the tether along the body's facing direction."""
        if self.tether.phase is not ChainPhase.IDLE:
            return False
        self.target_release()
        self.tether.set_aim_direction(self.body.facing())
        launched = self.tether.launch()
        if launched:
            aim = self.tether.aim_direction
            print(f"[TETHER] Launch at T={self.time:.2f}s, aim=({aim[0]:.2f}, {aim[1]:.2f})")
        return launched

    def retract(self) -> bool:
        retracting = self.tether.start_retract()
        if retracting:
            print(f"[TETHER] Retract at T={self.time:.2f}s, scale={self.tether.scale:.2f}")
        return retracting

    def target_release(self):
        if self.target.sticky:
            self.target.release()
            self.tether.detach_tip()

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self) -> Dict:
        """
        Execute one simulation timestep.

        Returns telemetry data for visualization.
        """
        # 1. Integrate the anchor body with queued inputs
        self.body.apply_force(self._force)
        self.body.apply_torque(self._torque)
        self._force = np.zeros(2)
        self._torque = 0.0
        body_telemetry = self.body.update(self.dt)

        # 2. Step the tether from the anchor pose
        anchor, anchor_velocity = self.body.anchor_pose()
        self.tether.step(self.dt, anchor, anchor_velocity, self.body.angular_velocity)

        # 3. Reaction feedback
        self.last_kick = self.tether.pop_velocity_kick(self.dt)
        self.body.apply_velocity_kick(self.last_kick)

        # 4. Target
        self.target.update(self.dt)
        self._handle_catch()

        # 5. Update time
        self.time += self.dt

        return {
            'time': self.time,
            'body': body_telemetry,
            'tether': self.tether.get_status_report(),
            'positions': self.tether.positions,
            'target': self.target.get_status_report(),
            'kick': self.last_kick.copy(),
        }

    def _handle_catch(self):
        """Tip <-> target hit test and stickiness."""
        tip = self.tether.tip_position()

        if self.target.sticky:
            if self.tether.is_idle():
                print(f"[TARGET] Reeled in at T={self.time:.2f}s")
                self.target_release()
            else:
                self.target.stick_to(tip)
            return

        if (self.tether.driver.is_moving
                and not self.tether.tip_attached
                and self.target.within_reach(tip, self.catch_radius)):
            self.target.stick_to(tip)
            self.tether.attach_tip()
            self.tether.start_retract()
            print(f"[TARGET] Caught at T={self.time:.2f}s, reach={np.linalg.norm(tip - self.tether.chain.anchor):.1f}")

    def run(self, duration: Optional[float] = None, callback=None):
        """
        Run simulation for specified duration.

        Args:
            duration: Simulation time in seconds (default from config)
            callback: Optional function called each step with telemetry
        """
        if duration is None:
            duration = self.config['simulation']['duration']

        self.running = True
        start_time = time.time()

        print(f"Starting Tether Simulation - Duration: {duration}s")
        print("=" * 50)

        while self.time < duration and self.running:
            telemetry = self.step()

            if callback:
                callback(telemetry)

            # Progress update every second
            if int(self.time) != int(self.time - self.dt):
                self._print_status(telemetry)

        self.running = False
        real_time = max(time.time() - start_time, 1e-9)
        print("=" * 50)
        print(f"Simulation complete. Sim time: {self.time:.2f}s, Real time: {real_time:.2f}s")
        print(f"Speed ratio: {self.time/real_time:.1f}x realtime")

    def _print_status(self, telemetry: Dict):
        """Print compact status line"""
        tether = telemetry['tether']
        print(f"T={self.time:6.1f}s | "
              f"Phase: {tether['phase']:<10} | "
              f"Scale: {tether['scale']:4.2f} | "
              f"Reach: {tether['reach']:6.1f} | "
              f"Kick: {np.linalg.norm(telemetry['kick']):5.2f} | "
              f"Catches: {self.target.catch_count}")


def demo_launch_and_catch():
    """Demonstrate launching at a drifting target and reeling it in"""
    print("\n=== LAUNCH & CATCH DEMO ===\n")

    sim = TetherSimulation()
    # Body faces down (-y) toward the target lane
    sim.launch()

    def relaunch(telemetry):
        if sim.tether.is_idle() and not sim.target.sticky:
            sim.launch()

    sim.run(duration=6.0, callback=relaunch)
    print(f"\nTargets caught: {sim.target.catch_count}")


def demo_spin():
    """Demonstrate winding the tether around a spinning anchor"""
    print("\n=== SPIN DEMO ===\n")

    sim = TetherSimulation()
    sim.launch()

    # Let the tether reach full length, then spin up the body
    for _ in range(int(0.5 / sim.dt)):
        sim.step()

    def spin(telemetry):
        sim.command(torque=2000.0)

    sim.run(duration=4.0, callback=spin)

    tether = sim.tether
    reach = tether.chain.distances_from_anchor().max()
    print(f"\nMax reach: {reach:.1f} (rest length {sim.tether_config.full_length:.1f})")


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1:
        if sys.argv[1] == "launch":
            demo_launch_and_catch()
        elif sys.argv[1] == "spin":
            demo_spin()
        else:
            print("Unknown demo. Options: 'launch', 'spin'")
    else:
        # Run main simulation
        config_path = Path(__file__).resolve().parents[2] / "config" / "simulation_params.yaml"

        if config_path.exists():
            sim = TetherSimulation(str(config_path))
        else:
            sim = TetherSimulation()

        sim.launch()
        sim.run()
