"""
Test Suite: Substep Stages
==========================
Unit tests for the pieces a tether substep is made of.

Tests:
- Particle storage and layout
- Verlet integration (drag, gravity, fixed particles, anchor spring)
- Rigid rotation and swirl around the anchor
- Tangential friction and angular-speed clamp
- Pin coupling and reaction kick conversion
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pbd_tether.physics import (
    ParticleChain,
    VerletIntegrator,
    RotationAdvector,
    AngularRegulator,
    KinematicCoupling,
    ReactionAccumulator,
    FixedAnchor,
    SpringAnchor,
    rotation_matrix
)


def make_pair(anchor=(0.0, 0.0), tip=(1.0, 0.0)):
    """Two-particle chain with a fixed anchor, both at rest."""
    chain = ParticleChain(2, 1.0)
    chain.inverse_mass[0] = 0.0
    chain.positions[0] = anchor
    chain.positions[1] = tip
    chain.previous[:] = chain.positions
    return chain


class TestParticleChain:
    """Tests for particle storage"""

    def test_requires_two_particles(self):
        with pytest.raises(ValueError):
            ParticleChain(1, 2.0)

    def test_initialize_lays_out_behind_anchor(self):
        chain = ParticleChain(5, 2.0)
        chain.initialize_at((10.0, 5.0))

        expected = np.array([[10.0, 5.0 - 2.0 * i] for i in range(5)])
        np.testing.assert_array_almost_equal(chain.positions, expected)
        np.testing.assert_array_equal(chain.previous, chain.positions)
        np.testing.assert_array_almost_equal(chain.segment_lengths(), [2.0] * 4)

    def test_collapse_from_own_anchor_view(self):
        """Collapsing onto positions[0] must not alias the live row"""
        chain = ParticleChain(4, 2.0)
        chain.initialize_at((3.0, 4.0))
        chain.collapse_to(chain.anchor)

        assert chain.is_collapsed()
        np.testing.assert_array_equal(chain.positions, np.tile([3.0, 4.0], (4, 1)))

    def test_lay_along_keeps_anchor(self):
        chain = ParticleChain(4, 2.0)
        chain.collapse_to((1.0, 1.0))
        chain.lay_along(np.array([1.0, 0.0]), 0.5)

        np.testing.assert_array_almost_equal(chain.positions[:, 0], [1.0, 1.5, 2.0, 2.5])
        np.testing.assert_array_almost_equal(chain.positions[:, 1], [1.0] * 4)
        assert np.all(chain.velocity(3) == 0.0)

    def test_tip_is_live_view(self):
        chain = ParticleChain(3, 1.0)
        chain.positions[2] = (7.0, 8.0)

        np.testing.assert_array_equal(chain.tip, [7.0, 8.0])
        assert chain.tip_index == 2
        assert chain.anchor_index == 0


class TestVerletIntegrator:
    """Tests for the integration stage"""

    def test_drag_and_gravity(self):
        chain = make_pair(anchor=(5.0, 5.0), tip=(1.0, 0.0))
        chain.previous[1] = (0.0, 0.0)

        VerletIntegrator(gravity=(0.0, -10.0), drag=0.1).integrate(chain, 0.1, FixedAnchor())

        assert chain.positions[1] == pytest.approx([1.9, -0.1])
        assert chain.previous[1] == pytest.approx([1.0, 0.0])

    def test_fixed_particle_untouched(self):
        chain = make_pair(anchor=(5.0, 5.0))
        chain.previous[0] = (4.0, 5.0)

        VerletIntegrator(gravity=(0.0, -10.0), drag=0.0).integrate(chain, 0.1, FixedAnchor())

        np.testing.assert_array_equal(chain.positions[0], [5.0, 5.0])
        np.testing.assert_array_equal(chain.previous[0], [4.0, 5.0])

    def test_spring_pulls_anchor_to_rest(self):
        chain = make_pair(anchor=(1.0, 0.0), tip=(1.0, -1.0))
        chain.inverse_mass[0] = 1.0
        mode = SpringAnchor(stiffness=10.0, damping=0.0, mass=1.0)

        VerletIntegrator(gravity=(0.0, 0.0), drag=0.0).integrate(
            chain, 0.1, mode, anchor_rest=np.zeros(2)
        )

        assert chain.positions[0] == pytest.approx([0.9, 0.0])
        # Tip had no velocity and feels no spring
        assert chain.positions[1] == pytest.approx([1.0, -1.0])


class TestRotationAdvector:
    """Tests for anchor-driven rotation"""

    def test_rotation_matrix_quarter_turn(self):
        R = rotation_matrix(np.pi / 2)
        np.testing.assert_array_almost_equal(R @ [1.0, 0.0], [0.0, 1.0])

    def test_rigid_turn_preserves_velocity(self):
        chain = make_pair(tip=(1.0, 0.0))
        chain.previous[1] = (0.9, 0.0)
        advector = RotationAdvector(1.0, 0.0, 0.0, 1.0)

        dtheta = advector.advect(chain, chain.anchor.copy(), np.pi / 2, 1.0)

        assert dtheta == pytest.approx(np.pi / 2)
        np.testing.assert_array_almost_equal(chain.positions[1], [0.0, 1.0])
        # Radial velocity is carried around with the particle
        np.testing.assert_array_almost_equal(chain.velocity(1), [0.0, 0.1])
        np.testing.assert_array_equal(chain.positions[0], [0.0, 0.0])

    def test_distances_preserved(self):
        chain = ParticleChain(6, 2.0)
        chain.inverse_mass[0] = 0.0
        chain.initialize_at((3.0, -2.0), (0.6, 0.8))
        before = chain.distances_from_anchor()

        RotationAdvector(1.0, 0.0, 0.0, 1.0).advect(chain, chain.anchor.copy(), 2.0, 0.1)

        np.testing.assert_array_almost_equal(chain.distances_from_anchor(), before)

    def test_swirl_is_tangential(self):
        chain = make_pair(tip=(1.0, 0.0))
        advector = RotationAdvector(1.0, 0.5, 0.0, 10.0)

        advector.advect(chain, chain.anchor.copy(), 0.1, 1.0)

        r = chain.positions[1]
        expected = 0.1 * 0.5 * np.array([-r[1], r[0]])
        np.testing.assert_array_almost_equal(chain.velocity(1), expected)

    def test_swirl_clamped(self):
        chain = make_pair(tip=(100.0, 0.0))
        advector = RotationAdvector(1.0, 1.0, 0.0, 0.001)

        advector.advect(chain, chain.anchor.copy(), 0.5, 1.0)

        assert np.linalg.norm(chain.velocity(1)) <= 0.001 + 1e-9

    def test_falloff_spares_tip(self):
        chain = ParticleChain(3, 1.0)
        chain.inverse_mass[0] = 0.0
        chain.initialize_at((0.0, 0.0), (1.0, 0.0))

        RotationAdvector(1.0, 0.5, 1.0, 10.0).advect(chain, chain.anchor.copy(), 0.1, 1.0)

        assert np.linalg.norm(chain.velocity(1)) > 0.0
        np.testing.assert_array_almost_equal(chain.velocity(2), [0.0, 0.0])

    def test_zero_omega_is_noop(self):
        chain = make_pair(tip=(1.0, 0.0))
        before = chain.copy_positions()

        assert RotationAdvector(1.0, 0.5, 0.0, 1.0).advect(chain, chain.anchor.copy(), 0.0, 0.1) == 0.0
        np.testing.assert_array_equal(chain.positions, before)


class TestAngularRegulator:
    """Tests for tangential friction and speed clamp"""

    @pytest.fixture
    def regulator(self):
        return AngularRegulator(angular_friction=0.18, angular_speed_clamp_factor=1.2)

    def test_radial_velocity_passes(self, regulator):
        chain = make_pair(tip=(2.0, 0.0))
        chain.previous[1] = (1.5, 0.0)

        regulator.regulate(chain, chain.anchor.copy(), 0.0, 0.1)

        np.testing.assert_array_almost_equal(chain.velocity(1), [0.5, 0.0])

    def test_no_spin_kills_tangential(self, regulator):
        chain = make_pair(tip=(2.0, 0.0))
        chain.previous[1] = (2.0, -0.3)

        regulator.regulate(chain, chain.anchor.copy(), 0.0, 0.1)

        np.testing.assert_array_almost_equal(chain.velocity(1), [0.0, 0.0])

    def test_friction_below_clamp(self, regulator):
        chain = make_pair(tip=(2.0, 0.0))
        chain.previous[1] = (2.0, -0.3)

        # bound = 1.2 * 10 * 2 * 0.1 = 2.4 per substep
        regulator.regulate(chain, chain.anchor.copy(), 10.0, 0.1)

        np.testing.assert_array_almost_equal(chain.velocity(1), [0.0, 0.3 * 0.82])

    def test_clamp_above_bound(self, regulator):
        chain = make_pair(tip=(2.0, 0.0))
        chain.previous[1] = (2.0, -5.0)

        regulator.regulate(chain, chain.anchor.copy(), 10.0, 0.1)

        np.testing.assert_array_almost_equal(chain.velocity(1), [0.0, 2.4])

    def test_max_tangential_speed(self, regulator):
        assert regulator.max_tangential_speed(-3.0, 10.0) == pytest.approx(36.0)

    def test_on_axis_isotropic_damping(self, regulator):
        chain = make_pair(tip=(0.0, 0.0))
        chain.previous[1] = (-1.0, -1.0)

        regulator.regulate(chain, chain.anchor.copy(), 5.0, 0.1)

        np.testing.assert_array_almost_equal(chain.velocity(1), [0.82, 0.82])


class TestKinematicCoupling:
    """Tests for the anchor pin and reaction kick"""

    def test_pin_embeds_velocity(self):
        chain = ParticleChain(3, 1.0)
        KinematicCoupling.pin(chain, (2.0, 3.0), (60.0, 0.0), 1.0 / 60.0)

        np.testing.assert_array_almost_equal(chain.positions[0], [2.0, 3.0])
        np.testing.assert_array_almost_equal(chain.previous[0], [1.0, 3.0])

    def test_kick_scaled_by_dt(self):
        reaction = ReactionAccumulator()
        reaction.add(np.array([0.5, 0.0]))

        kick = reaction.pop_velocity_kick(0.1, 1.0, 100.0)

        np.testing.assert_array_almost_equal(kick, [5.0, 0.0])

    def test_kick_clamped_and_cleared(self):
        reaction = ReactionAccumulator()
        reaction.add(np.array([3.0, 4.0]))

        kick = reaction.pop_velocity_kick(0.1, 1.0, 2.0)

        assert np.linalg.norm(kick) == pytest.approx(2.0)
        np.testing.assert_array_almost_equal(kick / 2.0, [0.6, 0.8])
        assert reaction.magnitude == 0.0
        np.testing.assert_array_equal(reaction.pop_velocity_kick(0.1, 1.0, 2.0), [0.0, 0.0])

    def test_zero_dt_gives_no_kick(self):
        reaction = ReactionAccumulator()
        reaction.add(np.array([1.0, 1.0]))

        np.testing.assert_array_equal(reaction.pop_velocity_kick(0.0, 1.0, 50.0), [0.0, 0.0])
        assert reaction.magnitude == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
