"""
Test Suite: Tether Configuration
================================
Validation and construction of TetherConfig.

Tests:
- Defaults are valid and kinematic
- Nonsensical values are rejected eagerly
- Anchor coupling variant selection
- Mapping (YAML section) construction
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pbd_tether.physics import (
    TetherConfig,
    FixedAnchor,
    SpringAnchor
)


class TestDefaults:
    """Tests for the default configuration"""

    def test_defaults_are_valid(self):
        config = TetherConfig()

        assert config.particle_count == 60
        assert config.iterations == 8
        assert config.substeps == 2
        assert config.speeds_are_per_second is False

    def test_default_anchor_is_fixed(self):
        """anchor_mass 0 means a fully kinematic anchor"""
        mode = TetherConfig().anchor_mode

        assert isinstance(mode, FixedAnchor)
        assert mode.inverse_mass == 0.0

    def test_gravity_coerced_to_vector(self):
        config = TetherConfig(gravity=[0, -9.81])

        assert config.gravity.shape == (2,)
        assert config.gravity.dtype == np.float64
        np.testing.assert_array_almost_equal(config.gravity, [0.0, -9.81])

    def test_full_length(self):
        config = TetherConfig(particle_count=20, base_segment_length=2.0, max_scale=3.2)

        assert config.full_length == pytest.approx(19 * 2.0 * 3.2)


class TestValidation:
    """Invalid settings fail at construction time"""

    @pytest.mark.parametrize("overrides", [
        {'particle_count': 1},
        {'particle_count': 2.5},
        {'iterations': 0},
        {'substeps': 0},
        {'stretch_stiffness': 1.5},
        {'bend_stiffness': -0.1},
        {'drag': 1.0},
        {'angular_friction': 1.0},
        {'base_segment_length': 0.0},
        {'max_scale': -1.0},
        {'extend_speed': -0.1},
        {'kick_clamp': -1.0},
        {'epsilon_scale': 5.0, 'max_scale': 3.0},
        {'min_shoot_scale': 4.0, 'max_scale': 3.0},
        {'max_stick_frames': -1},
        {'gravity': [np.nan, 0.0]},
    ])
    def test_rejects_nonsense(self, overrides):
        with pytest.raises(ValueError):
            TetherConfig(**overrides)

    def test_error_names_field(self):
        with pytest.raises(ValueError, match="stretch_stiffness"):
            TetherConfig(stretch_stiffness=2.0)

    def test_spring_requires_mass(self):
        with pytest.raises(ValueError, match="anchor_mass"):
            TetherConfig(use_anchor_spring=True, anchor_mass=0.0)


class TestAnchorMode:
    """Tagged anchor coupling variant"""

    def test_spring_mode_selected(self):
        config = TetherConfig(
            use_anchor_spring=True,
            anchor_mass=8.0,
            anchor_spring_stiffness=2.0,
            anchor_spring_damping=0.5
        )
        mode = config.anchor_mode

        assert isinstance(mode, SpringAnchor)
        assert mode.stiffness == 2.0
        assert mode.damping == 0.5
        assert mode.inverse_mass == pytest.approx(1.0 / 8.0)

    def test_mass_without_spring_stays_fixed(self):
        """anchor_mass alone does not unpin the anchor"""
        mode = TetherConfig(anchor_mass=8.0).anchor_mode

        assert isinstance(mode, FixedAnchor)


class TestFromDict:
    """Construction from plain mappings"""

    def test_builds_from_mapping(self):
        config = TetherConfig.from_dict({
            'particle_count': 20,
            'base_segment_length': 1.5,
            'gravity': [0.0, -10.0],
        })

        assert config.particle_count == 20
        assert config.base_segment_length == 1.5
        np.testing.assert_array_almost_equal(config.gravity, [0.0, -10.0])

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="segment_len"):
            TetherConfig.from_dict({'segment_len': 2.0})

    def test_to_dict_is_plain(self):
        values = TetherConfig(gravity=(0.0, -1.0)).to_dict()

        assert values['gravity'] == [0.0, -1.0]
        assert TetherConfig.from_dict(values).gravity[1] == -1.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
