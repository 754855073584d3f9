import json
import re
from pathlib import Path

import numpy as np
import pytest

from fdm_hil import config as cfg
from fdm_hil.config import DroneConfig

ROOT = Path(__file__).resolve().parents[1]
VEHICLES = ROOT / "vehicles"


class TestDroneConfig:

    def test_defaults(self):
        conf = DroneConfig()
        assert conf.weight_n == pytest.approx(conf.mass_kg * cfg.G_FORCE)
        assert conf.inertia_matrix.shape == (3, 3)
        assert conf.motor_positions.shape == (4, 3)

    def test_motor_positions_on_arm_circle(self):
        conf = DroneConfig(arm_length_m=0.4)
        radii = np.linalg.norm(conf.motor_positions, axis=1)
        np.testing.assert_allclose(radii, conf.arm_length_m)

    def test_bad_inertia_rejected(self):
        with pytest.raises(ValueError):
            DroneConfig(inertia=[[1.0, 0.0], [0.0, 1.0]])

    def test_bad_wind_rejected(self):
        with pytest.raises(ValueError):
            DroneConfig(environment_wind=[1.0, 2.0])

    def test_shipped_vehicle_loads(self):
        conf = DroneConfig.from_file(VEHICLES / "standard_vtol.json")
        assert conf.mass_kg == 2.0
        assert conf.ground_height_m == 0.0

    def test_from_file_overrides(self, tmp_path):
        path = tmp_path / "heavy.json"
        path.write_text(json.dumps({"mass_kg": 5.0, "environment_wind": [1.0, 0.0, 0.0]}))
        conf = DroneConfig.from_file(path)
        assert conf.mass_kg == 5.0
        assert conf.environment_wind == [1.0, 0.0, 0.0]
        assert conf.wing_area_m2 == DroneConfig().wing_area_m2

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "typo.json"
        path.write_text(json.dumps({"mas_kg": 5.0}))
        with pytest.raises(ValueError, match="mas_kg"):
            DroneConfig.from_file(path)

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError):
            DroneConfig.from_file(path)


def test_channel_map_disjoint():
    channels = cfg.VTOL_CHANNELS + cfg.AERO_CHANNELS + cfg.THRUST_CHANNELS
    assert len(set(channels)) == len(channels)
    assert max(channels) < 16


def test_frame_transform_self_inverse():
    np.testing.assert_array_equal(cfg.NED_TO_MJ @ cfg.MJ_TO_NED, np.eye(3))


def test_pyproject_readme_is_not_design_notes():
    pyproject = (ROOT / "pyproject.toml").read_text()
    readme = re.search(r'^readme\s*=\s*"([^"]+)"', pyproject, re.MULTILINE)
    if readme is not None:
        assert readme.group(1) != "DESIGN.md"
        assert (ROOT / readme.group(1)).is_file()
