import numpy as np
import pytest

from fdm_hil import config as cfg
from fdm_hil.ground import GroundContactModel
from fdm_hil.state import zero_state

DT = cfg.PHYSICS_DT_US / 1e6


@pytest.fixture
def ground():
    return GroundContactModel()


class TestGroundContact:

    def test_resting_vehicle_reads_gravity(self, ground):
        x, dx = zero_state(), zero_state()
        assert ground.apply(x, dx, DT)
        assert x[2] == 0.0
        np.testing.assert_array_equal(dx[3:6], [0.0, 0.0, -cfg.G_FORCE])

    def test_penetration_clamped(self, ground):
        x, dx = zero_state(), zero_state()
        x[2] = 0.3
        x[3:6] = [1.0, 2.0, 3.0]
        x[9:12] = [0.1, 0.2, 0.3]
        dx[0:3] = [1.0, 2.0, 3.0]
        dx[3:6] = [0.0, 0.0, 5.0]
        dx[6:9] = [0.4, 0.5, 0.6]

        assert ground.apply(x, dx, DT)
        assert x[2] == 0.0
        np.testing.assert_array_equal(x[3:6], 0.0)
        np.testing.assert_array_equal(x[9:12], 0.0)
        np.testing.assert_array_equal(dx[0:3], 0.0)
        np.testing.assert_array_equal(dx[3:6], [0.0, 0.0, -cfg.G_FORCE])
        np.testing.assert_array_equal(dx[6:9], 0.0)

    def test_attitude_left_alone(self, ground):
        x, dx = zero_state(), zero_state()
        x[6:9] = [0.01, -0.02, 1.5]
        ground.apply(x, dx, DT)
        np.testing.assert_array_equal(x[6:9], [0.01, -0.02, 1.5])

    def test_climbing_vehicle_not_clamped(self, ground):
        x, dx = zero_state(), zero_state()
        x[5] = -2.0          # moving up (NED)
        before_x, before_dx = x.copy(), dx.copy()
        assert not ground.apply(x, dx, DT)
        np.testing.assert_array_equal(x, before_x)
        np.testing.assert_array_equal(dx, before_dx)

    def test_upward_acceleration_releases(self, ground):
        x, dx = zero_state(), zero_state()
        dx[5] = -5.0
        assert not ground.in_contact(x, dx, DT)

    def test_projected_velocity_still_sinking(self, ground):
        x, dx = zero_state(), zero_state()
        x[5] = -0.1
        dx[5] = 50.0        # -0.1 + 50 * 0.004 = +0.1
        assert ground.in_contact(x, dx, DT)

    def test_airborne_untouched(self, ground):
        x, dx = zero_state(), zero_state()
        x[2] = -5.0
        x[5] = 1.0
        assert not ground.apply(x, dx, DT)
        assert x[2] == -5.0

    @pytest.mark.parametrize("z, expected", [
        (-0.0005, True),
        (-0.002, False),
    ])
    def test_contact_epsilon(self, ground, z, expected):
        x, dx = zero_state(), zero_state()
        x[2] = z
        assert ground.in_contact(x, dx, DT) is expected

    def test_raised_ground_plane(self):
        ground = GroundContactModel(ground_height=-2.0)
        x, dx = zero_state(), zero_state()
        x[2] = -1.5
        assert ground.apply(x, dx, DT)
        assert x[2] == -2.0

    def test_tilted_body_velocity_projected(self, ground):
        # Pitched 90 deg nose-up: body +x points up
        x, dx = zero_state(), zero_state()
        x[7] = np.pi / 2
        x[3] = 1.0
        assert not ground.in_contact(x, dx, DT)
