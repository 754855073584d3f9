import numpy as np
import pytest

from fdm_hil import config as cfg
from fdm_hil.actuators import ActuatorRouter
from fdm_hil.config import DroneConfig
from fdm_hil.dynamics import MixedEOM
from fdm_hil.state import zero_state

DT = cfg.PHYSICS_DT_US / 1e6


@pytest.fixture
def conf():
    return DroneConfig()


@pytest.fixture
def eom(conf):
    return MixedEOM(conf)


def controls(vtol=(0.0, 0.0, 0.0, 0.0), aero=(0.0, 0.0), thrust=(0.0,)):
    router = ActuatorRouter()
    router.set_vtol(vtol)
    router.set_aero(aero)
    router.set_thrust(thrust)
    return router.controls()


class TestMixedEOM:

    def test_resting_on_ground_stays_put(self, eom):
        result = eom.step(zero_state(), 0.0, DT, controls(), airborne=False)
        assert result.state[2] == pytest.approx(0.0, abs=1e-9)
        assert not result.airborne
        assert result.dx_state.shape == (12,)

    def test_inputs_not_mutated(self, eom):
        x = zero_state()
        x[2] = -10.0
        x[3] = 5.0
        before = x.copy()
        eom.step(x, 0.0, DT, controls(vtol=(0.5,) * 4), airborne=True)
        np.testing.assert_array_equal(x, before)

    def test_full_lift_takes_off(self, eom, conf):
        full = controls(vtol=(1.0,) * 4)
        result = eom.step(zero_state(), 0.0, DT, full, airborne=False)
        assert result.airborne

        result = eom.step(zero_state(), 0.0, DT, full, airborne=True)
        expected_az = (-4 * conf.vtol_max_thrust_n + conf.weight_n) / conf.mass_kg
        assert result.dx_state[5] == pytest.approx(expected_az)
        assert result.state[2] < 0.0

    def test_free_fall(self, eom):
        x = zero_state()
        x[2] = -10.0
        result = eom.step(x, 0.0, DT, controls(), airborne=True)
        assert result.airborne
        assert result.state[2] > -10.0
        assert result.dx_state[5] == pytest.approx(cfg.G_FORCE)
        assert result.dx_state[2] == pytest.approx(cfg.G_FORCE * DT, rel=1e-3)

    def test_differential_spin_yaws(self, eom):
        ccw_only = controls(vtol=(1.0, 1.0, 0.0, 0.0))
        result = eom.step(zero_state(), 0.0, DT, ccw_only, airborne=False)
        assert result.dx_state[11] > 0.0
        assert result.dx_state[9] == pytest.approx(0.0, abs=0.1 * result.dx_state[11])

    def test_pusher_accelerates_forward(self, eom):
        x = zero_state()
        x[2] = -50.0
        result = eom.step(x, 0.0, DT, controls(thrust=(1.0,)), airborne=True)
        assert result.dx_state[3] > 0.0
        assert result.state[3] > 0.0

    def test_frame_round_trip(self, eom):
        x = zero_state()
        x[0:3] = [12.0, -4.0, -30.0]
        x[3:6] = [5.0, 0.5, -0.2]
        x[6:9] = [0.1, 0.2, 0.3]
        tiny = 1e-6
        result = eom.step(x, 0.0, tiny, controls(), airborne=True)
        np.testing.assert_allclose(result.state[0:3], x[0:3], atol=1e-4)
        np.testing.assert_allclose(result.state[3:6], x[3:6], atol=1e-3)
        np.testing.assert_allclose(result.state[6:9], x[6:9], atol=1e-9)
        np.testing.assert_allclose(result.state[9:12], 0.0, atol=1e-9)

    def test_body_rates_preserved_without_moment(self, eom):
        x = zero_state()
        x[2] = -30.0
        x[11] = 0.5
        result = eom.step(x, 0.0, 1e-6, controls(), airborne=True)
        assert result.state[11] == pytest.approx(0.5, rel=1e-3)
        assert result.state[8] == pytest.approx(0.5e-6, rel=1e-2)
