"""Shared fixtures: a recording transport, a scripted integrator, and an autopilot-side encoder."""

import numpy as np
import pytest
from pymavlink.dialects.v20 import common as mavlink2

from fdm_hil.clock import SimClock
from fdm_hil.config import DroneConfig
from fdm_hil.drone import Drone
from fdm_hil.dynamics import DynamicsIntegrator, IntegrationResult

AUTOPILOT_SYSID = 1
AUTOPILOT_COMPID = 1


class FakeTransport:
    """Stands in for MAVLinkTransport: records outbound, lets tests inject inbound."""

    def __init__(self, is_open: bool = True):
        self.is_open = is_open
        self.sent = []
        self.handlers = []

    def add_message_handler(self, handler):
        self.handlers.append(handler)

    def connection_open(self) -> bool:
        return self.is_open

    def enqueue_message(self, msg):
        self.sent.append(msg)

    def deliver(self, msg):
        for handler in self.handlers:
            handler(msg)

    def sent_types(self) -> list:
        return [m.get_type() for m in self.sent]

    def sent_of_type(self, mtype: str) -> list:
        return [m for m in self.sent if m.get_type() == mtype]


class ScriptedIntegrator(DynamicsIntegrator):
    """Holds the state still unless a result is scripted; records every call."""

    def __init__(self):
        self.calls = []
        self.next_result = None

    def step(self, x, t, dt, controls, airborne):
        self.calls.append({
            "t": t,
            "dt": dt,
            "thrust": controls.thrust(dt),
            "aero": controls.aero(dt),
            "vtol": controls.vtol(dt),
            "airborne": airborne,
        })
        if self.next_result is not None:
            return self.next_result
        return IntegrationResult(x.copy(), np.zeros(12), airborne)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return SimClock()


@pytest.fixture
def integrator():
    return ScriptedIntegrator()


@pytest.fixture
def drone(transport, clock, integrator):
    return Drone(DroneConfig(), transport, clock, integrator=integrator)


@pytest.fixture
def autopilot():
    """Encoder for messages as the autopilot would send them."""
    return mavlink2.MAVLink(None, srcSystem=AUTOPILOT_SYSID, srcComponent=AUTOPILOT_COMPID)


def actuator_msg(mav, controls=None, armed=False):
    controls = list(controls) if controls is not None else [0.0] * 16
    controls += [0.0] * (16 - len(controls))
    mode = mavlink2.MAV_MODE_FLAG_SAFETY_ARMED if armed else 0
    return mav.hil_actuator_controls_encode(0, controls, mode, 0)


def set_interval_msg(mav, interval_us, target_system=1, target_component=1):
    return mav.command_long_encode(
        target_system, target_component,
        mavlink2.MAV_CMD_SET_MESSAGE_INTERVAL,
        0,
        mavlink2.MAVLINK_MSG_ID_HIL_STATE_QUATERNION,
        interval_us,
        0, 0, 0, 0, 0,
    )
