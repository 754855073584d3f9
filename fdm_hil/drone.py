"""
Simulated Drone
================
Single owner of the vehicle state and of the lockstep publish/consume cadence.

Per tick
--------
  1. Drain inbound MAVLink (arrival order, each message once)
       HEARTBEAT              — logged
       HIL_ACTUATOR_CONTROLS  — controls routed, armed flag, lockstep reply due
       COMMAND_LONG           — SET_MESSAGE_INTERVAL applied, always ACK'ed
  2. Advance dynamics by dt
  3. Ground-contact clamp
  4. Publish, if the link is open and either a lockstep reply is due or the
     autopilot is still in warm-up:
       SYSTEM_TIME (throttled), HIL_GPS, HIL_SENSOR, then HIL_STATE_QUATERNION
       when its interval has elapsed
"""

import logging

import numpy as np
from pymavlink.dialects.v20 import common as mavlink2

from fdm_hil import config as cfg
from fdm_hil import sensors
from fdm_hil.actuators import ActuatorRouter, split_controls
from fdm_hil.clock import SimClock
from fdm_hil.config import DroneConfig
from fdm_hil.dynamics import DynamicsIntegrator, MixedEOM
from fdm_hil.ground import GroundContactModel
from fdm_hil.magnetic import MagneticFieldModel
from fdm_hil.state import initial_state, zero_state
from fdm_hil.telemetry import SensorProvider, StateEncoder
from fdm_hil.transport import MessageQueue

# Encoders map non-finite values to field sentinels; this catches the rest
_ENCODE_ERRORS = (ValueError, OverflowError)


class Drone(SensorProvider):

    def __init__(self, config: DroneConfig, connection, clock: SimClock,
                 integrator: DynamicsIntegrator | None = None,
                 magnetic_field: MagneticFieldModel | None = None,
                 system_id: int = cfg.SIM_SYSID,
                 component_id: int = cfg.SIM_COMPID,
                 logger: logging.Logger | None = None):
        self.config = config
        self.connection = connection
        self.clock = clock
        self.system_id = system_id
        self.component_id = component_id
        self.log = logger or logging.getLogger(__name__)

        self.integrator = integrator or MixedEOM(config)
        self.ground = GroundContactModel(config.ground_height_m, cfg.G_FORCE)
        self.actuators = ActuatorRouter()

        self.state = initial_state()
        self.dx_state = zero_state()
        self.airborne = False
        self.armed = False

        # Lockstep bookkeeping
        self.should_reply_lockstep = False
        self.hil_actuator_controls_msg_n = 0
        self.sys_time_throttle_counter = 0
        self.hil_state_quaternion_interval_us = cfg.DEFAULT_HIL_STATE_QUATERNION_INTERVAL_US
        self.last_autopilot_telemetry = 0

        self.message_queue = MessageQueue()
        self.mav = mavlink2.MAVLink(None, srcSystem=system_id, srcComponent=component_id)
        self.encoder = StateEncoder(self, self.mav, magnetic_field)

        self.connection.add_message_handler(self.handle_inbound)

    # ══════════════════════════════════════════════════════════════════════
    #  Tick
    # ══════════════════════════════════════════════════════════════════════
    def tick(self, dt_us: int):
        """One simulation step of ``dt_us`` microseconds (0 = drain and publish only)."""
        self._process_mavlink_messages()
        if dt_us > 0:
            dt = dt_us / 1e6
            self._advance(dt)
            self.ground.apply(self.state, self.dx_state, dt)
        self._publish_state()

    def _advance(self, dt: float):
        t = self.clock.get_current_time_us() / 1e6
        result = self.integrator.step(
            self.state.copy(), t, dt, self.actuators.controls(), self.airborne
        )
        self.state = np.asarray(result.state, dtype=np.float64)
        self.dx_state = np.asarray(result.dx_state, dtype=np.float64)
        self.airborne = bool(result.airborne)

    # ══════════════════════════════════════════════════════════════════════
    #  Inbound
    # ══════════════════════════════════════════════════════════════════════
    def handle_inbound(self, msg):
        """Transport callback.  Never blocks; processing happens in ``tick``."""
        self.message_queue.push(msg)

    def _process_mavlink_messages(self):
        self.message_queue.consume_all(self._process_mavlink_message)

    def _process_mavlink_message(self, msg):
        mtype = msg.get_type()
        if mtype == "HEARTBEAT":
            self.log.debug("MSG: HEARTBEAT")
        elif mtype == "HIL_ACTUATOR_CONTROLS":
            self.log.debug("MSG: HIL_ACTUATOR_CONTROLS")
            self._process_hil_actuator_controls(msg)
        elif mtype == "COMMAND_LONG":
            self.log.debug("MSG: COMMAND_LONG")
            self._process_command_long_message(msg)
        else:
            self.log.debug("Unknown message %s, discarded", mtype)

    def _process_hil_actuator_controls(self, msg):
        try:
            vtol, aero, thrust = split_controls(msg.controls)
        except ValueError as exc:
            self.log.warning("Malformed HIL_ACTUATOR_CONTROLS discarded: %s", exc)
            return

        self.should_reply_lockstep = True
        self.hil_actuator_controls_msg_n += 1
        self.armed = (msg.mode & mavlink2.MAV_MODE_FLAG_SAFETY_ARMED) > 0

        self.actuators.set_thrust(thrust)
        self.actuators.set_aero(aero)
        self.actuators.set_vtol(vtol)

    def _process_command_long_message(self, msg):
        """Apply a COMMAND_LONG.  Every command is ACK'ed, known or not."""
        command_id = msg.command
        if command_id == mavlink2.MAV_CMD_SET_MESSAGE_INTERVAL:
            self._set_message_interval(msg.param2)
        else:
            self.log.info("Unknown command id from command long (%d)", command_id)

        self._send(self.encoder.command_ack_msg(
            command_id,
            mavlink2.MAV_RESULT_ACCEPTED,
            msg.target_system,
            msg.target_component,
        ))

    def _set_message_interval(self, interval_us: float):
        # 0 = back to default, negative = stop sending
        if interval_us == 0:
            interval = cfg.DEFAULT_HIL_STATE_QUATERNION_INTERVAL_US
        elif interval_us < 0:
            interval = None
        else:
            interval = interval_us
        self.hil_state_quaternion_interval_us = interval
        self.log.info("Simulator -> autopilot message interval now set to %s (us)", interval)

    # ══════════════════════════════════════════════════════════════════════
    #  Outbound
    # ══════════════════════════════════════════════════════════════════════
    def _send(self, msg):
        # Nothing is queued while the link is down, ACKs included
        if msg is None or not self.connection.connection_open():
            return
        self.connection.enqueue_message(msg)

    def _build(self, builder):
        try:
            return builder()
        except _ENCODE_ERRORS as exc:
            self.log.warning("Could not encode %s: %s", builder.__name__, exc)
            return None

    def _publish_system_time(self):
        self._send(self._build(self.encoder.system_time_msg))

    def _publish_hil_gps(self):
        self._send(self._build(self.encoder.hil_gps_msg))

    def _publish_hil_sensor(self):
        self._send(self._build(self.encoder.hil_sensor_msg))

    def _publish_hil_state_quaternion(self):
        self._send(self._build(self.encoder.hil_state_quaternion_msg))

    def _publish_state(self):
        if not self.connection.connection_open():
            return
        if not (self.should_reply_lockstep
                or self.hil_actuator_controls_msg_n < cfg.LOCKSTEP_WARMUP_MSGS):
            return

        self.clock.unlock_time()

        if self.sys_time_throttle_counter % cfg.SYSTEM_TIME_EVERY_N_PUBLISHES == 0:
            self._publish_system_time()
        self.sys_time_throttle_counter += 1

        self._publish_hil_gps()
        self._publish_hil_sensor()
        self.should_reply_lockstep = False

        if self.hil_state_quaternion_interval_us is None:
            return
        now = self.clock.get_current_time_us()
        if now - self.last_autopilot_telemetry <= self.hil_state_quaternion_interval_us:
            return

        self.last_autopilot_telemetry = now
        self._publish_hil_state_quaternion()

    # ══════════════════════════════════════════════════════════════════════
    #  SensorProvider
    # ══════════════════════════════════════════════════════════════════════
    def get_sim_time(self) -> int:
        return self.clock.get_current_time_us()

    def get_environment_wind(self) -> np.ndarray:
        return np.asarray(self.config.environment_wind, dtype=np.float64)

    def get_temperature_reading(self) -> float:
        return sensors.isa_temperature(cfg.GPS_HOME_ALT_AMSL_M - self.state[2])

    def get_vector_state(self) -> np.ndarray:
        return self.state

    def get_vector_dx_state(self) -> np.ndarray:
        return self.dx_state
