"""
HIL Telemetry Messages
=======================
Builds the outbound MAVLink messages (HIL_STATE_QUATERNION, HIL_SENSOR,
HIL_GPS, SYSTEM_TIME, COMMAND_ACK) from whatever implements ``SensorProvider``.

Message contract  (simulator → autopilot)
------------------------------------------
  HIL_SENSOR            (msg 107) — accel m/s², gyro rad/s, mag gauss (body),
                                    abs pressure hPa, pressure alt m, temp degC
  HIL_GPS               (msg 113) — lat/lon degE7, alt mm, eph/epv cm,
                                    vel/vn/ve/vd cm/s, cog cdeg, yaw cdeg
  HIL_STATE_QUATERNION  (msg 115) — quaternion, rates, lat/lon/alt,
                                    NED speed cm/s, airspeeds cm/s, accel mG
  SYSTEM_TIME           (msg   2) — unix time us (wall), boot time ms (sim)
  COMMAND_ACK           (msg  77) — command id, result, target sys/comp
"""

import abc
import time

import numpy as np
from pymavlink.dialects.v20 import common as mavlink2

from fdm_hil import config as cfg
from fdm_hil import sensors
from fdm_hil.magnetic import MagneticFieldModel
from fdm_hil.state import body_to_earth


class SensorProvider(abc.ABC):
    """What the encoder needs from the vehicle; the orchestrator implements it."""

    @abc.abstractmethod
    def get_sim_time(self) -> int:
        """Simulated time [us]."""

    @abc.abstractmethod
    def get_environment_wind(self) -> np.ndarray:
        """Environment wind [m/s NED]."""

    @abc.abstractmethod
    def get_temperature_reading(self) -> float:
        """Air temperature [degC]."""

    @abc.abstractmethod
    def get_vector_state(self) -> np.ndarray:
        """The 12-element state (see ``fdm_hil.state``)."""

    @abc.abstractmethod
    def get_vector_dx_state(self) -> np.ndarray:
        """The 12-element state derivative."""


class StateEncoder:
    """Turns the provider's current state into MAVLink message objects."""

    def __init__(self, provider: SensorProvider, mav: mavlink2.MAVLink,
                 magnetic_field: MagneticFieldModel | None = None):
        self.provider = provider
        self.mav = mav
        self.magnetic_field = magnetic_field or MagneticFieldModel()

    # ──────────────────────────────────────────────────────────────────────
    #  HIL_STATE_QUATERNION
    # ──────────────────────────────────────────────────────────────────────
    def hil_state_quaternion_msg(self):
        x = self.provider.get_vector_state()
        dx = self.provider.get_vector_dx_state()

        attitude = sensors.get_attitude(x)
        rpy_speed = sensors.get_rpy_speed(x)
        lat, lon, alt = sensors.get_lat_lon_alt(x)
        ground_speed = sensors.get_ground_speed(dx)
        acceleration = sensors.acceleration_to_mg(sensors.get_body_frame_acceleration(dx))
        true_wind_speed = sensors.get_true_wind_speed(dx, self.provider.get_environment_wind())

        return self.mav.hil_state_quaternion_encode(
            self.provider.get_sim_time(),
            [float(q) for q in attitude],
            float(rpy_speed[0]),
            float(rpy_speed[1]),
            float(rpy_speed[2]),
            lat,
            lon,
            alt,
            ground_speed[0],
            ground_speed[1],
            ground_speed[2],
            true_wind_speed,          # ind_airspeed  (wind estimate reused)
            true_wind_speed,          # true_airspeed
            acceleration[0],
            acceleration[1],
            acceleration[2],
        )

    # ──────────────────────────────────────────────────────────────────────
    #  HIL_SENSOR
    # ──────────────────────────────────────────────────────────────────────
    def hil_sensor_msg(self):
        x = self.provider.get_vector_state()
        dx = self.provider.get_vector_dx_state()

        body_frame_acc = sensors.get_body_frame_acceleration(dx)   # m/s²
        gyro_xyz = sensors.get_rpy_speed(x)                       # rad/s
        lat, lon, alt_m = sensors.get_geodetic(x)
        abs_pressure = sensors.alt_to_baro(alt_m) / 100           # Pa → hPa
        diff_pressure = 0.0
        magfield_ned = self.magnetic_field.field_for_lat_lon_alt(lat, lon, alt_m)
        magfield = body_to_earth(x).T @ magfield_ned              # NED → body FRD

        return self.mav.hil_sensor_encode(
            self.provider.get_sim_time(),
            float(body_frame_acc[0]),
            float(body_frame_acc[1]),
            float(body_frame_acc[2]),
            float(gyro_xyz[0]),
            float(gyro_xyz[1]),
            float(gyro_xyz[2]),
            float(magfield[0]),
            float(magfield[1]),
            float(magfield[2]),
            abs_pressure,
            diff_pressure,
            float(alt_m),             # pressure altitude, exact (no noise)
            float(self.provider.get_temperature_reading()),
            cfg.HIL_SENSOR_FIELDS_ALL,
            id=0,
        )

    # ──────────────────────────────────────────────────────────────────────
    #  HIL_GPS
    # ──────────────────────────────────────────────────────────────────────
    def hil_gps_msg(self):
        x = self.provider.get_vector_state()
        dx = self.provider.get_vector_dx_state()
        sim_time = self.provider.get_sim_time()

        lat, lon, alt = sensors.get_lat_lon_alt(x)
        eph, epv = sensors.gps_dilution(sim_time)
        ground_speed = sensors.get_ground_speed(dx)
        # Scalar horizontal speed
        gps_ground_speed = int(np.hypot(ground_speed[0], ground_speed[1]))
        vn, ve, vd = sensors.get_earth_fixed_velocity(x)
        course_over_ground = sensors.get_course_over_ground(x)
        vehicle_yaw = sensors.get_vehicle_yaw_wrt_earth_north(x)

        return self.mav.hil_gps_encode(
            sim_time,
            cfg.GPS_FIX_TYPE_3D,
            lat,
            lon,
            alt,
            eph,
            epv,
            gps_ground_speed,
            vn,
            ve,
            vd,
            course_over_ground,
            cfg.GPS_SATELLITES_VISIBLE,
            id=0,
            yaw=vehicle_yaw,
        )

    # ──────────────────────────────────────────────────────────────────────
    #  SYSTEM_TIME / COMMAND_ACK
    # ──────────────────────────────────────────────────────────────────────
    def system_time_msg(self):
        time_unix_usec = int(time.time() * 1e6)
        time_boot_ms = self.provider.get_sim_time() // 1000   # us → ms
        return self.mav.system_time_encode(time_unix_usec, time_boot_ms)

    def command_ack_msg(self, command_id: int, result: int,
                        target_system: int, target_component: int):
        return self.mav.command_ack_encode(
            command_id,
            result,
            0,                        # progress
            0,                        # result_param2
            target_system,
            target_component,
        )
