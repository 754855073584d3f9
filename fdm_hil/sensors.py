"""
Sensor Derivation from Vehicle State
======================================
Pure functions turning the 12-element state ``x`` and its derivative ``dx``
into MAVLink-ready sensor fields.  Nothing here keeps state; every function is
a deterministic mapping of its arguments.

Units follow the HIL message fields: lat/lon in degE7, altitude in mm,
speeds in cm/s, angles in cdeg, acceleration in m/s² (mG at the message
layer), pressure in Pa (hPa at the message layer).

Integer fields are truncated toward zero, like a C cast.  Non-finite inputs
are not intercepted: they surface as NaN in float fields, and integer fields,
which cannot hold NaN, carry a fixed sentinel (``INT_FIELD_NON_FINITE``, or
the field's own "unknown" value where the message defines one).
"""

import math

import numpy as np

from fdm_hil import config as cfg
from fdm_hil.state import (ATTITUDE, BODY_ACCELERATION, BODY_RATES,
                           EARTH_VELOCITY, POSITION, VELOCITY, YAW,
                           body_to_earth)


def _truncate(value: float, non_finite: int = cfg.INT_FIELD_NON_FINITE) -> int:
    """C cast toward zero; NaN and inf map to ``non_finite``."""
    if not math.isfinite(value):
        return non_finite
    return int(value)


def _round_half_away(value: float, non_finite: int = cfg.INT_FIELD_NON_FINITE) -> int:
    """std::round semantics (Python's round() is half-to-even)."""
    if not math.isfinite(value):
        return non_finite
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


# ──────────────────────────────────────────────────────────────────────
#  Attitude
# ──────────────────────────────────────────────────────────────────────
def euler_to_quaternion(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """
    Half-angle Z-Y-X conversion.  Returns [w, x, y, z] (MAVLink order).

    The result is not renormalised.
    """
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    return np.array([
        cr * cp * cy + sr * sp * sy,
        sr * cp * cy - cr * sp * sy,
        cr * sp * cy + sr * cp * sy,
        cr * cp * sy - sr * sp * cy,
    ])


def get_attitude(x: np.ndarray) -> np.ndarray:
    roll, pitch, yaw = x[ATTITUDE]
    return euler_to_quaternion(roll, pitch, yaw)


def get_rpy_speed(x: np.ndarray) -> np.ndarray:
    """Body angular rates p, q, r [rad/s] (gyro)."""
    return x[BODY_RATES].copy()


# ──────────────────────────────────────────────────────────────────────
#  Velocity / acceleration
# ──────────────────────────────────────────────────────────────────────
def get_ground_speed(dx: np.ndarray) -> list:
    """Earth-frame NED velocity [cm/s], int16 semantics."""
    return [_truncate(v * 100) for v in dx[EARTH_VELOCITY]]


def get_body_frame_acceleration(dx: np.ndarray) -> np.ndarray:
    """
    Body-frame acceleration [m/s²].

    A vertical component within ±ACCEL_Z_GROUND_EPS of zero is what the
    integrator reports while resting on the ground plane; it reads as -g.
    """
    acc = dx[BODY_ACCELERATION].copy()
    if -cfg.ACCEL_Z_GROUND_EPS < acc[2] < cfg.ACCEL_Z_GROUND_EPS:
        acc[2] = -cfg.G_FORCE
    return acc


def acceleration_to_mg(acc) -> list:
    """m/s² → milli-g, rounded."""
    return [_round_half_away(a / cfg.G_FORCE * 1000) for a in acc]


def get_body_frame_origin(x: np.ndarray) -> np.ndarray:
    """Body-frame origin in NED with respect to the earth frame [m]."""
    return x[POSITION].copy()


def get_earth_fixed_velocity(x: np.ndarray) -> list:
    """Body velocity rotated into NED [cm/s], int16 semantics."""
    v_earth = body_to_earth(x) @ x[VELOCITY]
    return [_truncate(v * 100) for v in v_earth]


def get_true_wind_speed(dx: np.ndarray, environment_wind) -> int:
    """
    Magnitude of the relative wind [cm/s]: minus (ground speed + wind).

    ``environment_wind`` is in m/s NED.
    """
    ground_speed = np.array(get_ground_speed(dx), dtype=np.float64)
    wind = np.asarray(environment_wind, dtype=np.float64) * 100
    cumulative_wind = (ground_speed + wind) * -1
    return _truncate(np.linalg.norm(cumulative_wind))


# ──────────────────────────────────────────────────────────────────────
#  Heading
# ──────────────────────────────────────────────────────────────────────
def get_course_over_ground(x: np.ndarray) -> int:
    """
    Course over ground [cdeg, 0..35999].

    Computed from the body-frame velocity components without rotating into
    the earth frame.
    """
    vx, vy = x[VELOCITY][0], x[VELOCITY][1]
    cdeg = math.degrees(math.atan2(vx, vy)) * 100
    if not math.isfinite(cdeg):
        return cfg.GPS_COG_UNKNOWN
    return int(cdeg) % 36000


def get_vehicle_yaw_wrt_earth_north(x: np.ndarray) -> int:
    """
    Yaw relative to true north [cdeg, 1..35999].

    HIL_GPS reads 0 as "yaw not available", so a north-facing vehicle is
    reported as 1 cdeg.  A non-finite yaw is sent as "not available".
    """
    cdeg = math.degrees(x[YAW]) * 100
    if not math.isfinite(cdeg):
        return cfg.GPS_YAW_UNKNOWN
    yaw = _round_half_away(cdeg) % 36000
    if yaw == 0:
        yaw = 1
    return yaw


# ──────────────────────────────────────────────────────────────────────
#  Position
# ──────────────────────────────────────────────────────────────────────
def get_geodetic(x: np.ndarray,
                 home_lat: float = cfg.GPS_HOME_LAT_DEG,
                 home_lon: float = cfg.GPS_HOME_LON_DEG,
                 home_alt: float = cfg.GPS_HOME_ALT_AMSL_M) -> tuple:
    """
    Flat-earth geodetic position, unquantised.

    Returns
    -------
    lat, lon : float   degrees
    alt      : float   metres above mean sea level
    """
    north_m, east_m, down_m = get_body_frame_origin(x)
    lat = home_lat + math.degrees(north_m / cfg.EARTH_RADIUS_M)
    lon = home_lon + math.degrees(
        east_m / (cfg.EARTH_RADIUS_M * math.cos(math.radians(home_lat)))
    )
    alt = home_alt - down_m   # up is positive alt
    return lat, lon, alt


def get_lat_lon_alt(x: np.ndarray,
                    home_lat: float = cfg.GPS_HOME_LAT_DEG,
                    home_lon: float = cfg.GPS_HOME_LON_DEG,
                    home_alt: float = cfg.GPS_HOME_ALT_AMSL_M) -> tuple:
    """
    ``get_geodetic`` in message units.

    Returns
    -------
    lat, lon : int   degE7
    alt      : int   mm above mean sea level
    """
    lat, lon, alt = get_geodetic(x, home_lat, home_lon, home_alt)
    return _truncate(lat * 1e7), _truncate(lon * 1e7), _truncate(alt * 1000)


# ──────────────────────────────────────────────────────────────────────
#  Atmosphere
# ──────────────────────────────────────────────────────────────────────
def alt_to_baro(alt: float) -> float:
    """
    Barometric pressure [Pa] at ``alt`` metres.

    Standard-atmosphere closed form to 11 km, exponential decay from there to
    20 km, 0 above.  A NaN altitude gives a NaN pressure.
    """
    if alt > cfg.BARO_CEILING_M:
        return 0.0
    if alt > cfg.BARO_TROPOPAUSE_M:
        f = cfg.BARO_TROPOPAUSE_M
        a = alt_to_baro(f)
        c = cfg.BARO_T0_K + f * cfg.BARO_LAPSE_K_M
        return a * math.exp((-cfg.BARO_G * cfg.BARO_MOLAR_MASS * (alt - f)) / (cfg.BARO_R * c))
    exponent = (cfg.BARO_G * cfg.BARO_MOLAR_MASS) / (cfg.BARO_R * cfg.BARO_LAPSE_K_M)
    return cfg.BARO_P0_PA * math.pow(
        cfg.BARO_T0_K / (cfg.BARO_T0_K + cfg.BARO_LAPSE_K_M * alt), exponent
    )


def isa_temperature(alt: float) -> float:
    """Standard-atmosphere temperature [degC], isothermal above 11 km."""
    alt = min(alt, cfg.BARO_TROPOPAUSE_M)
    return cfg.SEA_LEVEL_TEMP_C + cfg.BARO_LAPSE_K_M * alt


# ──────────────────────────────────────────────────────────────────────
#  GPS quality
# ──────────────────────────────────────────────────────────────────────
def gps_dilution(sim_time_us: int) -> tuple:
    """(eph, epv) [cm]: exponential settle from the initial to the minimum value."""
    decay = math.exp(-(sim_time_us / 1e6) / cfg.GPS_DOP_TIME_CONSTANT_S)
    eph = cfg.GPS_EPH_MIN + (cfg.GPS_EPH_INITIAL - cfg.GPS_EPH_MIN) * decay
    epv = cfg.GPS_EPV_MIN + (cfg.GPS_EPV_INITIAL - cfg.GPS_EPV_MIN) * decay
    return _round_half_away(eph), _round_half_away(epv)
