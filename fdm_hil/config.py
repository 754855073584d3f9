"""
FDM HIL Bridge — Shared Configuration
=======================================
All constants shared between the orchestrator, the sensor encoders and the
run loop.  The autopilot side must agree on the MAVLink IDs, the actuator
channel map and the lockstep constants defined below.

Vehicle parameters (mass, inertia, rotor and wing geometry) live in
``DroneConfig`` and are read once at construction time.
"""

import json
import math
from dataclasses import dataclass, field, fields

import numpy as np

# ═══════════════════════════════════════════════════════════════════════════════
#  MAVLink System / Component IDs
# ═══════════════════════════════════════════════════════════════════════════════
SIM_SYSID        = 1   # Simulator (this bridge)
SIM_COMPID       = 1

# ═══════════════════════════════════════════════════════════════════════════════
#  Network Endpoint
# ═══════════════════════════════════════════════════════════════════════════════
# PX4 connects to the simulator on TCP 4560 and drives lockstep from there.
PX4_SIM_URI             = "tcpin:0.0.0.0:4560"

# Autopilot counts as connected while messages keep arriving within this window
LINK_TIMEOUT_S          = 5.0

# ═══════════════════════════════════════════════════════════════════════════════
#  Timing
# ═══════════════════════════════════════════════════════════════════════════════
PHYSICS_DT_US           = 4000      # 250 Hz physics step
PERF_LOG_INTERVAL_S     = 5.0       # Status line period (wall clock)

# ═══════════════════════════════════════════════════════════════════════════════
#  Lockstep / Publication
# ═══════════════════════════════════════════════════════════════════════════════
# Sensor messages are published unconditionally until this many
# HIL_ACTUATOR_CONTROLS have arrived; afterwards only in reply to one.
LOCKSTEP_WARMUP_MSGS    = 300

# SYSTEM_TIME goes out on one publish cycle out of this many
SYSTEM_TIME_EVERY_N_PUBLISHES = 1000

# HIL_STATE_QUATERNION period until the autopilot asks for another one
DEFAULT_HIL_STATE_QUATERNION_INTERVAL_US = 20000   # 50 Hz

# ═══════════════════════════════════════════════════════════════════════════════
#  Actuator Channel Map  (HIL_ACTUATOR_CONTROLS.controls, 16 channels)
#
#  Channel  Use
#  ───────────────────────────────
#   0..3    VTOL rotors 1..4
#   4..5    Aero surfaces (roll, pitch)
#   6..7    unused
#   8       Pusher / thrust propeller
# ═══════════════════════════════════════════════════════════════════════════════
VTOL_CHANNELS           = (0, 1, 2, 3)
AERO_CHANNELS           = (4, 5)
THRUST_CHANNELS         = (8,)

# ═══════════════════════════════════════════════════════════════════════════════
#  GPS Home / Reference Point  (UK grid origin)
# ═══════════════════════════════════════════════════════════════════════════════
GPS_HOME_LAT_DEG        = 49.766809
GPS_HOME_LON_DEG        = -7.5571598
GPS_HOME_ALT_AMSL_M     = 0.0

GPS_FIX_TYPE_3D         = 3
GPS_SATELLITES_VISIBLE  = 255       # UINT8_MAX

# Integer fields cannot carry NaN; non-finite inputs map to these instead
INT_FIELD_NON_FINITE    = 0
GPS_COG_UNKNOWN         = 65535     # UINT16_MAX = "unknown" in HIL_GPS
GPS_YAW_UNKNOWN         = 0         # 0 = "yaw not available" in HIL_GPS

# Dilution of precision [cm]: starts coarse, settles on the minimum
GPS_EPH_MIN             = 30
GPS_EPV_MIN             = 40
GPS_EPH_INITIAL         = 250
GPS_EPV_INITIAL         = 400
GPS_DOP_TIME_CONSTANT_S = 10.0

# Earth radius for flat-earth lat/lon conversion (metres)
EARTH_RADIUS_M          = 6378137.0

# ═══════════════════════════════════════════════════════════════════════════════
#  Sensor Constants
# ═══════════════════════════════════════════════════════════════════════════════
G_FORCE                 = 9.81
ACCEL_Z_GROUND_EPS      = 1e-4      # |z-accel| below this reads as resting
GROUND_CONTACT_EPS_M    = 0.001

# Standard atmosphere (barometer + temperature)
BARO_P0_PA              = 101325.0  # static pressure at sea level [Pa]
BARO_T0_K               = 288.15    # standard temperature at sea level [K]
BARO_LAPSE_K_M          = -0.0065   # temperature lapse rate [K/m]
BARO_MOLAR_MASS         = 0.0289644 # molar mass of Earth's air [kg/mol]
BARO_G                  = 9.80665   # gravity used by the standard atmosphere
BARO_R                  = 8.31432   # universal gas constant [J/(mol K)]
BARO_TROPOPAUSE_M       = 11000.0
BARO_CEILING_M          = 20000.0

SEA_LEVEL_TEMP_C        = 15.0

# HIL_SENSOR.fields_updated: accel | gyro | mag | baro+diff+alt+temp
HIL_SENSOR_FIELDS_ALL   = 0b111 | 0b111000 | 0b111000000 | 0b1111000000000

# ═══════════════════════════════════════════════════════════════════════════════
#  Magnetic Field at the Reference Point
# ═══════════════════════════════════════════════════════════════════════════════
MAG_DECLINATION_DEG     = -1.7
MAG_INCLINATION_DEG     = 66.0
MAG_STRENGTH_GAUSS      = 0.48

# ═══════════════════════════════════════════════════════════════════════════════
#  Frame Transform Helpers  (NED ↔ MuJoCo Z-up)
#
#  NED:           X = North,          Y = East,        Z = Down
#  MuJoCo world:  X = North/forward,  Y = West/left,   Z = Up
#
#  v_mj = T @ v_ned   where T = diag(1, -1, -1)
#  (180-deg rotation about X-axis; body FRD ↔ FLU uses the same matrix)
# ═══════════════════════════════════════════════════════════════════════════════
NED_TO_MJ = np.diag([1.0, -1.0, -1.0])
MJ_TO_NED = NED_TO_MJ            # Same matrix (self-inverse)


# ═══════════════════════════════════════════════════════════════════════════════
#  Vehicle Physical Parameters
# ═══════════════════════════════════════════════════════════════════════════════
def _default_inertia():
    return [[0.35, 0.0, -0.02],
            [0.0, 0.39, 0.0],
            [-0.02, 0.0, 0.70]]


@dataclass
class DroneConfig:
    """Quad-plane (4 lift rotors + pusher + wing) parameters, SI units."""

    mass_kg: float = 2.0
    inertia: list = field(default_factory=_default_inertia)   # body FRD [kg m²]

    # Lift rotors, quad-X
    arm_length_m: float = 0.25              # Centre-of-mass to motor distance
    vtol_max_thrust_n: float = 9.0          # Max thrust per motor
    vtol_torque_coeff: float = 0.02         # |reaction-torque| / thrust

    # Pusher propeller
    pusher_max_thrust_n: float = 12.0

    # Wing
    wing_area_m2: float = 0.45
    wing_span_m: float = 1.8
    mean_chord_m: float = 0.25
    air_density: float = 1.225
    cl0: float = 0.28
    cl_alpha: float = 3.45
    cd0: float = 0.03
    induced_drag_k: float = 0.05
    cm0: float = -0.02
    cm_alpha: float = -0.38
    cl_delta_a: float = 0.17                # Roll moment per unit aileron
    cm_delta_e: float = -0.5                # Pitch moment per unit elevator

    ground_height_m: float = 0.0            # NED z of the ground plane
    environment_wind: list = field(default_factory=lambda: [0.0, 0.0, 0.0])  # m/s NED

    def __post_init__(self):
        inertia = np.asarray(self.inertia, dtype=np.float64)
        if inertia.shape != (3, 3):
            raise ValueError(f"inertia must be 3x3, got shape {inertia.shape}")
        if len(self.environment_wind) != 3:
            raise ValueError("environment_wind must have 3 components (NED)")

    @property
    def inertia_matrix(self) -> np.ndarray:
        return np.asarray(self.inertia, dtype=np.float64)

    @property
    def weight_n(self) -> float:
        return self.mass_kg * G_FORCE

    @property
    def motor_positions(self) -> np.ndarray:
        """Rotor positions in body FRD, rows ordered as VTOL channels 0..3."""
        d = self.arm_length_m / math.sqrt(2.0)
        return np.array([
            [ d,  d, 0.0],   # M1 Front-Right (CCW)
            [-d, -d, 0.0],   # M2 Back-Left   (CCW)
            [ d, -d, 0.0],   # M3 Front-Left  (CW)
            [-d,  d, 0.0],   # M4 Back-Right  (CW)
        ])

    @classmethod
    def from_file(cls, path) -> "DroneConfig":
        """Load a vehicle description from a JSON object of field overrides."""
        with open(path, "r", encoding="utf-8") as fin:
            raw = json.load(fin)
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a JSON object")
        known = {f.name for f in fields(cls)}
        for key in raw:
            if key not in known:
                raise ValueError(f"{path}: unknown vehicle parameter '{key}'")
        return cls(**raw)


# Spin direction: +1 = CCW (top-view), -1 = CW (top-view)
# A CCW rotor pushes the airframe CW from above, i.e. +yaw in NED.
MOTOR_SPIN = np.array([+1.0, +1.0, -1.0, -1.0])
