"""
Vehicle State Layout
=====================
The 12-element state and its derivative, both plain ``numpy`` float arrays.

State  x                                   Derivative  dx
──────────────────────────────────────────────────────────────────────────────
 [0:3]   position NED               [m]     earth-frame velocity      [m/s]
 [3:6]   body-frame velocity        [m/s]   body-frame acceleration   [m/s²]
 [6:9]   roll, pitch, yaw           [rad]   Euler angle rates         [rad/s]
 [9:12]  body rates p, q, r         [rad/s] body angular acceleration [rad/s²]

Body frame is FRD (X-fwd, Y-right, Z-down); Euler angles follow the aerospace
Z-Y-X sequence, body with respect to earth.
"""

import math

import numpy as np

STATE_SIZE = 12

POSITION = slice(0, 3)
VELOCITY = slice(3, 6)
ATTITUDE = slice(6, 9)
BODY_RATES = slice(9, 12)

# Same slots, derivative meaning
EARTH_VELOCITY = slice(0, 3)
BODY_ACCELERATION = slice(3, 6)
EULER_RATES = slice(6, 9)
ANGULAR_ACCELERATION = slice(9, 12)

Z = 2          # NED down component of the position
ROLL, PITCH, YAW = 6, 7, 8

# The integrator does not start cleanly from an all-zero state, so the forward
# body velocity is seeded.  Not physics: a start-up workaround kept as is.
INITIAL_STATE_SEED = {3: 1e-4}


def zero_state() -> np.ndarray:
    return np.zeros(STATE_SIZE, dtype=np.float64)


def initial_state() -> np.ndarray:
    """Zero state with the start-up seed applied."""
    x = zero_state()
    for index, value in INITIAL_STATE_SEED.items():
        x[index] = value
    return x


def body_to_earth(x: np.ndarray) -> np.ndarray:
    """Rotation matrix taking body-FRD vectors to NED, R = Rz(ψ) Ry(θ) Rx(φ)."""
    phi, theta, psi = x[ATTITUDE]
    cphi, sphi = math.cos(phi), math.sin(phi)
    cth, sth = math.cos(theta), math.sin(theta)
    cpsi, spsi = math.cos(psi), math.sin(psi)
    return np.array([
        [cth * cpsi, sphi * sth * cpsi - cphi * spsi, cphi * sth * cpsi + sphi * spsi],
        [cth * spsi, sphi * sth * spsi + cphi * cpsi, cphi * sth * spsi - sphi * cpsi],
        [-sth,       sphi * cth,                      cphi * cth],
    ])


def body_rates_to_euler_rates(x: np.ndarray) -> np.ndarray:
    """Matrix E with [φ̇, θ̇, ψ̇] = E @ [p, q, r].  Singular at θ = ±90°."""
    phi, theta, _ = x[ATTITUDE]
    cphi, sphi = math.cos(phi), math.sin(phi)
    cth, tth = math.cos(theta), math.tan(theta)
    return np.array([
        [1.0, sphi * tth,  cphi * tth],
        [0.0, cphi,        -sphi],
        [0.0, sphi / cth,  cphi / cth],
    ])


def rotation_to_euler(R: np.ndarray):
    """(roll, pitch, yaw) from a body→NED rotation matrix (Z-Y-X)."""
    pitch = -math.asin(float(np.clip(R[2, 0], -1.0, 1.0)))
    if abs(R[2, 0]) < 0.9999:
        roll = math.atan2(R[2, 1], R[2, 2])
        yaw = math.atan2(R[1, 0], R[0, 0])
    else:
        roll = math.atan2(-R[1, 2], R[1, 1])
        yaw = 0.0
    return roll, pitch, yaw
