"""
Flat-Ground Contact
====================
Post-integration correction that keeps the vehicle from sinking through a
flat ground plane and removes the velocity/acceleration residue of touchdown.

Runs every tick after the dynamics step and before any sensor is encoded.
Heights are NED: the vehicle is at or below the ground when ``z >= ground``.
"""

import numpy as np

from fdm_hil import config as cfg
from fdm_hil.state import (BODY_ACCELERATION, BODY_RATES, EARTH_VELOCITY,
                           EULER_RATES, VELOCITY, Z, body_to_earth)


class GroundContactModel:

    def __init__(self, ground_height: float = 0.0, gravity: float = cfg.G_FORCE,
                 epsilon: float = cfg.GROUND_CONTACT_EPS_M):
        self.ground_height = ground_height
        self.gravity = gravity
        self.epsilon = epsilon

    def in_contact(self, x: np.ndarray, dx: np.ndarray, dt: float) -> bool:
        """
        True when the vehicle touches the ground and the next step would not
        take it upwards (earth-frame z-velocity after ``dt`` is >= 0, NED).
        """
        R = body_to_earth(x)
        velocity = R @ x[VELOCITY]
        acceleration = R @ dx[BODY_ACCELERATION]
        at_ground = x[Z] >= self.ground_height - self.epsilon
        return bool(at_ground and velocity[2] + acceleration[2] * dt >= 0.0)

    def apply(self, x: np.ndarray, dx: np.ndarray, dt: float) -> bool:
        """Clamp ``x``/``dx`` in place.  Returns True if contact was applied."""
        if not self.in_contact(x, dx, dt):
            return False

        x[Z] = self.ground_height
        x[VELOCITY] = 0.0
        dx[EARTH_VELOCITY] = 0.0
        # Resting accelerometer: only the ground reaction remains
        dx[BODY_ACCELERATION] = 0.0
        dx[BODY_ACCELERATION.start + 2] = -self.gravity
        x[BODY_RATES] = 0.0
        dx[EULER_RATES] = 0.0
        return True
