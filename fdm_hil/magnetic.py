"""
Magnetic Field Model
=====================
Earth magnetic field (NED, gauss) for the magnetometer fields of HIL_SENSOR.

Built from declination / inclination / total strength at the reference point,
with the strength falling off as (R / (R + h))³ with altitude h, i.e. the
dipole term of the geomagnetic field.
"""

import math

import numpy as np

from fdm_hil import config as cfg


class MagneticFieldModel:

    def __init__(self, declination_deg: float = cfg.MAG_DECLINATION_DEG,
                 inclination_deg: float = cfg.MAG_INCLINATION_DEG,
                 strength_gauss: float = cfg.MAG_STRENGTH_GAUSS):
        self.declination = math.radians(declination_deg)
        self.inclination = math.radians(inclination_deg)
        self.strength = strength_gauss

    def field_for_lat_lon_alt(self, lat_deg: float, lon_deg: float, alt_m: float) -> np.ndarray:
        """Field vector [gauss] in NED at the given degrees / metres AMSL."""
        if alt_m < 0.0:
            alt_m = 0.0
        scale = (cfg.EARTH_RADIUS_M / (cfg.EARTH_RADIUS_M + alt_m)) ** 3
        h = self.strength * scale * math.cos(self.inclination)   # horizontal
        return np.array([
            h * math.cos(self.declination),
            h * math.sin(self.declination),
            self.strength * scale * math.sin(self.inclination),
        ])
