"""
Actuator Routing
=================
Holds the three control vectors the autopilot drives (VTOL rotors, aero
surfaces, pusher propeller) and hands them to the dynamics integrator as plain
accessor functions of the time step.

Controls persist until overwritten: an accessor returns the last vector set,
however much simulated time has passed since.
"""

from typing import Callable, NamedTuple

import numpy as np

from fdm_hil import config as cfg

ControlFn = Callable[[float], np.ndarray]


class ControlInputs(NamedTuple):
    """Accessors the integrator calls once per step, each ``f(dt) -> ndarray``."""
    thrust: ControlFn
    aero: ControlFn
    vtol: ControlFn


class ControlSurface:
    """One independently settable control vector."""

    __slots__ = ("_control",)

    def __init__(self, size: int):
        self._control = np.zeros(size, dtype=np.float64)

    def set_control(self, values):
        self._control = np.array(values, dtype=np.float64)

    def control(self, dt: float) -> np.ndarray:
        return self._control.copy()


class ActuatorRouter:

    def __init__(self):
        self.thrust_propellers = ControlSurface(len(cfg.THRUST_CHANNELS))
        self.ailerons = ControlSurface(len(cfg.AERO_CHANNELS))
        self.vtol_propellers = ControlSurface(len(cfg.VTOL_CHANNELS))

    # ──────────────────────────────────────────────────────────────────────
    #  Writers (whole-vector replacement)
    # ──────────────────────────────────────────────────────────────────────
    def set_thrust(self, vec):
        self.thrust_propellers.set_control(vec)

    def set_aero(self, vec):
        self.ailerons.set_control(vec)

    def set_vtol(self, vec):
        self.vtol_propellers.set_control(vec)

    # ──────────────────────────────────────────────────────────────────────
    #  Accessors handed to the integrator
    # ──────────────────────────────────────────────────────────────────────
    def thrust_control(self, dt: float) -> np.ndarray:
        return self.thrust_propellers.control(dt)

    def aero_control(self, dt: float) -> np.ndarray:
        return self.ailerons.control(dt)

    def vtol_control(self, dt: float) -> np.ndarray:
        return self.vtol_propellers.control(dt)

    def controls(self) -> ControlInputs:
        return ControlInputs(
            thrust=self.thrust_control,
            aero=self.aero_control,
            vtol=self.vtol_control,
        )


def required_channels() -> int:
    """Number of leading channels the channel map reads."""
    return max(cfg.VTOL_CHANNELS + cfg.AERO_CHANNELS + cfg.THRUST_CHANNELS) + 1


def split_controls(controls):
    """
    Split a raw channel vector into (vtol, aero, thrust) per the channel map.

    Raises
    ------
    ValueError  if ``controls`` is shorter than the channel map needs.
    """
    needed = required_channels()
    if len(controls) < needed:
        raise ValueError(f"actuator vector has {len(controls)} channels, need {needed}")
    vtol = np.array([controls[i] for i in cfg.VTOL_CHANNELS], dtype=np.float64)
    aero = np.array([controls[i] for i in cfg.AERO_CHANNELS], dtype=np.float64)
    thrust = np.array([controls[i] for i in cfg.THRUST_CHANNELS], dtype=np.float64)
    return vtol, aero, thrust
