"""
Rigid-Body Dynamics
====================
The integrator contract the orchestrator steps, and ``MixedEOM``: a quad-plane
(four lift rotors, pusher propeller, wing) stepped by MuJoCo.

Coordinate frames
-----------------
State (see ``fdm_hil.state``):  NED world, FRD body
MuJoCo:                         X-fwd, Y-left, Z-up world, FLU body

Transform:  v_mj = diag(1, -1, -1) @ v_ned   (same for FRD ↔ FLU)

Ground gating
-------------
While not airborne the vehicle rests on the ground plane: weight and the
earth-frame vertical component of every other force cancel against the ground
reaction.  The airborne flag is re-evaluated after each step: upward force at
least equal to weight, or the vehicle clear of the ground.
"""

import abc
import math
from typing import NamedTuple

import mujoco
import numpy as np

from fdm_hil import config as cfg
from fdm_hil.actuators import ControlInputs
from fdm_hil.config import DroneConfig
from fdm_hil.state import (ANGULAR_ACCELERATION, ATTITUDE, BODY_ACCELERATION,
                           BODY_RATES, EARTH_VELOCITY, EULER_RATES, POSITION,
                           VELOCITY, Z, body_rates_to_euler_rates,
                           body_to_earth, rotation_to_euler, zero_state)

# Beyond this angle of attack the wing is treated as a flat plate
ALPHA_STALL_RAD = math.radians(15.0)

_MJCF_TEMPLATE = """
<mujoco model="fdm_hil_vehicle">
  <option timestep="{dt}" gravity="0 0 0" integrator="RK4"/>
  <worldbody>
    <body name="vehicle">
      <freejoint name="root"/>
      <inertial pos="0 0 0" mass="{mass}"
                fullinertia="{ixx} {iyy} {izz} {ixy} {ixz} {iyz}"/>
    </body>
  </worldbody>
</mujoco>
"""


class IntegrationResult(NamedTuple):
    state: np.ndarray
    dx_state: np.ndarray
    airborne: bool


class DynamicsIntegrator(abc.ABC):
    """Advances the 12-element state by ``dt`` seconds.  Inputs are not mutated."""

    @abc.abstractmethod
    def step(self, x: np.ndarray, t: float, dt: float,
             controls: ControlInputs, airborne: bool) -> IntegrationResult:
        ...


class MixedEOM(DynamicsIntegrator):
    """MuJoCo-stepped quad-plane equations of motion."""

    def __init__(self, conf: DroneConfig, dt: float = cfg.PHYSICS_DT_US / 1e6):
        self.conf = conf
        T = cfg.NED_TO_MJ
        J_mj = T @ conf.inertia_matrix @ T
        xml = _MJCF_TEMPLATE.format(
            dt=dt,
            mass=conf.mass_kg,
            ixx=J_mj[0, 0], iyy=J_mj[1, 1], izz=J_mj[2, 2],
            ixy=J_mj[0, 1], ixz=J_mj[0, 2], iyz=J_mj[1, 2],
        )
        self.model = mujoco.MjModel.from_xml_string(xml)
        self.data = mujoco.MjData(self.model)
        self.body_id = mujoco.mj_name2id(self.model, mujoco.mjtObj.mjOBJ_BODY, "vehicle")

        self._J = conf.inertia_matrix
        self._J_inv = np.linalg.inv(self._J)
        self._motor_pos = conf.motor_positions
        self._wind_ned = np.asarray(conf.environment_wind, dtype=np.float64)

    # ──────────────────────────────────────────────────────────────────────
    #  Force / moment accumulation (body FRD)
    # ──────────────────────────────────────────────────────────────────────
    def _vtol_forces(self, u: np.ndarray):
        thrust = np.clip(u, 0.0, 1.0) * self.conf.vtol_max_thrust_n
        force = np.array([0.0, 0.0, -thrust.sum()])
        moment = np.zeros(3)
        for r, t in zip(self._motor_pos, thrust):
            moment += np.cross(r, [0.0, 0.0, -t])
        moment[2] += float(np.dot(cfg.MOTOR_SPIN, thrust)) * self.conf.vtol_torque_coeff
        return force, moment

    def _pusher_force(self, u: np.ndarray) -> np.ndarray:
        return np.array([float(np.clip(u[0], 0.0, 1.0)) * self.conf.pusher_max_thrust_n, 0.0, 0.0])

    def _aero_forces(self, x: np.ndarray, R: np.ndarray, surfaces: np.ndarray):
        c = self.conf
        v_air = x[VELOCITY] - R.T @ self._wind_ned
        airspeed = float(np.linalg.norm(v_air))
        if airspeed == 0.0:
            return np.zeros(3), np.zeros(3)

        alpha = math.atan2(v_air[2], v_air[0])
        if abs(alpha) <= ALPHA_STALL_RAD:
            cl = c.cl0 + c.cl_alpha * alpha
        else:
            cl = 2.0 * math.sin(alpha) * math.cos(alpha)
        cd = c.cd0 + c.induced_drag_k * cl * cl

        q_s = 0.5 * c.air_density * airspeed ** 2 * c.wing_area_m2
        lift, drag = q_s * cl, q_s * cd
        ca, sa = math.cos(alpha), math.sin(alpha)
        force = np.array([-drag * ca + lift * sa, 0.0, -drag * sa - lift * ca])

        delta_a, delta_e = np.clip(surfaces[:2], -1.0, 1.0)
        moment = np.array([
            q_s * c.wing_span_m * c.cl_delta_a * delta_a,
            q_s * c.mean_chord_m * (c.cm0 + c.cm_alpha * alpha + c.cm_delta_e * delta_e),
            0.0,
        ])
        return force, moment

    # ──────────────────────────────────────────────────────────────────────
    #  State <-> MuJoCo
    # ──────────────────────────────────────────────────────────────────────
    def _load(self, x: np.ndarray, R_ned: np.ndarray):
        T = cfg.NED_TO_MJ
        d = self.data
        R_mj = T @ R_ned @ T
        quat = np.zeros(4)
        mujoco.mju_mat2Quat(quat, R_mj.flatten())
        d.qpos[0:3] = T @ x[POSITION]
        d.qpos[3:7] = quat
        d.qvel[0:3] = T @ (R_ned @ x[VELOCITY])   # free joint: world-frame linear
        d.qvel[3:6] = T @ x[BODY_RATES]            # free joint: body-frame angular
        d.xfrc_applied[:] = 0.0
        return R_mj

    def _unload(self) -> np.ndarray:
        T = cfg.NED_TO_MJ
        d = self.data
        R_mj = np.zeros(9)
        mujoco.mju_quat2Mat(R_mj, d.qpos[3:7])
        R_ned = T @ R_mj.reshape(3, 3) @ T

        x = zero_state()
        x[POSITION] = T @ d.qpos[0:3]
        x[VELOCITY] = R_ned.T @ (T @ d.qvel[0:3])
        x[ATTITUDE] = rotation_to_euler(R_ned)
        x[BODY_RATES] = T @ d.qvel[3:6]
        return x

    # ──────────────────────────────────────────────────────────────────────
    #  Step
    # ──────────────────────────────────────────────────────────────────────
    def step(self, x, t, dt, controls: ControlInputs, airborne: bool) -> IntegrationResult:
        R_ned = body_to_earth(x)

        f_vtol, m_vtol = self._vtol_forces(controls.vtol(dt))
        f_push = self._pusher_force(controls.thrust(dt))
        f_aero, m_aero = self._aero_forces(x, R_ned, controls.aero(dt))

        force_earth = R_ned @ (f_vtol + f_push + f_aero)
        upward_force = -force_earth[2]
        moment_body = m_vtol + m_aero

        if airborne:
            force_earth[2] += self.conf.weight_n
        else:
            force_earth[2] = 0.0     # ground reaction

        T = cfg.NED_TO_MJ
        R_mj = self._load(x, R_ned)
        self.data.xfrc_applied[self.body_id, 0:3] = T @ force_earth
        self.data.xfrc_applied[self.body_id, 3:6] = R_mj @ (T @ moment_body)

        self.model.opt.timestep = dt
        mujoco.mj_step(self.model, self.data)

        x_next = self._unload()

        w = x[BODY_RATES]
        dx = zero_state()
        dx[EARTH_VELOCITY] = body_to_earth(x_next) @ x_next[VELOCITY]
        dx[BODY_ACCELERATION] = R_ned.T @ force_earth / self.conf.mass_kg
        dx[EULER_RATES] = body_rates_to_euler_rates(x_next) @ x_next[BODY_RATES]
        dx[ANGULAR_ACCELERATION] = self._J_inv @ (moment_body - np.cross(w, self._J @ w))

        clear_of_ground = x_next[Z] < self.conf.ground_height_m - cfg.GROUND_CONTACT_EPS_M
        airborne_next = bool(upward_force >= self.conf.weight_n or clear_of_ground)
        return IntegrationResult(x_next, dx, airborne_next)
