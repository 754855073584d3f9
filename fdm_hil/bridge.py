#!/usr/bin/env python3
"""
FDM HIL Bridge
===============
Runs the simulated vehicle against a PX4-style autopilot in lockstep.

Data-flow summary
-----------------
  Autopilot  ──(HIL_ACTUATOR_CONTROLS, COMMAND_LONG)──▶  Drone
  Drone  ──(controls)──▶  MixedEOM (MuJoCo)  ──(state)──▶  ground clamp
  Drone  ──(HIL_SENSOR, HIL_GPS, HIL_STATE_QUATERNION, SYSTEM_TIME)──▶  Autopilot

Lockstep
--------
Simulated time only moves while the clock is unlocked.  Each advance locks
it; a publish cycle (an answer to the autopilot, or a warm-up send) unlocks
it.  While locked the loop keeps ticking with dt = 0 so inbound messages are
still drained.

Usage
-----
  1) python -m fdm_hil.bridge                      # waits on tcp :4560
  2) start the autopilot SITL/HIL target pointed at this host

  python -m fdm_hil.bridge --config vehicles/standard_vtol.json --speed 1.0
"""

import argparse
import logging
import sys
import time

from fdm_hil import config as cfg
from fdm_hil.clock import SimClock
from fdm_hil.config import DroneConfig
from fdm_hil.drone import Drone
from fdm_hil.transport import MAVLinkTransport

log = logging.getLogger("fdm_hil.bridge")


class Simulator:
    """Lockstep pacing around ``Drone.tick``."""

    def __init__(self, drone: Drone, clock: SimClock,
                 dt_us: int = cfg.PHYSICS_DT_US, speed_factor: float = 0.0):
        self.drone = drone
        self.clock = clock
        self.dt_us = dt_us
        self.speed_factor = speed_factor

        self.tick = 0              # iterations
        self.steps = 0             # iterations that advanced simulated time
        self.overrun_count = 0

    def step(self) -> bool:
        """One loop iteration.  Returns True if simulated time advanced."""
        advanced = self.clock.advance(self.dt_us)
        if advanced:
            self.clock.lock_time()
            self.steps += 1
        self.drone.tick(self.dt_us if advanced else 0)
        self.tick += 1
        return advanced

    def _pace(self, wall_start: float):
        """Hold the loop to dt / speed_factor of wall time."""
        period = (self.dt_us / 1e6) / self.speed_factor
        sleep_s = period - (time.perf_counter() - wall_start)
        if sleep_s > 0:
            # Busy-wait for last ~0.2 ms for precision
            target = wall_start + period
            if sleep_s > 0.0003:
                time.sleep(sleep_s - 0.0002)
            while time.perf_counter() < target:
                pass
        else:
            self.overrun_count += 1

    def run(self, max_steps: int | None = None):
        last_perf_t = time.perf_counter()
        last_perf_steps = 0

        while max_steps is None or self.steps < max_steps:
            wall_start = time.perf_counter()
            advanced = self.step()

            if advanced and self.speed_factor > 0:
                self._pace(wall_start)
            elif not advanced:
                # Waiting on the autopilot; don't spin a core flat out
                time.sleep(0.0001)

            wall_now = time.perf_counter()
            if wall_now - last_perf_t >= cfg.PERF_LOG_INTERVAL_S:
                rate = (self.steps - last_perf_steps) / (wall_now - last_perf_t)
                pos = self.drone.state[0:3]
                link = "connected" if self.drone.connection.connection_open() else "waiting"
                log.info("tick=%8d  rate=%7.1f Hz  overruns=%d  "
                         "pos=(%+6.2f,%+6.2f,%+6.2f)  armed=%s  airborne=%s  link=%s",
                         self.tick, rate, self.overrun_count,
                         pos[0], pos[1], pos[2],
                         self.drone.armed, self.drone.airborne, link)
                self.overrun_count = 0
                last_perf_steps = self.steps
                last_perf_t = wall_now


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FDM HIL bridge (lockstep MAVLink simulator)")
    parser.add_argument("--connection", type=str, default=cfg.PX4_SIM_URI,
                        help="pymavlink connection string (default: %(default)s)")
    parser.add_argument("--config", type=str, default=None,
                        help="Vehicle parameter JSON (default: built-in quad-plane)")
    parser.add_argument("--dt-us", type=int, default=cfg.PHYSICS_DT_US,
                        help="Physics step in microseconds (default: %(default)s)")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Wall-clock speed factor, 0 = as fast as possible")
    parser.add_argument("--verbose", action="store_true",
                        help="Log every inbound message kind")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(name)s] %(levelname)s %(message)s",
    )

    try:
        vehicle = DroneConfig.from_file(args.config) if args.config else DroneConfig()
    except (OSError, ValueError) as exc:
        log.error("Cannot load vehicle config: %s", exc)
        return 1

    log.info("Starting — physics dt = %d us (%.0f Hz), speed x%.2f",
             args.dt_us, 1e6 / args.dt_us, args.speed)

    clock = SimClock()
    transport = MAVLinkTransport(args.connection, cfg.SIM_SYSID, cfg.SIM_COMPID)
    drone = Drone(vehicle, transport, clock)
    simulator = Simulator(drone, clock, dt_us=args.dt_us, speed_factor=args.speed)

    transport.start()
    try:
        simulator.run()
    except KeyboardInterrupt:
        log.info("Shutting down …")
    finally:
        transport.close()
        log.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
