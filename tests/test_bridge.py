"""Run loop: lockstep stalling and resumption, and the CLI entry point."""

from fdm_hil import config as cfg
from fdm_hil.bridge import Simulator, build_parser, main

from conftest import actuator_msg

DT_US = cfg.PHYSICS_DT_US


def make_simulator(drone, clock):
    return Simulator(drone, clock, dt_us=DT_US, speed_factor=0.0)


class TestSimulator:

    def test_time_stalls_without_link(self, drone, clock, transport):
        transport.is_open = False
        sim = make_simulator(drone, clock)
        assert sim.step()
        assert not sim.step()
        assert not sim.step()
        assert clock.get_current_time_us() == DT_US
        assert sim.steps == 1
        assert sim.tick == 3

    def test_warmup_free_runs(self, drone, clock):
        sim = make_simulator(drone, clock)
        for _ in range(10):
            assert sim.step()
        assert clock.get_current_time_us() == 10 * DT_US

    def test_lockstep_after_warmup(self, drone, clock, transport, autopilot):
        drone.hil_actuator_controls_msg_n = cfg.LOCKSTEP_WARMUP_MSGS
        sim = make_simulator(drone, clock)

        assert sim.step()          # advances, then waits for the autopilot
        assert not sim.step()
        assert clock.get_current_time_us() == DT_US

        transport.deliver(actuator_msg(autopilot))
        assert not sim.step()      # drains, publishes, unlocks
        assert "HIL_SENSOR" in transport.sent_types()
        assert sim.step()
        assert clock.get_current_time_us() == 2 * DT_US

    def test_run_bounded(self, drone, clock):
        sim = make_simulator(drone, clock)
        sim.run(max_steps=5)
        assert sim.steps == 5
        assert clock.get_current_time_us() == 5 * DT_US

    def test_paced_run(self, drone, clock):
        sim = Simulator(drone, clock, dt_us=DT_US, speed_factor=100.0)
        sim.run(max_steps=3)
        assert sim.steps == 3


class TestCli:

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.connection == cfg.PX4_SIM_URI
        assert args.dt_us == cfg.PHYSICS_DT_US
        assert args.config is None
        assert not args.verbose

    def test_flags(self):
        args = build_parser().parse_args(
            ["--connection", "udpin:0.0.0.0:14560", "--dt-us", "2000", "--speed", "0", "--verbose"])
        assert args.connection == "udpin:0.0.0.0:14560"
        assert args.dt_us == 2000
        assert args.speed == 0.0
        assert args.verbose

    def test_missing_config_exits_nonzero(self, tmp_path):
        assert main(["--config", str(tmp_path / "nope.json")]) == 1
