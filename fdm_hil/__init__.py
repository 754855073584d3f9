"""
FDM HIL Bridge
==============
Hardware-in-the-loop bridge between a rigid-body flight-dynamics model
(MuJoCo) and a PX4-style autopilot speaking lockstep MAVLink.

Modules
-------
config      Shared constants (MAVLink IDs, lockstep, GPS origin) + DroneConfig
clock       Simulated clock with advisory lockstep lock
state       12-element state layout and rotation helpers
actuators   Actuator channel routing to VTOL / aero / thrust controls
ground      Flat-ground contact clamp
sensors     Sensor derivation from state (pure functions)
magnetic    Magnetic field model for the magnetometer
telemetry   HIL_* / SYSTEM_TIME / COMMAND_ACK message builders
dynamics    Integrator contract and MuJoCo quad-plane model
transport   MAVLink connection and inbound message queue
drone       Orchestrator: state owner, lockstep publish/consume
bridge      Run loop and CLI (main entry point)
"""
