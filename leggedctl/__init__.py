"""Rotations, hardware handles, state estimation, simulated hardware and command shaping for quadruped robots."""

__version__ = "0.1.0"

__all__ = [
    "hardware",
    "hw_sim",
    "joystick",
    "robot_hw",
    "rotations",
    "safety",
    "state_estimate",
    "trajectories",
]