"""Turning goals and velocity commands into target trajectories."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike

from leggedctl.rotations import euler_angles_xyz, quaternion_to_rotation_matrix, rotation_matrix_from_zyx

__all__ = [
    "SystemObservation",
    "TargetTrajectories",
    "TrajectorySettings",
    "estimate_time_to_target",
    "target_pose_to_target_trajectories",
    "goal_to_target_trajectories",
    "cmd_vel_to_target_trajectories",
    "TargetTrajectoriesPublisher",
]

_log = logging.getLogger(__name__)

_BASE_POSE = slice(6, 12)


@dataclass
class SystemObservation:
    """State and input of the system at one instant."""

    mode: int = 0
    time: float = 0.0
    state: np.ndarray = field(default_factory=lambda: np.zeros(0))
    input: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self) -> None:
        self.state = np.asarray(self.state, dtype=float)
        self.input = np.asarray(self.input, dtype=float)


@dataclass
class TargetTrajectories:
    """Time-stamped desired states and inputs."""

    time_trajectory: list[float]
    state_trajectory: list[np.ndarray]
    input_trajectory: list[np.ndarray]


@dataclass(frozen=True)
class TrajectorySettings:
    """Reference parameters used to build target trajectories."""

    target_displacement_velocity: float
    target_rotation_velocity: float
    com_height: float
    default_joint_state: np.ndarray
    time_to_target: float

    def __post_init__(self) -> None:
        joints = np.asarray(self.default_joint_state, dtype=float)
        if joints.shape != (12,):
            raise ValueError(f"default_joint_state must have 12 elements, got shape {joints.shape}")
        object.__setattr__(self, "default_joint_state", joints)


def estimate_time_to_target(displacement: ArrayLike, settings: TrajectorySettings) -> float:
    """Return the time needed to cover a base displacement ``(x, y, z, yaw, ...)``."""
    d = np.asarray(displacement, dtype=float)
    rotation_time = abs(d[3]) / settings.target_rotation_velocity
    displacement_time = math.hypot(d[0], d[1]) / settings.target_displacement_velocity
    return max(rotation_time, displacement_time)


def _full_state(pose: np.ndarray, settings: TrajectorySettings, size: int) -> np.ndarray:
    state = np.concatenate([np.zeros(6), pose, settings.default_joint_state])
    if state.size != size:
        raise ValueError(f"observation state has {size} elements, target trajectory needs {state.size}")
    return state


def target_pose_to_target_trajectories(
    target_pose: ArrayLike,
    observation: SystemObservation,
    target_reaching_time: float,
    settings: TrajectorySettings,
) -> TargetTrajectories:
    """Build a two-point trajectory from the current base pose to ``target_pose``."""
    current_pose = observation.state[_BASE_POSE].copy()
    current_pose[2] = settings.com_height
    current_pose[4] = 0.0
    current_pose[5] = 0.0
    size = observation.state.size
    states = [
        _full_state(current_pose, settings, size),
        _full_state(np.asarray(target_pose, dtype=float), settings, size),
    ]
    inputs = [np.zeros(observation.input.size) for _ in range(2)]
    return TargetTrajectories([observation.time, target_reaching_time], states, inputs)


def goal_to_target_trajectories(
    goal: ArrayLike, observation: SystemObservation, settings: TrajectorySettings
) -> TargetTrajectories:
    """Build target trajectories towards a goal pose ``(x, y, z, yaw, pitch, roll)``."""
    g = np.asarray(goal, dtype=float)
    current_pose = observation.state[_BASE_POSE]
    target_pose = np.array([g[0], g[1], settings.com_height, g[3], 0.0, 0.0])
    reaching_time = observation.time + estimate_time_to_target(target_pose - current_pose, settings)
    return target_pose_to_target_trajectories(target_pose, observation, reaching_time, settings)


def cmd_vel_to_target_trajectories(
    cmd_vel: ArrayLike, observation: SystemObservation, settings: TrajectorySettings
) -> TargetTrajectories:
    """Build target trajectories from a body velocity command ``(vx, vy, vz, yaw_rate)``."""
    cmd = np.asarray(cmd_vel, dtype=float)
    current_pose = observation.state[_BASE_POSE]
    cmd_vel_rot = rotation_matrix_from_zyx(current_pose[3:6]) @ cmd[:3]
    horizon = settings.time_to_target
    target_pose = np.array(
        [
            current_pose[0] + cmd_vel_rot[0] * horizon,
            current_pose[1] + cmd_vel_rot[1] * horizon,
            settings.com_height,
            current_pose[3] + cmd[3] * horizon,
            0.0,
            0.0,
        ]
    )
    trajectories = target_pose_to_target_trajectories(target_pose, observation, observation.time + horizon, settings)
    for state in trajectories.state_trajectory:
        state[:3] = cmd_vel_rot
    return trajectories


CmdToTargetTrajectories = Callable[[np.ndarray, SystemObservation], TargetTrajectories]
GoalTransform = Callable[[Sequence[float], Sequence[float]], Tuple[Sequence[float], Sequence[float]]]


class TargetTrajectoriesPublisher:
    """Converts goal and velocity commands into trajectories and publishes them.

    ``goal_transform`` maps a goal ``(position, orientation)`` into the odometry
    frame; it may raise ``LookupError`` when no transform is available.
    """

    def __init__(
        self,
        goal_to_target_trajectories: CmdToTargetTrajectories,
        cmd_vel_to_target_trajectories: CmdToTargetTrajectories,
        publish: Callable[[TargetTrajectories], None],
        goal_transform: Optional[GoalTransform] = None,
    ) -> None:
        self._goal_to_target = goal_to_target_trajectories
        self._cmd_vel_to_target = cmd_vel_to_target_trajectories
        self._publish = publish
        self._goal_transform = goal_transform
        self._lock = threading.Lock()
        self._latest = SystemObservation()

    def _latest_observation(self) -> SystemObservation:
        with self._lock:
            return self._latest

    def on_observation(self, observation: SystemObservation) -> None:
        """Remember the latest observation."""
        with self._lock:
            self._latest = observation

    def on_goal(self, position: Sequence[float], orientation: Sequence[float]) -> Optional[TargetTrajectories]:
        """Publish trajectories towards a goal pose; orientation is ``(x, y, z, w)``."""
        observation = self._latest_observation()
        if observation.time == 0.0:
            return None
        if self._goal_transform is not None:
            try:
                position, orientation = self._goal_transform(position, orientation)
            except LookupError as exc:
                _log.warning("Failure %s", exc)
                return None
        cmd_goal = np.zeros(6)
        cmd_goal[:3] = np.asarray(position, dtype=float)
        angles = euler_angles_xyz(quaternion_to_rotation_matrix(orientation))
        cmd_goal[3] = angles[2]
        cmd_goal[4] = angles[1]
        cmd_goal[5] = angles[0]
        trajectories = self._goal_to_target(cmd_goal, observation)
        self._publish(trajectories)
        return trajectories

    def on_cmd_vel(self, linear: Sequence[float], angular_z: float) -> Optional[TargetTrajectories]:
        """Publish trajectories for a linear velocity and a yaw rate."""
        observation = self._latest_observation()
        if observation.time == 0.0:
            return None
        lx, ly, lz = linear
        cmd_vel = np.array([lx, ly, lz, angular_z], dtype=float)
        trajectories = self._cmd_vel_to_target(cmd_vel, observation)
        self._publish(trajectories)
        return trajectories