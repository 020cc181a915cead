"""Base state estimator and an estimator fed by ground-truth odometry.

The rigid-body state vector is laid out as
``[zyx(3), position(3), joint positions, angular velocity(3), linear velocity(3), joint velocities]``.
"""

from __future__ import annotations

import abc
import copy
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike

from leggedctl.rotations import (
    euler_zyx_derivatives_from_local_angular_velocity,
    global_angular_velocity_from_euler_zyx_derivatives,
    quat_to_zyx,
)

__all__ = [
    "NUM_FEET",
    "PUBLISH_RATE",
    "ModelInfo",
    "Odometry",
    "stance_leg_to_mode_number",
    "StateEstimateBase",
    "FromTopicStateEstimate",
]

NUM_FEET = 4
PUBLISH_RATE = 200.0


@dataclass(frozen=True)
class ModelInfo:
    """Dimensions of the floating-base model."""

    generalized_coordinates_num: int = 18
    actuated_dof_num: int = 12
    num_three_dof_contacts: int = 4
    num_six_dof_contacts: int = 0

    def __post_init__(self) -> None:
        if self.generalized_coordinates_num != 6 + self.actuated_dof_num:
            raise ValueError("generalized_coordinates_num must equal 6 + actuated_dof_num")

    @property
    def num_contacts(self) -> int:
        return self.num_three_dof_contacts + self.num_six_dof_contacts


def _array(values: ArrayLike, size: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float).copy()
    if array.shape != (size,):
        raise ValueError(f"{name} must have {size} elements, got shape {array.shape}")
    return array


def _matrix3(values: ArrayLike, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float).copy()
    if array.shape != (3, 3):
        raise ValueError(f"{name} must be 3x3, got shape {array.shape}")
    return array


@dataclass
class Odometry:
    """Pose and twist of the base with their 6x6 row-major covariances.

    Orientation is ``(x, y, z, w)``; the twist is given in the child frame.
    """

    stamp: float = 0.0
    frame_id: str = ""
    child_frame_id: str = ""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    pose_covariance: np.ndarray = field(default_factory=lambda: np.zeros(36))
    linear: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular: np.ndarray = field(default_factory=lambda: np.zeros(3))
    twist_covariance: np.ndarray = field(default_factory=lambda: np.zeros(36))

    def __post_init__(self) -> None:
        self.position = _array(self.position, 3, "position")
        self.orientation = _array(self.orientation, 4, "orientation")
        self.pose_covariance = _array(self.pose_covariance, 36, "pose_covariance")
        self.linear = _array(self.linear, 3, "linear")
        self.angular = _array(self.angular, 3, "angular")
        self.twist_covariance = _array(self.twist_covariance, 36, "twist_covariance")


def stance_leg_to_mode_number(contact_flags: Sequence[bool]) -> int:
    """Encode the four stance flags (LF, RF, LH, RH) as a mode number."""
    flags = [bool(flag) for flag in contact_flags]
    if len(flags) != NUM_FEET:
        raise ValueError(f"expected {NUM_FEET} contact flags, got {len(flags)}")
    return int(flags[3]) + 2 * int(flags[2]) + 4 * int(flags[1]) + 8 * int(flags[0])


Publisher = Callable[[Odometry], None]


class StateEstimateBase(abc.ABC):
    """Holds the estimated rigid-body state and the latest sensor readings."""

    def __init__(
        self,
        info: ModelInfo,
        odom_publisher: Optional[Publisher] = None,
        pose_publisher: Optional[Publisher] = None,
    ) -> None:
        self.info = info
        self.rbd_state = np.zeros(2 * info.generalized_coordinates_num)
        self.zyx_offset = np.zeros(3)
        self.contact_flags: list[bool] = [False] * NUM_FEET
        self.quat = np.array([0.0, 0.0, 0.0, 1.0])
        self.angular_vel_local = np.zeros(3)
        self.linear_accel_local = np.zeros(3)
        self.orientation_covariance = np.zeros((3, 3))
        self.angular_vel_covariance = np.zeros((3, 3))
        self.linear_accel_covariance = np.zeros((3, 3))
        self._odom_publisher = odom_publisher
        self._pose_publisher = pose_publisher
        self._last_pub = 0.0

    def update_joint_states(self, joint_pos: ArrayLike, joint_vel: ArrayLike) -> None:
        """Store measured joint positions and velocities."""
        act = self.info.actuated_dof_num
        gen = self.info.generalized_coordinates_num
        self.rbd_state[6 : 6 + act] = _array(joint_pos, act, "joint_pos")
        self.rbd_state[6 + gen : 6 + gen + act] = _array(joint_vel, act, "joint_vel")

    def update_contact(self, contact_flags: Sequence[bool]) -> None:
        """Store the four foot contact flags."""
        flags = [bool(flag) for flag in contact_flags]
        if len(flags) != NUM_FEET:
            raise ValueError(f"expected {NUM_FEET} contact flags, got {len(flags)}")
        self.contact_flags = flags

    def update_imu(
        self,
        quat: ArrayLike,
        angular_vel_local: ArrayLike,
        linear_accel_local: ArrayLike,
        orientation_covariance: ArrayLike,
        angular_vel_covariance: ArrayLike,
        linear_accel_covariance: ArrayLike,
    ) -> None:
        """Store an IMU reading and update the base orientation and angular velocity."""
        self.quat = _array(quat, 4, "quat")
        self.angular_vel_local = _array(angular_vel_local, 3, "angular_vel_local")
        self.linear_accel_local = _array(linear_accel_local, 3, "linear_accel_local")
        self.orientation_covariance = _matrix3(orientation_covariance, "orientation_covariance")
        self.angular_vel_covariance = _matrix3(angular_vel_covariance, "angular_vel_covariance")
        self.linear_accel_covariance = _matrix3(linear_accel_covariance, "linear_accel_covariance")

        measured_zyx = quat_to_zyx(self.quat)
        zyx = measured_zyx - self.zyx_offset
        angular_vel_global = global_angular_velocity_from_euler_zyx_derivatives(
            zyx, euler_zyx_derivatives_from_local_angular_velocity(measured_zyx, self.angular_vel_local)
        )
        self._update_angular(zyx, angular_vel_global)

    @abc.abstractmethod
    def update(self, time: float, period: float) -> np.ndarray:
        """Run one estimation step and return a copy of the rigid-body state."""

    def mode(self) -> int:
        """Return the mode number for the current contact flags."""
        return stance_leg_to_mode_number(self.contact_flags)

    def _update_angular(self, zyx: ArrayLike, angular_vel: ArrayLike) -> None:
        gen = self.info.generalized_coordinates_num
        self.rbd_state[0:3] = _array(zyx, 3, "zyx")
        self.rbd_state[gen : gen + 3] = _array(angular_vel, 3, "angular_vel")

    def _update_linear(self, pos: ArrayLike, linear_vel: ArrayLike) -> None:
        gen = self.info.generalized_coordinates_num
        self.rbd_state[3:6] = _array(pos, 3, "pos")
        self.rbd_state[gen + 3 : gen + 6] = _array(linear_vel, 3, "linear_vel")

    def publish_msgs(self, odom: Odometry) -> bool:
        """Publish odometry and pose at no more than ``PUBLISH_RATE``; return whether it did."""
        if not self._last_pub + 1.0 / PUBLISH_RATE < odom.stamp:
            return False
        self._last_pub = odom.stamp
        if self._odom_publisher is not None:
            self._odom_publisher(copy.deepcopy(odom))
        if self._pose_publisher is not None:
            self._pose_publisher(
                Odometry(
                    stamp=odom.stamp,
                    frame_id=odom.frame_id,
                    position=odom.position,
                    orientation=odom.orientation,
                    pose_covariance=odom.pose_covariance,
                )
            )
        return True


class FromTopicStateEstimate(StateEstimateBase):
    """Takes the base state straight from a ground-truth odometry stream."""

    def __init__(
        self,
        info: ModelInfo,
        odom_publisher: Optional[Publisher] = None,
        pose_publisher: Optional[Publisher] = None,
    ) -> None:
        super().__init__(info, odom_publisher, pose_publisher)
        self._lock = threading.Lock()
        self._latest = Odometry()

    def callback(self, odom: Odometry) -> None:
        """Receive a ground-truth odometry message."""
        with self._lock:
            self._latest = copy.deepcopy(odom)

    def update_imu(
        self,
        quat: ArrayLike,
        angular_vel_local: ArrayLike,
        linear_accel_local: ArrayLike,
        orientation_covariance: ArrayLike,
        angular_vel_covariance: ArrayLike,
        linear_accel_covariance: ArrayLike,
    ) -> None:
        """Ignore IMU readings: orientation comes from the odometry stream."""

    def update(self, time: float, period: float) -> np.ndarray:
        with self._lock:
            odom = copy.deepcopy(self._latest)
        self._update_angular(quat_to_zyx(odom.orientation), odom.angular)
        self._update_linear(odom.position, odom.linear)
        self.publish_msgs(odom)
        return self.rbd_state.copy()