"""Simulated legged robot hardware: joints, IMUs and foot contacts on top of a physics model.

The physics engine is reached through three small protocols: ``SimJoint``
for a joint, ``SimLink`` for a rigid body carrying an IMU and ``SimModel``
for link lookup and the contacts of the last physics step. Times and periods
are seconds.
"""

from __future__ import annotations

import logging
import numbers
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

import numpy as np

from leggedctl.hardware import (
    ContactSensorHandle,
    ContactSensorInterface,
    ContactState,
    HybridJointHandle,
    HybridJointInterface,
    ImuData,
    ImuSensorHandle,
    ImuSensorInterface,
    JointCommand,
    JointState,
)
from leggedctl.rotations import quaternion_to_rotation_matrix, shortest_angular_distance

__all__ = [
    "SimJoint",
    "SimLink",
    "SimModel",
    "Contact",
    "HybridJointCommand",
    "LeggedHWSim",
]

_log = logging.getLogger(__name__)

_GRAVITY = np.array([0.0, 0.0, -9.81])
_IMU_KEYS = (
    ("frame_id", "frame id"),
    ("orientation_covariance_diagonal", "orientation covariance diagonal"),
    ("angular_velocity_covariance", "angular velocity covariance"),
    ("linear_acceleration_covariance", "linear acceleration covariance"),
)


class SimJoint(Protocol):
    """A joint of the simulated model."""

    name: str
    prismatic: bool

    @property
    def position(self) -> float: ...

    @property
    def force(self) -> float: ...

    def set_force(self, effort: float) -> None: ...


class SimLink(Protocol):
    """A rigid body of the simulated model; orientation is ``(x, y, z, w)``."""

    @property
    def world_orientation(self) -> Sequence[float]: ...

    @property
    def relative_angular_velocity(self) -> Sequence[float]: ...

    @property
    def relative_linear_acceleration(self) -> Sequence[float]: ...


@dataclass(frozen=True)
class Contact:
    """A contact between two links reported at ``time``."""

    time: float
    link1: str
    link2: str


class SimModel(Protocol):
    """Link lookup and contact reports of the simulated world."""

    def link(self, name: str) -> Optional[SimLink]: ...

    def contacts(self) -> Iterable[Contact]: ...


@dataclass(frozen=True)
class HybridJointCommand:
    """A hybrid command stamped with the time it was issued."""

    stamp: float
    pos_des: float = 0.0
    vel_des: float = 0.0
    kp: float = 0.0
    kd: float = 0.0
    ff: float = 0.0


@dataclass
class _JointData:
    sim: SimJoint
    state: JointState = field(default_factory=JointState)
    command: JointCommand = field(default_factory=JointCommand)
    effort_command: float = 0.0


@dataclass
class _Imu:
    link: SimLink
    data: ImuData


def _nanoseconds(seconds: float) -> int:
    return round(seconds * 1e9)


def _same_instant(a: float, b: float) -> bool:
    return _nanoseconds(a) == _nanoseconds(b)


def _covariance_diagonal(config: Mapping[str, Any], key: str) -> list[float]:
    values = config[key]
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise TypeError(f"{key} must be a list")
    if len(values) != 3:
        raise ValueError(f"{key} must have 3 elements, got {len(values)}")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise TypeError(f"{key} must hold numbers, got {value!r}")
    a, b, c = (float(v) for v in values)
    return [a, 0.0, 0.0, 0.0, b, 0.0, 0.0, 0.0, c]


class LeggedHWSim:
    """Hybrid joint, IMU and contact interfaces for a simulated legged robot.

    Hybrid commands are delayed by ``delay`` seconds before they reach the
    joints, and are turned into efforts with a PD law plus feedforward.
    """

    def __init__(self) -> None:
        self.hybrid_joint_interface = HybridJointInterface()
        self.contact_sensor_interface = ContactSensorInterface()
        self.imu_sensor_interface = ImuSensorInterface()
        self.delay = 0.0
        self._joints: list[_JointData] = []
        self._imus: list[_Imu] = []
        self._cmd_buffer: dict[str, deque[HybridJointCommand]] = {}
        self._contacts: dict[str, ContactState] = {}
        self._model: Optional[SimModel] = None

    def init_sim(self, joints: Iterable[SimJoint], params: Mapping[str, Any], model: SimModel) -> bool:
        """Register the joints and read IMU, delay and contact settings from ``params['gazebo']``."""
        self._model = model
        for joint in joints:
            data = _JointData(sim=joint)
            self._joints.append(data)
            self.hybrid_joint_interface.register_handle(HybridJointHandle(joint.name, data.state, data.command))
            self._cmd_buffer[joint.name] = deque()

        section: Mapping[str, Any] = params.get("gazebo", {}) or {}
        imus = section.get("imus")
        if imus is None:
            _log.warning("No imu specified")
        else:
            self.parse_imu(imus, model)
        self.delay = float(section.get("delay", 0.0))
        contacts = section.get("contacts")
        if contacts is None:
            _log.warning("No contacts specified")
        else:
            self.parse_contacts(contacts)
        return True

    def read_sim(self, time: float, period: float) -> None:
        """Read joints, IMUs and contacts of the last physics step."""
        first_step = _same_instant(time, period)
        for joint in self._joints:
            position = float(joint.sim.position)
            state = joint.state
            state.velocity = 0.0 if first_step else (position - state.position) / period
            if joint.sim.prismatic:
                state.position = position
            else:
                state.position += shortest_angular_distance(state.position, position)
            state.effort = float(joint.sim.force)

        for imu in self._imus:
            quat = np.asarray(imu.link.world_orientation, dtype=float)
            imu.data.orientation[:] = quat.tolist()
            imu.data.angular_velocity[:] = [float(v) for v in imu.link.relative_angular_velocity]
            rotation = quaternion_to_rotation_matrix(quat)
            accel = np.asarray(imu.link.relative_linear_acceleration, dtype=float) - rotation.T @ _GRAVITY
            imu.data.linear_acceleration[:] = accel.tolist()

        for state in self._contacts.values():
            state.is_contact = False
        if self._model is not None:
            step = _nanoseconds(time - period)
            for contact in self._model.contacts():
                if _nanoseconds(contact.time) != step:
                    continue
                for link in (contact.link1, contact.link2):
                    if link in self._contacts:
                        self._contacts[link].is_contact = True

        # Hold the joints where they are when no controller writes a command.
        for joint in self._joints:
            joint.effort_command = 0.0
            joint.command.pos_des = joint.state.position
            joint.command.vel_des = joint.state.velocity
            joint.command.kp = 0.0
            joint.command.kd = 0.0
            joint.command.ff = 0.0

    def write_sim(self, time: float, period: float) -> None:
        """Queue the current commands and apply the delayed ones as joint efforts."""
        reset = _same_instant(time, period)
        for joint in self._joints:
            buffer = self._cmd_buffer[joint.sim.name]
            if reset:
                buffer.clear()
            while buffer and buffer[-1].stamp + self.delay < time:
                buffer.pop()
            c = joint.command
            buffer.appendleft(
                HybridJointCommand(stamp=time, pos_des=c.pos_des, vel_des=c.vel_des, kp=c.kp, kd=c.kd, ff=c.ff)
            )
            cmd = buffer[-1]
            joint.effort_command = (
                cmd.kp * (cmd.pos_des - joint.state.position) + cmd.kd * (cmd.vel_des - joint.state.velocity) + cmd.ff
            )
        for joint in self._joints:
            joint.sim.set_force(joint.effort_command)

    def parse_imu(self, imu_config: Mapping[str, Any], model: SimModel) -> None:
        """Register an IMU handle for each complete entry of ``imu_config``."""
        if not isinstance(imu_config, Mapping):
            raise TypeError("imu configuration must be a mapping")
        for name, config in imu_config.items():
            missing = next((label for key, label in _IMU_KEYS if key not in config), None)
            if missing is not None:
                _log.error("Imu %s has no associated %s.", name, missing)
                continue
            data = ImuData(
                orientation_covariance=_covariance_diagonal(config, "orientation_covariance_diagonal"),
                angular_velocity_covariance=_covariance_diagonal(config, "angular_velocity_covariance"),
                linear_acceleration_covariance=_covariance_diagonal(config, "linear_acceleration_covariance"),
            )
            frame_id = str(config["frame_id"])
            link = model.link(frame_id)
            if link is None:
                raise ValueError(f"Imu {name} refers to unknown link '{frame_id}'")
            self._imus.append(_Imu(link=link, data=data))
            self.imu_sensor_interface.register_handle(ImuSensorHandle(name, frame_id, data))

    def parse_contacts(self, contact_names: Sequence[str]) -> None:
        """Register a contact sensor handle for each named link."""
        if isinstance(contact_names, (str, bytes)) or not isinstance(contact_names, Sequence):
            raise TypeError("contact names must be a list")
        for name in contact_names:
            name = str(name)
            state = self._contacts.setdefault(name, ContactState(False))
            self.contact_sensor_interface.register_handle(ContactSensorHandle(name, state))