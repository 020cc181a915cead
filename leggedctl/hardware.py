"""Hardware handles and the registries that hand them out to controllers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Generic, Protocol, TypeVar

__all__ = [
    "HardwareInterfaceError",
    "JointState",
    "JointCommand",
    "ContactState",
    "ImuData",
    "HybridJointHandle",
    "ContactSensorHandle",
    "ImuSensorHandle",
    "HardwareResourceManager",
    "HybridJointInterface",
    "ContactSensorInterface",
    "ImuSensorInterface",
]

_log = logging.getLogger(__name__)


class HardwareInterfaceError(RuntimeError):
    """Raised when a handle cannot be created or found."""


@dataclass
class JointState:
    """Measured state of one joint."""

    position: float = 0.0
    velocity: float = 0.0
    effort: float = 0.0


@dataclass
class JointCommand:
    """Hybrid position/velocity/torque command of one joint."""

    pos_des: float = 0.0
    vel_des: float = 0.0
    kp: float = 0.0
    kd: float = 0.0
    ff: float = 0.0


@dataclass
class ContactState:
    """Whether a foot touches the ground."""

    is_contact: bool = False


def _zeros(size: int) -> list[float]:
    return [0.0] * size


@dataclass
class ImuData:
    """IMU buffers; orientation is ``(x, y, z, w)``, covariances are row-major 3x3."""

    orientation: list[float] = field(default_factory=lambda: _zeros(4))
    orientation_covariance: list[float] = field(default_factory=lambda: _zeros(9))
    angular_velocity: list[float] = field(default_factory=lambda: _zeros(3))
    angular_velocity_covariance: list[float] = field(default_factory=lambda: _zeros(9))
    linear_acceleration: list[float] = field(default_factory=lambda: _zeros(3))
    linear_acceleration_covariance: list[float] = field(default_factory=lambda: _zeros(9))


class HybridJointHandle:
    """Reads a joint's state and writes its hybrid command."""

    def __init__(self, name: str, state: JointState | None, command: JointCommand | None) -> None:
        if state is None:
            raise HardwareInterfaceError(f"Cannot create handle '{name}'. Joint state data is null.")
        if command is None:
            raise HardwareInterfaceError(f"Cannot create handle '{name}'. Command data is null.")
        self.name = name
        self._state = state
        self._command = command

    @property
    def position(self) -> float:
        return self._state.position

    @property
    def velocity(self) -> float:
        return self._state.velocity

    @property
    def effort(self) -> float:
        return self._state.effort

    @property
    def pos_des(self) -> float:
        return self._command.pos_des

    @pos_des.setter
    def pos_des(self, value: float) -> None:
        self._command.pos_des = value

    @property
    def vel_des(self) -> float:
        return self._command.vel_des

    @vel_des.setter
    def vel_des(self, value: float) -> None:
        self._command.vel_des = value

    @property
    def kp(self) -> float:
        return self._command.kp

    @kp.setter
    def kp(self, value: float) -> None:
        self._command.kp = value

    @property
    def kd(self) -> float:
        return self._command.kd

    @kd.setter
    def kd(self, value: float) -> None:
        self._command.kd = value

    @property
    def ff(self) -> float:
        return self._command.ff

    @ff.setter
    def ff(self, value: float) -> None:
        self._command.ff = value

    def set_command(self, pos_des: float, vel_des: float, kp: float, kd: float, ff: float) -> None:
        """Write all five command fields at once."""
        self._command.pos_des = pos_des
        self._command.vel_des = vel_des
        self._command.kp = kp
        self._command.kd = kd
        self._command.ff = ff


class ContactSensorHandle:
    """Reads one foot contact flag."""

    def __init__(self, name: str, state: ContactState | None) -> None:
        if state is None:
            raise HardwareInterfaceError(f"Cannot create handle '{name}'. isContact pointer is null.")
        self.name = name
        self._state = state

    @property
    def is_contact(self) -> bool:
        return self._state.is_contact


class ImuSensorHandle:
    """Reads one IMU."""

    def __init__(self, name: str, frame_id: str, data: ImuData | None) -> None:
        if data is None:
            raise HardwareInterfaceError(f"Cannot create handle '{name}'. IMU data is null.")
        self.name = name
        self.frame_id = frame_id
        self._data = data

    @property
    def orientation(self) -> list[float]:
        return self._data.orientation

    @property
    def orientation_covariance(self) -> list[float]:
        return self._data.orientation_covariance

    @property
    def angular_velocity(self) -> list[float]:
        return self._data.angular_velocity

    @property
    def angular_velocity_covariance(self) -> list[float]:
        return self._data.angular_velocity_covariance

    @property
    def linear_acceleration(self) -> list[float]:
        return self._data.linear_acceleration

    @property
    def linear_acceleration_covariance(self) -> list[float]:
        return self._data.linear_acceleration_covariance


class _Named(Protocol):
    name: str


H = TypeVar("H", bound=_Named)


class HardwareResourceManager(Generic[H]):
    """Name-keyed registry of handles."""

    claims_resources: ClassVar[bool] = False

    def __init__(self) -> None:
        self._handles: dict[str, H] = {}
        self._claims: set[str] = set()

    def register_handle(self, handle: H) -> None:
        """Add ``handle``; a handle of the same name is replaced."""
        if handle.name in self._handles:
            _log.warning("Replacing previously registered handle '%s' in '%s'.", handle.name, type(self).__name__)
        self._handles[handle.name] = handle

    def get_handle(self, name: str) -> H:
        """Return the handle called ``name``, claiming it if this registry claims resources."""
        try:
            handle = self._handles[name]
        except KeyError:
            raise HardwareInterfaceError(f"Could not find resource '{name}' in '{type(self).__name__}'.") from None
        if self.claims_resources:
            self._claims.add(name)
        return handle

    def get_names(self) -> list[str]:
        """Return the registered names in sorted order."""
        return sorted(self._handles)

    @property
    def claims(self) -> frozenset[str]:
        return frozenset(self._claims)

    def clear_claims(self) -> None:
        self._claims.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)


class HybridJointInterface(HardwareResourceManager[HybridJointHandle]):
    """Joint handles; handing one out claims the joint."""

    claims_resources = True


class ContactSensorInterface(HardwareResourceManager[ContactSensorHandle]):
    """Contact sensor handles."""


class ImuSensorInterface(HardwareResourceManager[ImuSensorHandle]):
    """IMU handles."""