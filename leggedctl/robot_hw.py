"""Robot hardware base class and the fixed-rate loop that drives it.

Parameters are read from plain mappings of parameter names to values.
Times and periods are seconds.
"""

from __future__ import annotations

import logging
import os
import threading
import time as _time
import xml.etree.ElementTree as ET
from typing import Any, Callable, Mapping, Optional

from leggedctl.hardware import (
    ContactSensorInterface,
    HardwareInterfaceError,
    HardwareResourceManager,
    HybridJointInterface,
    ImuSensorInterface,
)

__all__ = ["URDF_PARAM", "LeggedHW", "LeggedHWLoop"]

_log = logging.getLogger(__name__)

URDF_PARAM = "legged_robot_description"
_JOINT_TYPES = frozenset({"revolute", "continuous", "prismatic", "fixed", "floating", "planar"})
_LOOP_PARAMS = ("loop_frequency", "cycle_time_error_threshold", "thread_priority")


def _parse_urdf(text: str) -> Optional[dict[str, str]]:
    """Return the robot's joints as ``{name: type}`` sorted by name, or ``None`` if the text is not a URDF."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return None
    if root.tag != "robot" or not root.get("name"):
        return None
    joints: dict[str, str] = {}
    for joint in root.findall("joint"):
        name = joint.get("name")
        kind = joint.get("type")
        if not name or kind not in _JOINT_TYPES:
            return None
        joints[name] = kind
    return dict(sorted(joints.items()))


class LeggedHW:
    """Joint state, hybrid joint, IMU and contact interfaces of a legged robot.

    Subclasses register handles on the interfaces and exchange data with the
    robot in :meth:`read` and :meth:`write`.
    """

    def __init__(self) -> None:
        self.joint_state_interface: HardwareResourceManager = HardwareResourceManager()
        self.hybrid_joint_interface = HybridJointInterface()
        self.imu_sensor_interface = ImuSensorInterface()
        self.contact_sensor_interface = ContactSensorInterface()
        self.interfaces: dict[str, HardwareResourceManager] = {}
        self.urdf_joints: dict[str, str] = {}

    def init(self, params: Mapping[str, Any]) -> bool:
        """Load the URDF from ``params`` and register the interfaces."""
        if not self.load_urdf(params):
            _log.error("Error occurred while setting up urdf")
            raise HardwareInterfaceError("Error occurred while setting up urdf")
        self.interfaces["joint_state"] = self.joint_state_interface
        self.interfaces["hybrid_joint"] = self.hybrid_joint_interface
        self.interfaces["imu_sensor"] = self.imu_sensor_interface
        self.interfaces["contact_sensor"] = self.contact_sensor_interface
        return True

    def load_urdf(self, params: Mapping[str, Any]) -> bool:
        """Parse the robot description parameter; return whether it holds a valid URDF."""
        text = params.get(URDF_PARAM, "") or ""
        if not text:
            return False
        joints = _parse_urdf(str(text))
        if joints is None:
            return False
        self.urdf_joints = joints
        return True

    def read(self, time: float, period: float) -> None:
        """Read the robot's state; the base robot has no hardware to read."""

    def write(self, time: float, period: float) -> None:
        """Send commands to the robot; the base robot has no hardware to write."""


ControllerUpdate = Callable[[float, float], None]


class LeggedHWLoop:
    """Runs read, controller update and write at a fixed rate in its own thread."""

    def __init__(
        self,
        hardware: LeggedHW,
        controller_update: ControllerUpdate,
        params: Mapping[str, Any],
        *,
        autostart: bool = True,
        clock: Callable[[], float] = _time.monotonic,
        now: Callable[[], float] = _time.time,
        sleep: Callable[[float], None] = _time.sleep,
    ) -> None:
        if any(key not in params for key in _LOOP_PARAMS):
            message = (
                "could not retrieve one of the required parameters: "
                "loop_hz or cycle_time_error_threshold or thread_priority"
            )
            _log.error(message)
            raise RuntimeError(message)
        self.hardware = hardware
        self._controller_update = controller_update
        self.loop_hz = float(params["loop_frequency"])
        self.cycle_time_error_threshold = float(params["cycle_time_error_threshold"])
        self.thread_priority = int(params["thread_priority"])
        if self.loop_hz <= 0:
            raise ValueError("loop_frequency must be positive")
        self._clock = clock
        self._now = now
        self._sleep = sleep
        self.elapsed_time = 0.0
        self._last_time = clock()
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if autostart:
            self._running.set()
            self._thread = threading.Thread(target=self._run, name="legged-hw-loop", daemon=True)
            self._thread.start()

    def _set_priority(self) -> None:
        try:
            os.sched_setscheduler(0, os.SCHED_FIFO, os.sched_param(self.thread_priority))
        except (AttributeError, OSError, ValueError):
            _log.warning(
                "Failed to set threads priority (one possible reason could be that the user and the group "
                "permissions are not set properly.)."
            )

    def _run(self) -> None:
        self._set_priority()
        while self._running.is_set():
            self.update()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def update(self) -> None:
        """Read the hardware, update the controllers, write the hardware, then sleep out the cycle."""
        current = self._clock()
        desired = 1.0 / self.loop_hz

        self.elapsed_time = current - self._last_time
        self._last_time = current

        cycle_time_error = self.elapsed_time - desired
        if cycle_time_error > self.cycle_time_error_threshold:
            _log.warning(
                "Cycle time exceeded error threshold by: %ss, cycle time: %ss, threshold: %ss",
                cycle_time_error - self.cycle_time_error_threshold,
                self.elapsed_time,
                self.cycle_time_error_threshold,
            )

        self.hardware.read(self._now(), self.elapsed_time)
        self._controller_update(self._now(), self.elapsed_time)
        self.hardware.write(self._now(), self.elapsed_time)

        remaining = current + desired - self._clock()
        if remaining > 0:
            self._sleep(remaining)

    def stop(self) -> None:
        """Stop the loop thread and wait for it to finish."""
        self._running.clear()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> "LeggedHWLoop":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()