"""Checks that stop the controller when the robot state is unsafe."""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import ArrayLike

from leggedctl.trajectories import SystemObservation

__all__ = ["SafetyChecker"]

_log = logging.getLogger(__name__)


class SafetyChecker:
    """Rejects states whose base roll leaves ``[-pi/2, pi/2]``.

    ``base_pose_index`` is where the six base pose entries
    ``(x, y, z, yaw, pitch, roll)`` start in the centroidal state.
    """

    def __init__(self, base_pose_index: int = 6) -> None:
        self.base_pose_index = base_pose_index

    def check(self, observation: SystemObservation, optimized_state: ArrayLike, optimized_input: ArrayLike) -> bool:
        """Return whether the observed state is safe."""
        return self._check_orientation(observation)

    def _check_orientation(self, observation: SystemObservation) -> bool:
        start = self.base_pose_index
        pose = np.asarray(observation.state, dtype=float)[start : start + 6]
        if pose.size != 6:
            raise ValueError("observation state is too short to hold a base pose")
        roll = pose[5]
        if roll > math.pi / 2 or roll < -math.pi / 2:
            _log.error("[SafetyChecker] Orientation safety check failed!")
            return False
        return True