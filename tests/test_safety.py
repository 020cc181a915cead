import math

import numpy as np
import pytest

from leggedctl.safety import SafetyChecker
from leggedctl.trajectories import SystemObservation


def _observation(roll):
    state = np.zeros(24)
    state[11] = roll
    return SystemObservation(time=1.0, state=state, input=np.zeros(24))


@pytest.mark.parametrize("roll", [0.0, 1.0, -1.0, math.pi / 2, -math.pi / 2])
def test_safe_roll(roll):
    assert SafetyChecker().check(_observation(roll), np.zeros(24), np.zeros(24)) is True


@pytest.mark.parametrize("roll", [math.pi / 2 + 1e-6, -math.pi / 2 - 1e-6, 3.0, -3.0])
def test_unsafe_roll(roll):
    assert SafetyChecker().check(_observation(roll), np.zeros(24), np.zeros(24)) is False


def test_only_roll_matters():
    obs = _observation(0.0)
    obs.state[9] = 3.0
    obs.state[10] = 3.0
    assert SafetyChecker().check(obs, np.zeros(24), np.zeros(24)) is True


def test_custom_pose_index():
    state = np.zeros(8)
    state[7] = 2.0
    obs = SystemObservation(time=1.0, state=state)
    assert SafetyChecker(base_pose_index=2).check(obs, state, np.zeros(0)) is False


def test_short_state_raises():
    obs = SystemObservation(time=1.0, state=np.zeros(4))
    with pytest.raises(ValueError):
        SafetyChecker().check(obs, np.zeros(4), np.zeros(0))